"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from allonectl.core.errors import AllOneError
from allonectl.core.router import ConfigRouter
from allonectl.core.screens import (
    ActionList,
    Alert,
    InputText,
    RadioGroup,
    ReplyAction,
    Screen,
    ScreenKind,
    StaticText,
)
from allonectl.core.service import AllOneService
from allonectl.core.settings import load_settings

app = typer.Typer(help="Learn, organize and blast IR codes with Orvibo AllOne devices")

_state: dict[str, Path | None] = {"settings_path": None}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    settings: Path | None = typer.Option(None, "--settings", help="Path to a settings YAML file"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state["settings_path"] = settings


def _build_service() -> AllOneService:
    return AllOneService(settings=load_settings(_state["settings_path"]))


def _render(screen: Screen) -> None:
    typer.echo(f"== {screen.title} [{screen.kind.value}]")
    for section in screen.sections:
        for element in section.contents:
            if isinstance(element, StaticText):
                typer.echo(f"{element.title}: {element.value}")
            elif isinstance(element, Alert):
                typer.echo(f"{element.title}: {element.subtitle}")
            elif isinstance(element, InputText):
                typer.echo(f"  [{element.name}] {element.before}")
            elif isinstance(element, RadioGroup):
                choices = ", ".join(f"{o.title}={o.value}" for o in element.options) or "<none>"
                typer.echo(f"  [{element.name}] {element.title}: {choices}")
            elif isinstance(element, ActionList):
                for option in element.options:
                    typer.echo(f"  - {option.title}: {option.subtitle} ({option.value})")
    names = ", ".join(a.name or "<menu>" for a in screen.actions if isinstance(a, ReplyAction))
    if names:
        typer.echo(f"Next actions: {names}")


@app.command("devices")
def list_devices() -> None:
    """Discover Orvibo devices on the local network."""
    service = None
    try:
        service = _build_service()
        devices = service.list_devices(refresh=True)
        if not devices:
            typer.echo("No Orvibo devices found")
            return
        for device in devices:
            kind = "AllOne" if device.is_allone else "other"
            typer.echo(f"{device.address} {device.name} -> {kind}")
    except AllOneError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if service is not None:
            service.close()


@app.command("codes")
def list_codes() -> None:
    """List saved IR codes by group."""
    service = None
    try:
        service = _build_service()
        grouped = service.list_grouped_codes()
        if not grouped:
            typer.echo("No code groups defined")
            return
        for group, codes in grouped:
            typer.echo(f"{group.name}: {group.description}")
            for code in codes:
                typer.echo(f"  {code.name} ({code.description}) on {code.allone}")
    except AllOneError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if service is not None:
            service.close()


@app.command("configure")
def configure(
    action: str = typer.Argument("", help="Router action, e.g. list, new, save, blastir"),
    data: str | None = typer.Option(None, "--data", help="JSON object of string fields"),
    as_json: bool = typer.Option(False, "--json", help="Print the screen as JSON"),
    wait_s: float | None = typer.Option(
        None,
        "--wait-s",
        help="Seconds to wait for a remote button after 'save' (default: the learning window)",
    ),
) -> None:
    """Run a single configuration action and print the resulting screen."""
    service = None
    try:
        service = _build_service()
        if wait_s is None:
            wait_s = service.settings.learning_window_s
        if action == "new":
            service.refresh_devices()
        screen = ConfigRouter(service).configure(action, data)
        if as_json:
            typer.echo(json.dumps(screen.to_dict(), indent=2))
        else:
            _render(screen)
        if screen.kind is ScreenKind.CONFIRMATION and wait_s <= 0:
            typer.echo("Not waiting for a capture; the learning session ends when this command exits.", err=True)
        elif screen.kind is ScreenKind.CONFIRMATION:
            typer.echo("Waiting for a remote button press...")
            if not service.wait_for_capture(wait_s):
                typer.echo("Error: No IR code captured before timeout", err=True)
                raise typer.Exit(code=1)
            pending = service.take_pending_error()
            if pending:
                typer.echo(f"Error: {pending}", err=True)
                raise typer.Exit(code=1)
            typer.echo("Code learned")
    except AllOneError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if service is not None:
            service.close()


@app.command("blast")
def blast(name: str) -> None:
    """Blast a saved code by name."""
    service = None
    try:
        service = _build_service()
        result = service.blast_by_name(name)
        if not result.ok:
            typer.echo(f"Error: {result.error}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Blasted {name} on {result.allone}")
    except AllOneError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    finally:
        if service is not None:
            service.close()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
