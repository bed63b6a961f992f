from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from allonectl import cli
from allonectl.core.errors import TransportConnectError
from allonectl.core.model import CodeEntry, CodeGroup, Configuration, Device
from allonectl.core.persistence import MemoryStore
from allonectl.core.service import AllOneService

ALLONE = "AA:BB:CC:DD:EE:FF"


class FakeTransport:
    def __init__(self) -> None:
        self.handler = None
        self.emitted: list[tuple[str, str]] = []
        self.capture_on_learn: str | None = None

    def discover_devices(self, timeout_s: float = 3.0) -> list[Device]:
        return [
            Device(address=ALLONE, name="Living Room AllOne", is_allone=True),
            Device(address="11:22:33:44:55:66", name="Socket", is_allone=False),
        ]

    def begin_learning(self, address: str, *, timeout_s: float = 5.0) -> None:
        if self.capture_on_learn is not None:
            self.handler(self.capture_on_learn, address)

    def emit_code(self, code: str, address: str) -> None:
        self.emitted.append((code, address))

    def set_capture_handler(self, handler) -> None:
        self.handler = handler

    def close(self) -> None:
        pass


runner = CliRunner()


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> MemoryStore:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return MemoryStore(
        Configuration(
            code_groups=[CodeGroup(name="Home Theater", description="Living room")],
            codes=[
                CodeEntry(
                    name="TV On",
                    description="Living Room TV On",
                    code="A1B2C3",
                    allone=ALLONE,
                    group="Home Theater",
                )
            ],
        )
    )


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch, store: MemoryStore) -> FakeTransport:
    fake = FakeTransport()
    monkeypatch.setattr(
        cli,
        "AllOneService",
        lambda settings=None: AllOneService(transport=fake, store=store, settings=settings),
    )
    return fake


def test_devices_command(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 0
    assert f"{ALLONE} Living Room AllOne -> AllOne" in result.stdout
    assert "Socket -> other" in result.stdout


def test_codes_command(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["codes"])
    assert result.exit_code == 0
    assert "Home Theater: Living room" in result.stdout
    assert f"TV On (Living Room TV On) on {ALLONE}" in result.stdout


def test_configure_list_as_json(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["configure", "list", "--json"])
    assert result.exit_code == 0
    doc = json.loads(result.stdout)
    assert doc["kind"] == "list"
    assert doc["sections"][0]["contents"][1]["options"][0]["value"] == f"A1B2C3|{ALLONE}"


def test_configure_unknown_action_renders_error_screen(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["configure", "bogus"])
    assert result.exit_code == 0
    assert "Unknown action: bogus" in result.stdout


def test_configure_save_waits_for_capture(transport: FakeTransport, store: MemoryStore) -> None:
    transport.capture_on_learn = "D4E5F6"
    data = json.dumps({"name": "TV Off", "description": "", "allone": ALLONE, "group": "Home Theater"})

    result = runner.invoke(cli.app, ["configure", "save", "--data", data, "--wait-s", "5"])

    assert result.exit_code == 0
    assert "Code learned" in result.stdout
    assert [code.code for code in store.load().codes] == ["A1B2C3", "D4E5F6"]


def test_configure_save_waits_for_learning_window_by_default(transport: FakeTransport, store: MemoryStore) -> None:
    transport.capture_on_learn = "D4E5F6"
    data = json.dumps({"name": "TV Off", "description": "", "allone": ALLONE, "group": ""})

    result = runner.invoke(cli.app, ["configure", "save", "--data", data])

    assert result.exit_code == 0
    assert "Waiting for a remote button press" in result.stdout
    assert "Code learned" in result.stdout
    assert store.load().codes[-1].code == "D4E5F6"


def test_configure_save_without_wait_warns_session_ends(transport: FakeTransport) -> None:
    data = json.dumps({"name": "TV Off", "description": "", "allone": ALLONE, "group": ""})

    result = runner.invoke(cli.app, ["configure", "save", "--data", data, "--wait-s", "0"])

    assert result.exit_code == 0
    assert "Not waiting for a capture" in result.stderr
    assert "Code learned" not in result.stdout

def test_blast_command(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["blast", "TV On"])
    assert result.exit_code == 0
    assert f"Blasted TV On on {ALLONE}" in result.stdout
    assert transport.emitted == [("A1B2C3", ALLONE)]


def test_blast_unknown_code_error_is_clean(transport: FakeTransport) -> None:
    result = runner.invoke(cli.app, ["blast", "Volume Up"])
    assert result.exit_code == 1
    assert "Error: No stored code named 'Volume Up'" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_transport_error_is_clean(monkeypatch: pytest.MonkeyPatch, transport: FakeTransport) -> None:
    def _fail(timeout_s: float = 3.0):
        raise TransportConnectError("Could not open UDP socket on port 10000: in use")

    monkeypatch.setattr(transport, "discover_devices", _fail)
    result = runner.invoke(cli.app, ["devices"])
    assert result.exit_code == 1
    assert "Error: Could not open UDP socket" in result.stderr
