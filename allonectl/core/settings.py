"""Settings loading and validation for the YAML settings file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from allonectl.core.errors import SettingsLoadError, SettingsValidationError

LOGGER = logging.getLogger(__name__)

ORVIBO_PORT = 10000


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SettingsValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class TransportSettings:
    port: int = ORVIBO_PORT
    broadcast_address: str = "255.255.255.255"
    discovery_timeout_s: float = 3.0
    learn_timeout_s: float = 5.0


@dataclass(frozen=True)
class Settings:
    state_file: Path
    transport: TransportSettings = field(default_factory=TransportSettings)
    learning_window_s: float = 30.0


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("allonectl.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def config_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "allonectl"


def data_dir() -> Path:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_data / "allonectl"


def default_settings_path() -> Path:
    return config_dir() / "config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise SettingsValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = load_schema_validator("settings.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SettingsValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    transport_doc = doc.get("transport", {})
    defaults = TransportSettings()
    transport = TransportSettings(
        port=int(transport_doc.get("port", defaults.port)),
        broadcast_address=transport_doc.get("broadcast_address", defaults.broadcast_address),
        discovery_timeout_s=float(transport_doc.get("discovery_timeout_s", defaults.discovery_timeout_s)),
        learn_timeout_s=float(transport_doc.get("learn_timeout_s", defaults.learn_timeout_s)),
    )

    state_file = Path(doc["state_file"]).expanduser() if "state_file" in doc else data_dir() / "state.json"

    return Settings(
        state_file=state_file,
        transport=transport,
        learning_window_s=float(doc.get("learning", {}).get("window_s", 30.0)),
    )


def load_settings(path: Path | None = None) -> Settings:
    source = path or default_settings_path()
    if not source.exists():
        if path is not None:
            raise SettingsLoadError(f"Settings file {source} does not exist")
        LOGGER.debug("No settings file at %s, using defaults", source)
        return _build_settings({}, source)
    return _build_settings(_read_yaml(source), source)
