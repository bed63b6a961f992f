"""Durable storage for the code/group configuration document."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from jsonschema import ValidationError

from allonectl.core.errors import PersistenceError
from allonectl.core.model import Configuration
from allonectl.core.settings import load_schema_validator

LOGGER = logging.getLogger(__name__)


class ConfigurationStore(Protocol):
    def load(self) -> Configuration:
        """Return the stored configuration, or an empty one if nothing is stored."""

    def save(self, config: Configuration) -> None:
        """Durably write the whole configuration."""


class MemoryStore:
    """Keeps the document in memory; used when no state file is wanted."""

    def __init__(self, config: Configuration | None = None) -> None:
        self.saved: Configuration = (config or Configuration()).copy()
        self.saves = 0

    def load(self) -> Configuration:
        return self.saved.copy()

    def save(self, config: Configuration) -> None:
        self.saved = config.copy()
        self.saves += 1


class JsonFileStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Configuration:
        if not self.path.exists():
            LOGGER.debug("No stored configuration at %s", self.path)
            return Configuration()

        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise PersistenceError(f"Could not read {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Invalid JSON in {self.path}: {exc}") from exc

        try:
            load_schema_validator("configuration.schema.json").validate(doc)
        except ValidationError as exc:
            path = ".".join(str(p) for p in exc.path)
            where = f" ({path})" if path else ""
            raise PersistenceError(f"Stored configuration {self.path} is invalid{where}: {exc.message}") from exc

        config = Configuration.from_dict(doc)
        LOGGER.info(
            "Loaded %d code groups and %d codes from %s",
            len(config.code_groups),
            len(config.codes),
            self.path,
        )
        return config

    def save(self, config: Configuration) -> None:
        payload = json.dumps(config.to_dict(), indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".state-", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceError(f"Could not write {self.path}: {exc}") from exc
