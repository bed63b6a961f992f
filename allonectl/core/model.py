"""Core data models used across the store, router, transport, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ALL_DEVICES = "ALL"


@dataclass(frozen=True)
class Device:
    address: str
    name: str
    is_allone: bool = False


@dataclass(frozen=True)
class CodeGroup:
    name: str
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodeGroup:
        return cls(name=data["name"], description=data.get("description", ""))


@dataclass(frozen=True)
class CodeEntry:
    name: str
    description: str
    code: str
    allone: str
    group: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "description": self.description,
            "code": self.code,
            "allone": self.allone,
            "group": self.group,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodeEntry:
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            code=data["code"],
            allone=data["allone"],
            group=data.get("group", ""),
        )


@dataclass
class Configuration:
    """The persisted document: ordered groups and ordered codes."""

    code_groups: list[CodeGroup] = field(default_factory=list)
    codes: list[CodeEntry] = field(default_factory=list)

    def copy(self) -> Configuration:
        # Entries are frozen, so copying the lists is a full snapshot.
        return Configuration(code_groups=list(self.code_groups), codes=list(self.codes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "code_groups": [group.to_dict() for group in self.code_groups],
            "codes": [code.to_dict() for code in self.codes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Configuration:
        return cls(
            code_groups=[CodeGroup.from_dict(item) for item in data.get("code_groups", [])],
            codes=[CodeEntry.from_dict(item) for item in data.get("codes", [])],
        )


class LearningState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    COMMITTING = "committing"


@dataclass(frozen=True)
class LearningRequest:
    """Parameters captured when learning is armed."""

    name: str
    description: str
    allone: str
    group: str = ""


@dataclass(frozen=True)
class BlastResult:
    code: str
    allone: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
