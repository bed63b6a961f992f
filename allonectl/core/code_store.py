"""Saved IR codes and the named groups they are organized into."""

from __future__ import annotations

from allonectl.core.errors import DuplicateGroupError, MalformedRequestError
from allonectl.core.model import CodeEntry, CodeGroup, Configuration


class CodeStore:
    """Mutation surface over a :class:`Configuration`.

    The store itself is not thread-safe; ``AllOneService`` serializes every
    call behind its lock and takes care of persistence and notifications.
    """

    def __init__(self, config: Configuration | None = None) -> None:
        self._config = config or Configuration()

    @property
    def config(self) -> Configuration:
        return self._config

    def snapshot(self) -> Configuration:
        return self._config.copy()

    def restore(self, config: Configuration) -> None:
        self._config = config.copy()

    def groups(self) -> list[CodeGroup]:
        return list(self._config.code_groups)

    def codes(self) -> list[CodeEntry]:
        return list(self._config.codes)

    def list_grouped_codes(self) -> list[tuple[CodeGroup, list[CodeEntry]]]:
        """Return each group in stored order with the codes filed under it.

        Codes whose group does not exist are left out of every group.
        """
        return [
            (group, [code for code in self._config.codes if code.group == group.name])
            for group in self._config.code_groups
        ]

    def add_group(self, name: str, description: str = "") -> CodeGroup:
        name = name.strip()
        if not name:
            raise MalformedRequestError("Group name must not be empty")
        if any(group.name == name for group in self._config.code_groups):
            raise DuplicateGroupError(name)
        group = CodeGroup(name=name, description=description)
        self._config.code_groups.append(group)
        return group

    def delete_code(self, code: str, allone: str) -> CodeEntry | None:
        """Remove the first entry matching ``(code, allone)``; return it, or None."""
        for index, entry in enumerate(self._config.codes):
            if entry.code == code and entry.allone == allone:
                return self._config.codes.pop(index)
        return None

    def commit_learned_code(self, entry: CodeEntry) -> None:
        self._config.codes.append(entry)

    def clear_codes(self) -> None:
        self._config.codes = []

    def find_by_name(self, name: str) -> list[CodeEntry]:
        return [code for code in self._config.codes if code.name == name]
