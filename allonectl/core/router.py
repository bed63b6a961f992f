"""Maps configuration requests (action + flat payload) to screens."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from allonectl.core.errors import AllOneError, MalformedRequestError, UnknownActionError
from allonectl.core.model import ALL_DEVICES, LearningRequest
from allonectl.core.screens import (
    ActionList,
    ActionListOption,
    Alert,
    CloseAction,
    InputHidden,
    InputText,
    RadioGroup,
    RadioGroupOption,
    ReplyAction,
    Screen,
    ScreenKind,
    Section,
    StaticText,
)
from allonectl.core.service import AllOneService

LOGGER = logging.getLogger(__name__)

Payload = Mapping[str, Any] | str | bytes | None

CODE_SEPARATOR = "|"


def parse_payload(data: Payload) -> dict[str, str]:
    """Decode a request payload into a flat ``str -> str`` map."""
    if data is None:
        return {}
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedRequestError(f"Request data is not valid UTF-8: {exc}") from exc
    if isinstance(data, str):
        if not data.strip():
            return {}
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise MalformedRequestError(f"Failed to parse request data {data!r}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise MalformedRequestError(f"Request data must be a key/value object, got {type(data).__name__}")

    values: dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise MalformedRequestError(f"Request field {key!r} must map a string to a string")
        values[key] = value
    return values


def pack_code(code: str, allone: str) -> str:
    return f"{code}{CODE_SEPARATOR}{allone}"


def unpack_code(values: Mapping[str, str]) -> tuple[str, str]:
    """Read ``code`` (packed as ``code|allone``) and the target AllOne from a payload."""
    packed = values.get("code", "")
    code, sep, allone = packed.partition(CODE_SEPARATOR)
    if not sep:
        allone = values.get("allone", "")
    if not code or not allone:
        raise MalformedRequestError(f"Expected code as 'code{CODE_SEPARATOR}allone', got {packed!r}")
    return code, allone


class ConfigRouter:
    """Dispatches the closed set of configuration actions.

    ``configure`` never raises for user or device errors; they are rendered
    as error screens.
    """

    def __init__(self, service: AllOneService) -> None:
        self.service = service
        self._handlers: dict[str, Callable[[Payload], Screen]] = {
            "": lambda _data: self.list(),
            "list": lambda _data: self.list(),
            "new": lambda _data: self.new(),
            "newgroup": lambda _data: self.newgroup(),
            "save": self._save,
            "savegroup": self._savegroup,
            "blastir": self._blastir,
            "delete": self._delete,
            "reset": self._reset,
        }

    def actions(self) -> list[ReplyAction]:
        """Menu entries for the host; one entry if any AllOne is known."""
        if not self.service.registry.allones():
            return []
        return [ReplyAction(label="Configure AllOne", name="", display_icon="play")]

    def configure(self, action: str, data: Payload = None) -> Screen:
        LOGGER.debug("Incoming configuration request. Action:%s Data:%r", action, data)
        pending = self.service.take_pending_error()
        if pending:
            LOGGER.info("Not running '%s' while reporting: %s", action, pending)
            return self.error(f"{pending} Your '{action or 'list'}' request was not run; please try it again.")
        try:
            handler = self._handlers.get(action)
            if handler is None:
                raise UnknownActionError(action)
            return handler(data)
        except AllOneError as exc:
            LOGGER.info("Request '%s' failed: %s", action, exc)
            return self.error(str(exc))

    def _blastir(self, data: Payload) -> Screen:
        code, allone = unpack_code(parse_payload(data))
        result = self.service.blast(code, allone)
        if not result.ok:
            LOGGER.debug("Blast result ignored for list view: %s", result.error)
        return self.list()

    def _delete(self, data: Payload) -> Screen:
        code, allone = unpack_code(parse_payload(data))
        self.service.delete_code(code, allone)
        return self.list()

    def _reset(self, _data: Payload) -> Screen:
        self.service.reset_all()
        return self.list()

    def _savegroup(self, data: Payload) -> Screen:
        values = parse_payload(data)
        self.service.add_group(values.get("name", ""), values.get("description", ""))
        return self.list()

    def _save(self, data: Payload) -> Screen:
        values = parse_payload(data)
        request = LearningRequest(
            name=values.get("name", "").strip(),
            description=values.get("description", ""),
            allone=values.get("allone", ""),
            group=values.get("group", ""),
        )
        self.service.arm_learning(request)
        return self.confirm("Learning IR code", "Please press a button on your remote. Click 'Okay' when done")

    def confirm(self, title: str, description: str) -> Screen:
        return Screen(
            kind=ScreenKind.CONFIRMATION,
            title=title,
            sections=(Section(contents=(StaticText(title="About this screen", value=description),)),),
            actions=(ReplyAction(label="Okay", name="list", display_class="success", display_icon="ok"),),
        )

    def error(self, message: str) -> Screen:
        return Screen(
            kind=ScreenKind.ERROR,
            title="Error",
            sections=(Section(contents=(Alert(title="Error", subtitle=message),)),),
            actions=(ReplyAction(label="Cancel", name="list", display_class="success", display_icon="ok"),),
        )

    def list(self) -> Screen:
        sections = []
        for group, codes in self.service.list_grouped_codes():
            options = tuple(
                ActionListOption(title=code.name, subtitle=code.description, value=pack_code(code.code, code.allone))
                for code in codes
            )
            sections.append(
                Section(
                    contents=(
                        StaticText(title=group.name, value=group.description),
                        ActionList(
                            name="code",
                            options=options,
                            primary_action=ReplyAction(
                                label="Blast", name="blastir", display_class="danger", display_icon="star"
                            ),
                            secondary_action=ReplyAction(
                                label="Delete", name="delete", display_class="danger", display_icon="trash"
                            ),
                        ),
                    )
                )
            )

        return Screen(
            kind=ScreenKind.LIST,
            title="Saved IR Codes",
            sections=tuple(sections),
            actions=(
                CloseAction(label="Close"),
                ReplyAction(label="New IR Code", name="new", display_class="success", display_icon="asterisk"),
                ReplyAction(label="New IR Group", name="newgroup", display_class="default", display_icon="asterisk"),
            ),
        )

    def new(self) -> Screen:
        allones = [RadioGroupOption(title="All Connected AllOnes", value=ALL_DEVICES, display_icon="globe")]
        allones.extend(
            RadioGroupOption(title=device.name, value=device.address, display_icon="play")
            for device in self.service.registry.allones()
        )
        groups = tuple(
            RadioGroupOption(title=group.name, value=group.name, display_icon="folder-open")
            for group in self.service.groups()
        )

        return Screen(
            kind=ScreenKind.FORM,
            title="New IR Code",
            sections=(
                Section(
                    contents=(
                        StaticText(
                            title="About this screen",
                            value=(
                                "Please enter a name and a description for this code. You must also pick an "
                                "AllOne. When you're ready, click 'Start Learning' and press a button on your remote"
                            ),
                        ),
                        InputHidden(name="id"),
                        InputText(name="name", before="Name for this code", placeholder="TV On"),
                        InputText(name="description", before="Code Description", placeholder="Living Room TV On"),
                        RadioGroup(title="Select an AllOne to blast from", name="allone", options=tuple(allones)),
                        RadioGroup(title="Select a group to add this code to", name="group", options=groups),
                    )
                ),
            ),
            actions=(
                ReplyAction(label="Cancel", name="list"),
                ReplyAction(label="Start Learning", name="save", display_class="success", display_icon="star"),
            ),
        )

    def newgroup(self) -> Screen:
        return Screen(
            kind=ScreenKind.FORM,
            title="New Code Group",
            sections=(
                Section(
                    contents=(
                        StaticText(
                            title="About this screen",
                            value=(
                                "On this page you can create a new group to put your codes in. For example, you "
                                "might create a group called 'Living Room' to store codes relating to your home "
                                "theater in your living room"
                            ),
                        ),
                        InputHidden(name="id"),
                        InputText(name="name", before="Name for this group", placeholder="Home Theater"),
                        InputText(
                            name="description",
                            before="Description of this group",
                            placeholder="Codes related to the home theater",
                        ),
                    )
                ),
            ),
            actions=(
                ReplyAction(label="Cancel", name="list"),
                ReplyAction(label="Save Group", name="savegroup", display_class="success", display_icon="star"),
            ),
        )
