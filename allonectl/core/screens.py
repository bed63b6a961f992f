"""Declarative screen descriptions returned by the router.

Screens only describe content; rendering is left to whoever consumes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class ScreenKind(str, Enum):
    LIST = "list"
    FORM = "form"
    CONFIRMATION = "confirmation"
    ERROR = "error"


@dataclass(frozen=True)
class StaticText:
    title: str
    value: str


@dataclass(frozen=True)
class Alert:
    title: str
    subtitle: str
    display_class: str = "danger"


@dataclass(frozen=True)
class InputHidden:
    name: str
    value: str = ""


@dataclass(frozen=True)
class InputText:
    name: str
    before: str
    placeholder: str = ""
    value: str = ""


@dataclass(frozen=True)
class RadioGroupOption:
    title: str
    value: str
    display_icon: str = ""


@dataclass(frozen=True)
class RadioGroup:
    title: str
    name: str
    options: tuple[RadioGroupOption, ...] = ()


@dataclass(frozen=True)
class ReplyAction:
    label: str
    name: str
    display_class: str = "default"
    display_icon: str = ""


@dataclass(frozen=True)
class CloseAction:
    label: str = "Close"


@dataclass(frozen=True)
class ActionListOption:
    title: str
    subtitle: str
    value: str


@dataclass(frozen=True)
class ActionList:
    name: str
    options: tuple[ActionListOption, ...]
    primary_action: ReplyAction | None = None
    secondary_action: ReplyAction | None = None


Element = Union[StaticText, Alert, InputHidden, InputText, RadioGroup, ActionList]
Action = Union[ReplyAction, CloseAction]


@dataclass(frozen=True)
class Section:
    contents: tuple[Element, ...]
    title: str = ""


@dataclass(frozen=True)
class Screen:
    kind: ScreenKind
    title: str
    sections: tuple[Section, ...] = ()
    actions: tuple[Action, ...] = ()

    def elements(self) -> list[Element]:
        return [element for section in self.sections for element in section.contents]

    def action_names(self) -> list[str]:
        return [action.name for action in self.actions if isinstance(action, ReplyAction)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "sections": [
                {"title": section.title, "contents": [_typed(e) for e in section.contents]}
                for section in self.sections
            ],
            "actions": [_typed(a) for a in self.actions],
        }


_TYPE_NAMES = {
    StaticText: "staticText",
    Alert: "alert",
    InputHidden: "inputHidden",
    InputText: "inputText",
    RadioGroup: "radioGroup",
    RadioGroupOption: "radioGroupOption",
    ActionList: "actionList",
    ActionListOption: "actionListOption",
    ReplyAction: "reply",
    CloseAction: "close",
}


def _typed(item: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"type": _TYPE_NAMES[type(item)]}
    for key, value in vars(item).items():
        if isinstance(value, tuple):
            data[key] = [_typed(v) for v in value]
        elif value is None or isinstance(value, (str, int, float, bool)):
            data[key] = value
        else:
            data[key] = _typed(value)
    return data
