"""Stable public API for building tooling on top of allonectl.

This module is the supported integration surface for third-party callers
(hub plugins, GUIs, scripts). Avoid importing from ``allonectl.core``
directly unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable

from allonectl.core.errors import (
    AllOneError,
    DeviceSelectionError,
    DuplicateGroupError,
    LearningConflictError,
    MalformedRequestError,
    PersistenceError,
    SettingsLoadError,
    SettingsValidationError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
    UnknownActionError,
)
from allonectl.core.model import (
    BlastResult,
    CodeEntry,
    CodeGroup,
    Configuration,
    Device,
    LearningRequest,
    LearningState,
)
from allonectl.core.persistence import ConfigurationStore
from allonectl.core.router import ConfigRouter, Payload
from allonectl.core.screens import ReplyAction, Screen, ScreenKind
from allonectl.core.service import AllOneService
from allonectl.core.settings import Settings
from allonectl.transports.base import Transport

__all__ = [
    "AllOneError",
    "DeviceSelectionError",
    "DuplicateGroupError",
    "LearningConflictError",
    "MalformedRequestError",
    "PersistenceError",
    "SettingsLoadError",
    "SettingsValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "UnknownActionError",
    "BlastResult",
    "CodeEntry",
    "CodeGroup",
    "Configuration",
    "Device",
    "LearningRequest",
    "LearningState",
    "Screen",
    "ScreenKind",
    "Client",
]


class Client:
    """Public client wrapping the configuration service and request router.

    Captured codes reported by the transport are committed in the background;
    call `close()` to stop the worker and release the transport.
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        store: ConfigurationStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._service = AllOneService(transport=transport, store=store, settings=settings)
        self._router = ConfigRouter(self._service)

    def configure(self, action: str, data: Payload = None) -> Screen:
        return self._router.configure(action, data)

    def actions(self) -> list[ReplyAction]:
        return self._router.actions()

    def list_devices(self, *, refresh: bool = False) -> list[Device]:
        return self._service.list_devices(refresh=refresh)

    def list_grouped_codes(self) -> list[tuple[CodeGroup, list[CodeEntry]]]:
        return self._service.list_grouped_codes()

    def learning_state(self) -> LearningState:
        return self._service.learning_state

    def blast(self, name: str) -> BlastResult:
        return self._service.blast_by_name(name)

    def subscribe(self, listener: Callable[[Configuration], None]) -> Callable[[], None]:
        return self._service.subscribe(listener)

    def close(self) -> None:
        self._service.close()
