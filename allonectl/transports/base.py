"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from allonectl.core.model import Device

CaptureHandler = Callable[[str, str], None]


class Transport(Protocol):
    def discover_devices(self, timeout_s: float = 3.0) -> list[Device]:
        """Return devices that answered discovery."""

    def begin_learning(self, address: str, *, timeout_s: float = 5.0) -> None:
        """Put a device into learning mode; raise a TransportError on failure."""

    def emit_code(self, code: str, address: str) -> None:
        """Blast a code; does not wait for the device."""

    def set_capture_handler(self, handler: CaptureHandler | None) -> None:
        """Register ``handler(code, address)`` for codes captured while learning."""

    def close(self) -> None:
        """Release sockets and threads."""
