"""Read snapshot of devices reported by the transport."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from allonectl.core.errors import DeviceSelectionError
from allonectl.core.model import ALL_DEVICES, Device


def _normalize_address(address: str) -> str:
    return address.strip().upper()


class DeviceRegistry:
    """Eventually-consistent view of discovered devices, keyed by address."""

    def __init__(self, devices: Iterable[Device] = ()) -> None:
        self._lock = threading.Lock()
        self._devices: dict[str, Device] = {}
        self.replace(devices)

    def replace(self, devices: Iterable[Device]) -> None:
        snapshot: dict[str, Device] = {}
        for device in devices:
            snapshot.setdefault(_normalize_address(device.address), device)
        with self._lock:
            self._devices = snapshot

    def devices(self) -> list[Device]:
        with self._lock:
            return list(self._devices.values())

    def allones(self) -> list[Device]:
        return [device for device in self.devices() if device.is_allone]

    def get(self, address: str) -> Device | None:
        with self._lock:
            return self._devices.get(_normalize_address(address))

    def resolve_targets(self, address: str) -> list[str]:
        """Expand an address (or ``ALL``) into the concrete AllOne addresses to use."""
        if address.strip().upper() == ALL_DEVICES:
            targets = [device.address for device in self.allones()]
            if not targets:
                raise DeviceSelectionError("No AllOne devices have been discovered")
            return targets
        return [address]
