"""Service layer owning the code store and learning session.

Router requests call in synchronously. Codes captured by the transport are
posted to an inbox and committed by a single worker thread. Both paths take
the same lock, so a commit never interleaves with a reset or delete.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from allonectl.core.code_store import CodeStore
from allonectl.core.errors import (
    AllOneError,
    DeviceSelectionError,
    MalformedRequestError,
    PersistenceError,
    TransportError,
)
from allonectl.core.learning import LearningSession
from allonectl.core.model import (
    ALL_DEVICES,
    BlastResult,
    CodeEntry,
    CodeGroup,
    Configuration,
    Device,
    LearningRequest,
    LearningState,
)
from allonectl.core.persistence import ConfigurationStore, JsonFileStore
from allonectl.core.registry import DeviceRegistry
from allonectl.core.settings import Settings, load_settings
from allonectl.transports.base import Transport
from allonectl.transports.orvibo import OrviboTransport

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[Configuration], None]


class AllOneService:
    def __init__(
        self,
        *,
        transport: Transport | None = None,
        store: ConfigurationStore | None = None,
        settings: Settings | None = None,
        registry: DeviceRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or load_settings()
        self.transport = transport or OrviboTransport(
            port=self.settings.transport.port,
            broadcast_address=self.settings.transport.broadcast_address,
        )
        self.persistence = store or JsonFileStore(self.settings.state_file)
        self.registry = registry or DeviceRegistry()

        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._codes = CodeStore(self.persistence.load())
        self._session = LearningSession(window_s=self.settings.learning_window_s, clock=clock)
        self._pending_errors: list[str] = []
        self._listeners: list[Listener] = []

        self._inbox: queue.Queue[tuple[str, str] | None] = queue.Queue()
        self._worker = threading.Thread(target=self._run_inbox, name="allone-commit", daemon=True)
        self._worker.start()
        self.transport.set_capture_handler(self.on_code_captured)

    # Read side

    def snapshot(self) -> Configuration:
        with self._lock:
            return self._codes.snapshot()

    def groups(self) -> list[CodeGroup]:
        with self._lock:
            return self._codes.groups()

    def list_grouped_codes(self) -> list[tuple[CodeGroup, list[CodeEntry]]]:
        with self._lock:
            return self._codes.list_grouped_codes()

    @property
    def learning_state(self) -> LearningState:
        with self._lock:
            return self._session.state

    @property
    def learning_request(self) -> LearningRequest | None:
        with self._lock:
            return self._session.request

    def list_devices(self, *, refresh: bool = False) -> list[Device]:
        if refresh or not self.registry.devices():
            self.refresh_devices()
        return self.registry.devices()

    def refresh_devices(self) -> None:
        devices = self.transport.discover_devices(self.settings.transport.discovery_timeout_s)
        self.registry.replace(devices)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a full configuration snapshot after every change."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def take_pending_error(self) -> str | None:
        with self._lock:
            if not self._pending_errors:
                return None
            message = " ".join(self._pending_errors)
            self._pending_errors.clear()
            return message

    # Mutations

    def add_group(self, name: str, description: str = "") -> CodeGroup:
        group = self._mutate(lambda codes: codes.add_group(name, description))
        LOGGER.info("Added code group '%s'", group.name)
        return group

    def delete_code(self, code: str, allone: str) -> CodeEntry | None:
        with self._lock:
            if not any(e.code == code and e.allone == allone for e in self._codes.codes()):
                LOGGER.debug("No stored code %s on %s to delete", code, allone)
                return None
            removed = self._mutate(lambda codes: codes.delete_code(code, allone))
        LOGGER.info("Deleted code '%s' for %s", removed.name if removed else code, allone)
        return removed

    def reset_all(self) -> None:
        with self._lock:
            self._mutate(lambda codes: codes.clear_codes())
            self._session.reset()
            self._changed.notify_all()
        LOGGER.info("Cleared all stored codes and learning state")

    def arm_learning(self, request: LearningRequest) -> None:
        """Put the target device(s) into learning mode and wait for the capture.

        Raises before arming if the request is invalid, another session is
        still waiting, or the device does not acknowledge in time.
        """
        with self._lock:
            self._session.check_can_arm(request)
            if request.group and not any(g.name == request.group for g in self._codes.groups()):
                raise MalformedRequestError(f"Unknown code group '{request.group}'. Create the group first.")
            timeout_s = self.settings.transport.learn_timeout_s
            for address in self._resolve_targets(request.allone):
                try:
                    self.transport.begin_learning(address, timeout_s=timeout_s)
                except TransportError as exc:
                    LOGGER.warning("Could not put %s into learning mode: %s", address, exc)
                    raise
            self._session.arm(request)
        LOGGER.info("Learning code '%s' on %s", request.name, request.allone)

    def on_code_captured(self, code: str, address: str = "") -> None:
        """Transport callback; safe to call from any thread."""
        self._inbox.put((code, address))

    def wait_idle(self) -> None:
        """Block until every captured code posted so far has been handled."""
        self._inbox.join()

    def wait_for_capture(self, timeout_s: float) -> bool:
        with self._changed:
            return self._changed.wait_for(
                lambda: self._session.state is LearningState.IDLE,
                timeout=timeout_s,
            )

    def blast(self, code: str, allone: str) -> BlastResult:
        try:
            targets = self._resolve_targets(allone)
        except (DeviceSelectionError, TransportError) as exc:
            LOGGER.warning("Cannot blast code %s: %s", code, exc)
            return BlastResult(code=code, allone=allone, error=str(exc))

        errors: list[str] = []
        for address in targets:
            try:
                self.transport.emit_code(code, address)
            except TransportError as exc:
                LOGGER.warning("Blasting code %s on %s failed: %s", code, address, exc)
                errors.append(str(exc))
        if not errors:
            LOGGER.info("Blasted code %s on %s", code, allone)
        return BlastResult(code=code, allone=allone, error="; ".join(errors) or None)

    def blast_by_name(self, name: str) -> BlastResult:
        with self._lock:
            matches = self._codes.find_by_name(name)
        if not matches:
            raise DeviceSelectionError(f"No stored code named '{name}'")
        if len(matches) > 1:
            where = ", ".join(f"{m.allone} ({m.group or 'ungrouped'})" for m in matches)
            raise DeviceSelectionError(f"Multiple stored codes named '{name}': {where}")
        return self.blast(matches[0].code, matches[0].allone)

    def close(self) -> None:
        self.transport.set_capture_handler(None)
        self._inbox.put(None)
        self._worker.join(timeout=5.0)
        self.transport.close()

    # Internals

    def _resolve_targets(self, allone: str) -> list[str]:
        if allone.strip().upper() == ALL_DEVICES and not self.registry.allones():
            self.refresh_devices()
        return self.registry.resolve_targets(allone)

    def _mutate(self, change: Callable[[CodeStore], T]) -> T:
        with self._lock:
            before = self._codes.snapshot()
            try:
                result = change(self._codes)
            except AllOneError:
                self._codes.restore(before)
                raise
            try:
                self.persistence.save(self._codes.config)
            except PersistenceError:
                self._codes.restore(before)
                raise
            except Exception as exc:
                self._codes.restore(before)
                raise PersistenceError(f"Could not save configuration: {exc}") from exc
            self._notify()
            return result

    def _notify(self) -> None:
        snapshot = self._codes.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot.copy())
            except Exception:
                LOGGER.exception("Configuration listener failed")

    def _run_inbox(self) -> None:
        while True:
            item = self._inbox.get()
            try:
                if item is None:
                    return
                self._apply_capture(*item)
            except Exception:
                LOGGER.exception("Failed to apply captured code")
            finally:
                self._inbox.task_done()

    def _apply_capture(self, code: str, address: str) -> None:
        with self._lock:
            entry = self._session.begin_commit(code)
            if entry is None:
                LOGGER.info("Dropping captured code from %s: no learning session armed", address or "<unknown>")
                return
            before = self._codes.snapshot()
            try:
                self._codes.commit_learned_code(entry)
                self.persistence.save(self._codes.config)
            except Exception as exc:
                self._codes.restore(before)
                message = f"Learned code '{entry.name}' could not be saved and was lost: {exc}"
                LOGGER.error(message)
                self._pending_errors.append(message)
                if not isinstance(exc, PersistenceError):
                    raise
            else:
                LOGGER.info("Saved learned code '%s' (%s) for %s", entry.name, code, entry.allone)
                self._notify()
            finally:
                self._session.reset()
                self._changed.notify_all()
