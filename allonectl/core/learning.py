"""IR learning session state machine."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from allonectl.core.errors import LearningConflictError, MalformedRequestError
from allonectl.core.model import CodeEntry, LearningRequest, LearningState

LOGGER = logging.getLogger(__name__)


class LearningSession:
    """Tracks one pending learn: IDLE -> ARMED -> COMMITTING -> IDLE.

    Like ``CodeStore`` this holds no lock of its own; the owning service
    serializes access.
    """

    def __init__(
        self,
        *,
        window_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_s = window_s
        self._clock = clock
        self._state = LearningState.IDLE
        self._request: LearningRequest | None = None
        self._armed_at = 0.0

    @property
    def state(self) -> LearningState:
        return self._state

    @property
    def request(self) -> LearningRequest | None:
        return self._request

    @property
    def expired(self) -> bool:
        return (
            self._state is LearningState.ARMED
            and self._clock() - self._armed_at > self.window_s
        )

    def check_can_arm(self, request: LearningRequest) -> None:
        if not request.name.strip():
            raise MalformedRequestError("Code name must not be empty")
        if not request.allone.strip():
            raise MalformedRequestError("An AllOne must be selected")
        if self._state is LearningState.IDLE or self.expired:
            return
        pending = self._request.name if self._request else "<unknown>"
        raise LearningConflictError(
            f"Already learning code '{pending}'. Press a button on your remote or reset first."
        )

    def arm(self, request: LearningRequest) -> None:
        self.check_can_arm(request)
        if self._state is LearningState.ARMED:
            LOGGER.info("Replacing expired learning session for '%s'", self._request.name if self._request else "")
        self._request = request
        self._armed_at = self._clock()
        self._state = LearningState.ARMED

    def begin_commit(self, code: str) -> CodeEntry | None:
        """Move ARMED -> COMMITTING and build the entry; None when nothing is armed."""
        if self._state is not LearningState.ARMED or self._request is None:
            return None
        self._state = LearningState.COMMITTING
        request = self._request
        return CodeEntry(
            name=request.name,
            description=request.description,
            code=code,
            allone=request.allone,
            group=request.group,
        )

    def reset(self) -> None:
        self._state = LearningState.IDLE
        self._request = None
        self._armed_at = 0.0
