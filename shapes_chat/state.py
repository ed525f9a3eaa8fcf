"""Send pipeline state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class SendState(str, Enum):
    """Finite state machine for a single send attempt."""

    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    OPTIMISTICALLY_APPENDED = "OPTIMISTICALLY_APPENDED"
    ENCODING_ATTACHMENT = "ENCODING_ATTACHMENT"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    SETTLED_SUCCESS = "SETTLED_SUCCESS"
    SETTLED_ERROR = "SETTLED_ERROR"


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SendState.IDLE

    @property
    def state(self) -> SendState:
        """Return the current state without locking (for synchronous readers)."""
        return self._state

    async def transition_to(self, new_state: SendState) -> SendState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: SendState,
        new_state: SendState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True
