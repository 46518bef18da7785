"""
In-memory conversation sessions.

One `Session` per reporter id. The store hands out copies, so a step handler
can work on its own view and only commit with `set()` once every side effect
of the step has succeeded. `hold()` gives the per-reporter lock that callers
keep across a whole read-modify-write.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional
import asyncio
import copy
import time


class Step(str, Enum):
    INITIAL = "INITIAL"
    AWAITING_CATEGORY = "AWAITING_CATEGORY"
    AWAITING_SUBCATEGORY = "AWAITING_SUBCATEGORY"
    AWAITING_PHOTO = "AWAITING_PHOTO"
    AWAITING_DESCRIPTION = "AWAITING_DESCRIPTION"
    AWAITING_LOCATION = "AWAITING_LOCATION"
    AWAITING_LANDMARK = "AWAITING_LANDMARK"
    AWAITING_SEVERITY = "AWAITING_SEVERITY"


@dataclass
class Session:
    step: Step = Step.INITIAL
    answers: Dict[str, Any] = field(default_factory=dict)


class SessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._holders: Dict[str, int] = defaultdict(int)

    def get(self, reporter_id: str) -> Session:
        """Return a copy of the reporter's session, creating it if needed."""
        session = self._sessions.get(reporter_id)
        if session is None:
            session = Session()
            self._sessions[reporter_id] = session
        return copy.deepcopy(session)

    def set(self, reporter_id: str, step: Step, answer_delta: Optional[Dict[str, Any]] = None) -> Session:
        """Replace the step and merge `answer_delta` into the stored answers."""
        current = self._sessions.get(reporter_id) or Session()
        answers = dict(current.answers)
        answers.update(answer_delta or {})
        self._sessions[reporter_id] = Session(step=step, answers=answers)
        return copy.deepcopy(self._sessions[reporter_id])

    def reset(self, reporter_id: str) -> Session:
        """Start over with a fresh INITIAL session and no answers."""
        self._sessions[reporter_id] = Session()
        return copy.deepcopy(self._sessions[reporter_id])

    @asynccontextmanager
    async def hold(self, reporter_id: str) -> AsyncIterator[None]:
        """Hold the reporter's lock across a read-modify-write.

        Once the last holder leaves and the session is back to a blank
        INITIAL, the reporter's session and lock are dropped.
        """
        self._holders[reporter_id] += 1
        try:
            async with self._locks[reporter_id]:
                yield
        finally:
            self._holders[reporter_id] -= 1
            if self._holders[reporter_id] == 0:
                del self._holders[reporter_id]
                self._forget_if_idle(reporter_id)

    def _forget_if_idle(self, reporter_id: str) -> None:
        session = self._sessions.get(reporter_id)
        if session is None or (session.step == Step.INITIAL and not session.answers):
            self._sessions.pop(reporter_id, None)
            self._locks.pop(reporter_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class DeliveryLog:
    """Remembers recent transport delivery ids to drop exact redeliveries."""

    def __init__(self, window_seconds: float = 600, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        self._seen = {key: ts for key, ts in self._seen.items() if ts > cutoff}

    def seen(self, delivery_id: str) -> bool:
        now = self._clock()
        self._prune(now)
        return delivery_id in self._seen

    def record(self, delivery_id: str) -> None:
        self._seen[delivery_id] = self._clock()


__all__ = ["Step", "Session", "SessionStore", "DeliveryLog"]
