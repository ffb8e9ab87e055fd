"""In-memory registry of per-client :class:`ScreenController` instances.

Sessions are idle-expired after ``ttl_seconds``; when the registry is
full the least-recently-used session is dropped.  Screen state is
client-local by nature, so nothing here is persisted.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from uuid import uuid4

import structlog

from src.services.screen_controller import ScreenController

logger = structlog.get_logger(__name__)


class _SessionEntry:
    __slots__ = ("controller", "last_seen")

    def __init__(self, controller: ScreenController, now: float) -> None:
        self.controller = controller
        self.last_seen = now


class SessionRegistry:
    """Creates and looks up screen controllers by opaque session id."""

    __slots__ = ("_clock", "_factory", "_max_sessions", "_sessions", "_ttl_seconds")

    def __init__(
        self,
        factory: Callable[[str], ScreenController] | None = None,
        *,
        ttl_seconds: float = 3_600,
        max_sessions: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory or (lambda session_id: ScreenController(session_id))
        self._ttl_seconds = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, _SessionEntry] = OrderedDict()

    def create(self) -> tuple[str, ScreenController]:
        now = self._clock()
        self._evict_expired(now)
        while len(self._sessions) >= self._max_sessions:
            dropped, _ = self._sessions.popitem(last=False)
            logger.info("sessions.evicted", session_id=dropped, reason="capacity")

        session_id = uuid4().hex
        controller = self._factory(session_id)
        self._sessions[session_id] = _SessionEntry(controller, now)
        logger.info("sessions.created", session_id=session_id, active=len(self._sessions))
        return session_id, controller

    def get(self, session_id: str) -> ScreenController | None:
        now = self._clock()
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        if now - entry.last_seen > self._ttl_seconds:
            del self._sessions[session_id]
            logger.info("sessions.evicted", session_id=session_id, reason="expired")
            return None
        entry.last_seen = now
        self._sessions.move_to_end(session_id)
        return entry.controller

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_expired(self, now: float) -> None:
        expired = [
            sid for sid, entry in self._sessions.items()
            if now - entry.last_seen > self._ttl_seconds
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("sessions.cleanup", removed=len(expired))
