"""Geolocation provider seam.

The device API lives in the browser: it produces at most one best-effort
fix per request, or fails (permission denied, position unavailable,
timeout).  The backend only sees the outcome, so the production provider
simply replays what the client reported.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from src.models.emergency import Coordinates
from src.models.enums import GeolocationErrorCode

logger = structlog.get_logger(__name__)


class GeolocationError(Exception):
    """The provider could not produce a fix."""

    def __init__(self, code: GeolocationErrorCode, message: str = "") -> None:
        self.code = code
        super().__init__(message or code.value)


@runtime_checkable
class GeolocationProvider(Protocol):
    """Single-shot position source."""

    async def get_current_position(self, *, high_accuracy: bool = True) -> Coordinates: ...


class ReportedPositionProvider:
    """Adapts a fix (or failure) reported by the client to :class:`GeolocationProvider`.

    Exactly one of *position* and *error* must be given.
    """

    __slots__ = ("_outcome",)

    def __init__(
        self,
        position: Coordinates | None = None,
        error: GeolocationErrorCode | None = None,
    ) -> None:
        if (position is None) == (error is None):
            raise ValueError("exactly one of position or error is required")
        self._outcome: Coordinates | GeolocationErrorCode = error if position is None else position

    async def get_current_position(self, *, high_accuracy: bool = True) -> Coordinates:
        if isinstance(self._outcome, GeolocationErrorCode):
            logger.info("geolocation.failed", code=self._outcome.value, high_accuracy=high_accuracy)
            raise GeolocationError(self._outcome)
        return self._outcome
