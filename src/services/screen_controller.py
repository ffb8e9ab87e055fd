"""Screen-state controller for one ResqueNet client session.

Gates which screen is visible and holds the in-progress submission
(selected category, locked location).  Screens::

    home --sos--> category --submit--> map --exit--> home
      |              |
      |              +--cancel--> home
      +--dashboard--> dashboard --back--> home

``home`` is both the initial screen and the universal return target.
Transient submission data is cleared whenever the user enters
``category`` or returns to ``home``, so a second SOS never reuses the
previous visit's category or location.
"""

from __future__ import annotations

from typing import Final

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.emergency import (
    Coordinates,
    EmergencyRequest,
    MapMarker,
    MapView,
    NewEmergencyRequest,
)
from src.models.enums import EmergencyCategory, NotificationLevel, Screen
from src.models.screen import Notification, ScreenState
from src.services.distance import haversine_km
from src.services.geolocation import GeolocationError, GeolocationProvider
from src.services.request_store import RequestStore, StoreWriteError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# action -> (screens it may start from, screen it lands on)
_TRANSITIONS: Final[dict[str, tuple[frozenset[Screen], Screen]]] = {
    "start_sos": (frozenset({Screen.HOME}), Screen.CATEGORY),
    "cancel": (frozenset({Screen.CATEGORY}), Screen.HOME),
    "open_dashboard": (frozenset({Screen.HOME}), Screen.DASHBOARD),
    "back": (frozenset({Screen.DASHBOARD}), Screen.HOME),
    "exit_tracking": (frozenset({Screen.MAP}), Screen.HOME),
}

MSG_LOCATION_LOCKED: Final[str] = "Location locked!"
MSG_ALLOW_GPS: Final[str] = "Please allow GPS access!"
MSG_FETCH_LOCATION_FIRST: Final[str] = "Fetch location first!"
MSG_SELECT_CATEGORY_FIRST: Final[str] = "Select an emergency type first!"
MSG_SOS_SENT: Final[str] = "SOS sent. Help is on the way."
MSG_SOS_FAILED: Final[str] = "Could not send SOS. Please try again or call 112."


class InvalidTransitionError(Exception):
    """An action was invoked from a screen that does not offer it."""

    def __init__(self, action: str, screen: Screen) -> None:
        self.action = action
        self.screen = screen
        super().__init__(f"{action} is not available on the {screen.value} screen")


class SubmissionPreconditionError(Exception):
    """Location or category missing; nothing was written."""


class SubmissionInProgressError(Exception):
    """A submission for this session is already in flight."""


class SubmissionFailedError(Exception):
    """The store rejected the SOS after all retries."""


class ScreenController:
    """State machine plus transient submission data for a single session.

    Parameters
    ----------
    session_id:
        Identifier used in log context only.
    write_attempts:
        Total store append attempts per submission (first try included).
    retry_min_seconds, retry_max_seconds:
        Bounds for the exponential backoff between attempts.
    """

    __slots__ = (
        "_retry_max_seconds",
        "_retry_min_seconds",
        "_state",
        "_visit",
        "_write_attempts",
        "session_id",
    )

    def __init__(
        self,
        session_id: str = "",
        *,
        write_attempts: int = 3,
        retry_min_seconds: float = 0.5,
        retry_max_seconds: float = 4.0,
    ) -> None:
        self.session_id = session_id
        self._write_attempts = write_attempts
        self._retry_min_seconds = retry_min_seconds
        self._retry_max_seconds = retry_max_seconds
        self._state = ScreenState()
        # Bumped on every entry into ``category``; async results from an
        # older visit are discarded.
        self._visit = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> ScreenState:
        return self._state.model_copy()

    @property
    def screen(self) -> Screen:
        return self._state.screen

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def start_sos(self) -> ScreenState:
        return self._transition("start_sos")

    def cancel(self) -> ScreenState:
        return self._transition("cancel")

    def open_dashboard(self) -> ScreenState:
        return self._transition("open_dashboard")

    def back(self) -> ScreenState:
        return self._transition("back")

    def exit_tracking(self) -> ScreenState:
        return self._transition("exit_tracking")

    def go_home(self) -> ScreenState:
        """Return to ``home`` from any screen."""
        previous = self._state.screen
        self._enter(Screen.HOME)
        logger.info("screen.transition", session_id=self.session_id, action="go_home",
                    source=previous.value, target=Screen.HOME.value)
        return self.state

    # ------------------------------------------------------------------
    # Category screen
    # ------------------------------------------------------------------

    def select_category(self, category: EmergencyCategory) -> ScreenState:
        self._require(Screen.CATEGORY, "select_category")
        self._state.selected_category = category
        self._state.notice = None
        return self.state

    async def fetch_location(self, provider: GeolocationProvider) -> Coordinates:
        """Request one high-accuracy fix and lock it in on success.

        Raises :class:`GeolocationError` after recording an error notice when
        the provider fails or permission is denied.  No retry.
        """
        self._require(Screen.CATEGORY, "fetch_location")
        visit = self._visit

        try:
            position = await provider.get_current_position(high_accuracy=True)
        except GeolocationError as exc:
            logger.info("location.failed", session_id=self.session_id, code=exc.code.value)
            if self._is_current(visit):
                self._state.notice = Notification(level=NotificationLevel.ERROR, message=MSG_ALLOW_GPS)
            raise

        if not self._is_current(visit):
            logger.info("location.discarded", session_id=self.session_id)
            return position

        self._state.location = position
        self._state.notice = Notification(level=NotificationLevel.SUCCESS, message=MSG_LOCATION_LOCKED)
        logger.info("location.locked", session_id=self.session_id)
        return position

    async def submit_sos(self, store: RequestStore) -> EmergencyRequest:
        """Append one emergency request and move to the live map.

        Location is checked before category, so a missing location always
        aborts without touching the store.
        """
        self._require(Screen.CATEGORY, "submit_sos")
        if self._state.submitting:
            raise SubmissionInProgressError("submission already in progress")

        location = self._state.location
        category = self._state.selected_category
        if location is None:
            self._warn(MSG_FETCH_LOCATION_FIRST)
            raise SubmissionPreconditionError(MSG_FETCH_LOCATION_FIRST)
        if category is None:
            self._warn(MSG_SELECT_CATEGORY_FIRST)
            raise SubmissionPreconditionError(MSG_SELECT_CATEGORY_FIRST)

        record = NewEmergencyRequest(type=category, latitude=location.lat, longitude=location.lng)
        visit = self._visit
        self._state.submitting = True
        try:
            stored = await self._append_with_retry(store, record)
        except StoreWriteError as exc:
            logger.error(
                "sos.submit_failed",
                session_id=self.session_id,
                attempts=self._write_attempts,
                exc_info=True,
            )
            if self._is_current(visit):
                self._state.notice = Notification(level=NotificationLevel.ERROR, message=MSG_SOS_FAILED)
            raise SubmissionFailedError(MSG_SOS_FAILED) from exc
        finally:
            self._state.submitting = False

        logger.info("sos.submitted", session_id=self.session_id, request_id=stored.id, type=stored.type.value)

        if self._is_current(visit):
            self._state.screen = Screen.MAP
            self._state.selected_category = None
            self._state.notice = Notification(level=NotificationLevel.SUCCESS, message=MSG_SOS_SENT)
        else:
            logger.info("sos.result_discarded", session_id=self.session_id, request_id=stored.id)
        return stored

    # ------------------------------------------------------------------
    # Map screen
    # ------------------------------------------------------------------

    def map_view(self, rescuer: Coordinates, *, tile_url: str, zoom: int) -> MapView:
        self._require(Screen.MAP, "map_view")
        here = self._state.location
        if here is None:
            raise InvalidTransitionError("map_view", self._state.screen)

        return MapView(
            center=here,
            zoom=zoom,
            tile_url=tile_url,
            markers=[
                MapMarker(latitude=here.lat, longitude=here.lng, label="You are here"),
                MapMarker(latitude=rescuer.lat, longitude=rescuer.lng, label="Rescuer is coming"),
            ],
            rescuer_distance_km=haversine_km(here.lat, here.lng, rescuer.lat, rescuer.lng),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, action: str) -> ScreenState:
        sources, target = _TRANSITIONS[action]
        current = self._state.screen
        if current not in sources:
            raise InvalidTransitionError(action, current)
        self._enter(target)
        logger.info("screen.transition", session_id=self.session_id, action=action,
                    source=current.value, target=target.value)
        return self.state

    def _enter(self, screen: Screen) -> None:
        if screen in (Screen.HOME, Screen.CATEGORY):
            self._state.selected_category = None
            self._state.location = None
        if screen == Screen.CATEGORY:
            self._visit += 1
        self._state.screen = screen
        self._state.notice = None

    def _require(self, screen: Screen, action: str) -> None:
        if self._state.screen != screen:
            raise InvalidTransitionError(action, self._state.screen)

    def _is_current(self, visit: int) -> bool:
        return self._visit == visit and self._state.screen == Screen.CATEGORY

    def _warn(self, message: str) -> None:
        self._state.notice = Notification(level=NotificationLevel.WARNING, message=message)
        logger.info("sos.precondition_failed", session_id=self.session_id, reason=message)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "sos.append_retry",
            session_id=self.session_id,
            attempt=retry_state.attempt_number,
        )

    async def _append_with_retry(self, store: RequestStore, record: NewEmergencyRequest) -> EmergencyRequest:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(StoreWriteError),
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(
                multiplier=self._retry_min_seconds,
                min=self._retry_min_seconds,
                max=self._retry_max_seconds,
            ),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                stored = await store.append(record)
        return stored
