"""Screen-state endpoints: one session per client, driven by user actions.

Every endpoint returns the session's :class:`ScreenState` so the client
can render the current screen, its ``notice`` alert and whether the SOS
button is enabled (``can_submit``).
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, model_validator

from config.settings import settings
from src.models.emergency import Coordinates, EmergencyRequest, MapView
from src.models.enums import EmergencyCategory, GeolocationErrorCode
from src.models.screen import ScreenState
from src.services.geolocation import GeolocationError, ReportedPositionProvider
from src.services.request_store import RequestStore
from src.services.screen_controller import (
    MSG_ALLOW_GPS,
    InvalidTransitionError,
    ScreenController,
    SubmissionFailedError,
    SubmissionInProgressError,
    SubmissionPreconditionError,
)
from src.services.sessions import SessionRegistry

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionResponse(BaseModel):
    session_id: str
    state: ScreenState


class SubmitResponse(BaseModel):
    session_id: str
    request: EmergencyRequest
    state: ScreenState


class CategoryRequest(BaseModel):
    category: EmergencyCategory


class LocationReport(BaseModel):
    """Outcome of the browser's ``getCurrentPosition`` call.

    Either both coordinates, or an ``error`` code.
    """

    latitude: float | None = None
    longitude: float | None = None
    error: GeolocationErrorCode | None = None

    @model_validator(mode="after")
    def _fix_or_error(self) -> LocationReport:
        has_fix = self.latitude is not None and self.longitude is not None
        if has_fix == (self.error is not None):
            raise ValueError("provide latitude and longitude, or an error code")
        return self

    def provider(self) -> ReportedPositionProvider:
        if self.error is not None:
            return ReportedPositionProvider(error=self.error)
        if self.latitude is None or self.longitude is None:
            raise ValueError("location report carries neither a fix nor an error")
        return ReportedPositionProvider(position=Coordinates(lat=self.latitude, lng=self.longitude))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "sessions", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Session service not available")
    return registry


def _store(request: Request) -> RequestStore:
    store = getattr(request.app.state, "request_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Request store not available")
    return store


def _controller(request: Request, session_id: str) -> ScreenController:
    controller = _registry(request).get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return controller


def _navigate(request: Request, session_id: str, action: str) -> SessionResponse:
    controller = _controller(request, session_id)
    try:
        state = getattr(controller, action)()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return SessionResponse(session_id=session_id, state=state)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", status_code=201, response_model=SessionResponse)
async def create_session(request: Request) -> SessionResponse:
    session_id, controller = _registry(request).create()
    return SessionResponse(session_id=session_id, state=controller.state)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, request: Request) -> SessionResponse:
    controller = _controller(request, session_id)
    return SessionResponse(session_id=session_id, state=controller.state)


@router.post("/{session_id}/sos", response_model=SessionResponse)
async def start_sos(session_id: str, request: Request) -> SessionResponse:
    """Home -> category."""
    return _navigate(request, session_id, "start_sos")


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel(session_id: str, request: Request) -> SessionResponse:
    return _navigate(request, session_id, "cancel")


@router.post("/{session_id}/dashboard", response_model=SessionResponse)
async def open_dashboard(session_id: str, request: Request) -> SessionResponse:
    return _navigate(request, session_id, "open_dashboard")


@router.post("/{session_id}/back", response_model=SessionResponse)
async def back(session_id: str, request: Request) -> SessionResponse:
    return _navigate(request, session_id, "back")


@router.post("/{session_id}/exit", response_model=SessionResponse)
async def exit_tracking(session_id: str, request: Request) -> SessionResponse:
    return _navigate(request, session_id, "exit_tracking")


@router.post("/{session_id}/home", response_model=SessionResponse)
async def go_home(session_id: str, request: Request) -> SessionResponse:
    return _navigate(request, session_id, "go_home")


@router.post("/{session_id}/category", response_model=SessionResponse)
async def select_category(session_id: str, body: CategoryRequest, request: Request) -> SessionResponse:
    controller = _controller(request, session_id)
    try:
        state = controller.select_category(body.category)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return SessionResponse(session_id=session_id, state=state)


@router.post("/{session_id}/location", response_model=SessionResponse)
async def report_location(session_id: str, body: LocationReport, request: Request) -> SessionResponse:
    """Lock in the fix reported by the client, or record the provider failure."""
    controller = _controller(request, session_id)
    try:
        await controller.fetch_location(body.provider())
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    except GeolocationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": exc.code.value, "message": MSG_ALLOW_GPS},
        ) from None
    return SessionResponse(session_id=session_id, state=controller.state)


@router.post("/{session_id}/submit", status_code=201, response_model=SubmitResponse)
async def submit_sos(session_id: str, request: Request) -> SubmitResponse:
    """Write the SOS and move to the live map."""
    controller = _controller(request, session_id)
    store = _store(request)
    try:
        record = await controller.submit_sos(store)
    except (InvalidTransitionError, SubmissionInProgressError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    except SubmissionPreconditionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    except SubmissionFailedError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from None
    except Exception:
        logger.error("api.sessions.submit_failed", session_id=session_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit SOS") from None

    return SubmitResponse(session_id=session_id, request=record, state=controller.state)


@router.get("/{session_id}/map", response_model=MapView)
async def live_map(session_id: str, request: Request) -> MapView:
    controller = _controller(request, session_id)
    rescuer = Coordinates(lat=settings.volunteer_latitude, lng=settings.volunteer_longitude)
    try:
        return controller.map_view(rescuer, tile_url=settings.map_tile_url, zoom=settings.map_zoom)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
