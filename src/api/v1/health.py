"""Health check endpoints for ResqueNet API v1.

Provides liveness and readiness probes for Kubernetes / Cloud Run
deployments.  The readiness check verifies that the request store can be
reached and that the session registry is up.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 if the application process is running and able to
    handle requests.  Does *not* check downstream dependencies.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe.

    Only routes traffic to instances whose request store answers, since an
    SOS that cannot be written is worse than no instance at all.
    """
    checks: dict[str, str] = {}
    all_ok = True

    # -- Check request store -------------------------------------------------
    store = getattr(request.app.state, "request_store", None)
    if store is not None:
        try:
            if await store.ping():
                checks["request_store"] = "ok"
            else:
                checks["request_store"] = "unreachable"
                all_ok = False
        except Exception as exc:
            checks["request_store"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["request_store"] = "not_configured"
        all_ok = False

    # -- Check session registry ----------------------------------------------
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is not None:
        checks["sessions"] = f"ok ({len(sessions)} active)"
    else:
        checks["sessions"] = "not_initialised"
        all_ok = False

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks)
