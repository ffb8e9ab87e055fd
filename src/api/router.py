"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Sessions: screen-state transitions, location lock, SOS submission, live map
    * Requests: emergency request list and WebSocket feed
    * Distance: great-circle distance helper
    * Health: liveness and readiness probes
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import distance, health, requests, sessions

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(sessions.router)
api_router.include_router(requests.router)
api_router.include_router(distance.router)
api_router.include_router(health.router)
