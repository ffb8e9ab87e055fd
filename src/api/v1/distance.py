from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from src.services.distance import haversine_km

router = APIRouter(prefix="/distance", tags=["distance"])


class DistanceResponse(BaseModel):
    distance_km: float


@router.get("", response_model=DistanceResponse)
async def distance(
    lat1: float = Query(...),
    lon1: float = Query(...),
    lat2: float = Query(...),
    lon2: float = Query(...),
) -> DistanceResponse:
    """Great-circle distance between two points, in kilometres."""
    return DistanceResponse(distance_km=haversine_km(lat1, lon1, lat2, lon2))
