"""Emergency request records as stored in, and read back from, the request store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.enums import EmergencyCategory, RequestStatus


class Coordinates(BaseModel):
    """A single position fix in decimal degrees."""

    model_config = {"frozen": True}

    lat: float
    lng: float


class NewEmergencyRequest(BaseModel):
    """Fields the submitting client supplies; ``id`` and ``time`` come from the store."""

    model_config = {"frozen": True}

    type: EmergencyCategory
    status: RequestStatus = RequestStatus.ACTIVE
    latitude: float
    longitude: float

    def to_document(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "status": self.status.value,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class EmergencyRequest(BaseModel):
    model_config = {"frozen": True}

    id: str
    type: EmergencyCategory
    status: RequestStatus = RequestStatus.ACTIVE
    # None while a server timestamp is still pending.
    time: datetime | None = None
    latitude: float
    longitude: float

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> EmergencyRequest:
        return cls(id=doc_id, **data)


class MapMarker(BaseModel):
    latitude: float
    longitude: float
    label: str


class MapView(BaseModel):
    """Everything the live-tracking map needs to render.

    Tiles and widget rendering are the client's concern; the backend only
    supplies coordinates and the tile source.
    """

    center: Coordinates
    zoom: int
    tile_url: str
    markers: list[MapMarker] = Field(default_factory=list)
    rescuer_distance_km: float
