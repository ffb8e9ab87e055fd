from src.models.emergency import (
    Coordinates,
    EmergencyRequest,
    MapMarker,
    MapView,
    NewEmergencyRequest,
)
from src.models.enums import (
    EmergencyCategory,
    GeolocationErrorCode,
    NotificationLevel,
    RequestStatus,
    Screen,
)
from src.models.screen import Notification, ScreenState

__all__ = [
    "Coordinates",
    "EmergencyCategory",
    "EmergencyRequest",
    "GeolocationErrorCode",
    "MapMarker",
    "MapView",
    "NewEmergencyRequest",
    "Notification",
    "NotificationLevel",
    "RequestStatus",
    "Screen",
    "ScreenState",
]
