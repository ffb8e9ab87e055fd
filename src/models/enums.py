from __future__ import annotations

from enum import StrEnum


class EmergencyCategory(StrEnum):
    """Closed set of emergency types a user can pick on the SOS screen."""

    __slots__ = ()

    MEDICAL = "Medical"
    FIRE = "Fire"
    FOOD_SHELTER = "Food/Shelter"
    RESCUE = "Rescue"


class RequestStatus(StrEnum):
    __slots__ = ()

    ACTIVE = "Active"


class Screen(StrEnum):
    __slots__ = ()

    HOME = "home"
    CATEGORY = "category"
    MAP = "map"
    DASHBOARD = "dashboard"


class NotificationLevel(StrEnum):
    __slots__ = ()

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class GeolocationErrorCode(StrEnum):
    """Failure codes of the browser Geolocation API."""

    __slots__ = ()

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
