"""ResqueNet service layer -- request store, screen-state controller, feed and geometry.

Everything here is importable without GCP credentials; the Firestore
client library is only imported when a :class:`FirestoreRequestStore`
is actually constructed.
"""

from __future__ import annotations

from src.services.distance import haversine_km
from src.services.geolocation import GeolocationError, GeolocationProvider, ReportedPositionProvider
from src.services.request_feed import RequestFeed
from src.services.request_store import (
    FirestoreRequestStore,
    InMemoryRequestStore,
    RequestStore,
    StoreWriteError,
    Subscription,
    create_request_store,
)
from src.services.screen_controller import (
    InvalidTransitionError,
    ScreenController,
    SubmissionFailedError,
    SubmissionInProgressError,
    SubmissionPreconditionError,
)
from src.services.sessions import SessionRegistry

__all__ = [
    "FirestoreRequestStore",
    "GeolocationError",
    "GeolocationProvider",
    "InMemoryRequestStore",
    "InvalidTransitionError",
    "ReportedPositionProvider",
    "RequestFeed",
    "RequestStore",
    "ScreenController",
    "SessionRegistry",
    "StoreWriteError",
    "SubmissionFailedError",
    "SubmissionInProgressError",
    "SubmissionPreconditionError",
    "Subscription",
    "create_request_store",
    "haversine_km",
]
