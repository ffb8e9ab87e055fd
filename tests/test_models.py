"""Tests for the emergency request and screen-state models, and settings defaults."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from config.settings import Settings
from src.models import (
    Coordinates,
    EmergencyCategory,
    EmergencyRequest,
    NewEmergencyRequest,
    Screen,
    ScreenState,
)


class TestEmergencyCategory:
    def test_closed_set(self) -> None:
        assert [c.value for c in EmergencyCategory] == ["Medical", "Fire", "Food/Shelter", "Rescue"]

    def test_empty_string_is_not_a_category(self) -> None:
        with pytest.raises(ValueError):
            EmergencyCategory("")


class TestEmergencyRequest:
    def test_new_request_defaults_to_active(self) -> None:
        record = NewEmergencyRequest(type=EmergencyCategory.RESCUE, latitude=1.5, longitude=2.5)
        assert record.to_document() == {
            "type": "Rescue",
            "status": "Active",
            "latitude": 1.5,
            "longitude": 2.5,
        }

    def test_requires_coordinates(self) -> None:
        with pytest.raises(ValidationError):
            NewEmergencyRequest(type=EmergencyCategory.FIRE, latitude=1.0)  # type: ignore[call-arg]

    def test_records_are_immutable(self) -> None:
        record = EmergencyRequest(id="1", type=EmergencyCategory.FIRE, latitude=1.0, longitude=2.0)
        with pytest.raises(ValidationError):
            record.latitude = 5.0  # type: ignore[misc]

    def test_from_document(self) -> None:
        when = datetime(2026, 10, 19, tzinfo=UTC)
        record = EmergencyRequest.from_document(
            "doc-1",
            {"type": "Food/Shelter", "status": "Active", "time": when, "latitude": 3.0, "longitude": 4.0},
        )
        assert record.id == "doc-1"
        assert record.type == EmergencyCategory.FOOD_SHELTER
        assert record.time == when
        assert (record.latitude, record.longitude) == (3.0, 4.0)

    def test_pending_server_timestamp_allowed(self) -> None:
        record = EmergencyRequest.from_document("doc-2", {"type": "Fire", "latitude": 0.0, "longitude": 0.0})
        assert record.time is None


class TestScreenState:
    def test_can_submit_needs_category_and_location(self) -> None:
        state = ScreenState(screen=Screen.CATEGORY)
        assert state.can_submit is False

        state.selected_category = EmergencyCategory.MEDICAL
        assert state.can_submit is False

        state.location = Coordinates(lat=26.85, lng=80.95)
        assert state.can_submit is True

        state.submitting = True
        assert state.can_submit is False

    def test_can_submit_serialised(self) -> None:
        assert ScreenState().model_dump()["can_submit"] is False


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RESQUENET_STORE_BACKEND", raising=False)
        settings = Settings(_env_file=None)
        assert settings.store_backend == "memory"
        assert settings.requests_collection == "emergency_requests"
        assert (settings.volunteer_latitude, settings.volunteer_longitude) == (26.85, 80.95)
        assert settings.map_zoom == 13

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESQUENET_STORE_BACKEND", "firestore")
        monkeypatch.setenv("GCP_PROJECT_ID", "resquenet-test")
        monkeypatch.setenv("RESQUENET_STORE_WRITE_ATTEMPTS", "5")

        settings = Settings(_env_file=None)
        assert settings.store_backend == "firestore"
        assert settings.gcp_project_id == "resquenet-test"
        assert settings.store_write_attempts == 5

    def test_rejects_unknown_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESQUENET_STORE_BACKEND", "sqlite")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
