"""Tests for the request store backends.

The Firestore backend is exercised against a MagicMock client, so no
network access or credentials are needed.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from src.models.emergency import EmergencyRequest, NewEmergencyRequest
from src.models.enums import EmergencyCategory
from src.services.request_store import (
    FirestoreRequestStore,
    InMemoryRequestStore,
    RequestStore,
    StoreWriteError,
    create_request_store,
)


def _new(category: EmergencyCategory = EmergencyCategory.FIRE) -> NewEmergencyRequest:
    return NewEmergencyRequest(type=category, latitude=26.85, longitude=80.95)


class _StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


# -----------------------------------------------------------------------
# InMemoryRequestStore
# -----------------------------------------------------------------------


class TestInMemoryRequestStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryRequestStore(), RequestStore)

    async def test_append_assigns_id_and_time(self) -> None:
        store = InMemoryRequestStore(clock=_StepClock())
        stored = await store.append(_new())

        assert stored.id, "store should assign an id"
        assert stored.time == datetime(2026, 1, 1, 0, 0, 1, tzinfo=UTC)
        assert stored.status == "Active"
        assert stored.type == EmergencyCategory.FIRE

    async def test_snapshot_is_newest_first(self) -> None:
        store = InMemoryRequestStore(clock=_StepClock())
        first = await store.append(_new(EmergencyCategory.MEDICAL))
        second = await store.append(_new(EmergencyCategory.RESCUE))

        assert [r.id for r in store.snapshot()] == [second.id, first.id]

    async def test_equal_timestamps_keep_later_insert_first(self) -> None:
        fixed = datetime(2026, 1, 1, tzinfo=UTC)
        store = InMemoryRequestStore(clock=lambda: fixed)
        first = await store.append(_new())
        second = await store.append(_new())

        assert [r.id for r in store.snapshot()] == [second.id, first.id]

    async def test_subscribe_delivers_full_set_on_every_change(self) -> None:
        store = InMemoryRequestStore(clock=_StepClock())
        seen: list[list[EmergencyRequest]] = []
        store.subscribe(seen.append)

        await store.append(_new(EmergencyCategory.MEDICAL))
        await store.append(_new(EmergencyCategory.FIRE))

        assert [len(snapshot) for snapshot in seen] == [0, 1, 2], "initial snapshot then one full set per append"
        assert [r.type for r in seen[-1]] == [EmergencyCategory.FIRE, EmergencyCategory.MEDICAL]

    async def test_unsubscribe_stops_delivery(self) -> None:
        store = InMemoryRequestStore()
        seen: list[list[EmergencyRequest]] = []
        subscription = store.subscribe(seen.append)
        assert store.listener_count == 1

        subscription.unsubscribe()
        subscription.unsubscribe()  # idempotent
        await store.append(_new())

        assert store.listener_count == 0
        assert subscription.active is False
        assert len(seen) == 1, "only the initial snapshot should have been delivered"

    async def test_failing_listener_does_not_block_others(self) -> None:
        store = InMemoryRequestStore()

        def broken(records: list[EmergencyRequest]) -> None:
            raise ValueError("boom")

        seen: list[list[EmergencyRequest]] = []
        store.subscribe(broken)
        store.subscribe(seen.append)

        await store.append(_new())
        assert len(seen[-1]) == 1

    async def test_close_drops_listeners(self) -> None:
        store = InMemoryRequestStore()
        store.subscribe(lambda records: None)
        assert await store.ping() is True
        await store.close()
        assert store.listener_count == 0


# -----------------------------------------------------------------------
# FirestoreRequestStore
# -----------------------------------------------------------------------


def _doc(doc_id: str, data: dict) -> MagicMock:
    doc = MagicMock()
    doc.id = doc_id
    doc.to_dict.return_value = data
    return doc


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def fs_store(client: MagicMock) -> FirestoreRequestStore:
    return FirestoreRequestStore(client=client, collection="emergency_requests")


class TestFirestoreRequestStore:
    async def test_append_uses_server_timestamp(self, client: MagicMock, fs_store: FirestoreRequestStore) -> None:
        written_at = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        ref = MagicMock()
        ref.id = "abc123"
        ref.get.return_value.to_dict.return_value = {
            "type": "Medical",
            "status": "Active",
            "time": written_at,
            "latitude": 26.85,
            "longitude": 80.95,
        }
        client.collection.return_value.add.return_value = (written_at, ref)

        stored = await fs_store.append(_new(EmergencyCategory.MEDICAL))

        client.collection.assert_called_with("emergency_requests")
        data = client.collection.return_value.add.call_args.args[0]
        assert data["time"] is firestore.SERVER_TIMESTAMP
        assert data["type"] == "Medical"
        assert data["status"] == "Active"
        assert stored.id == "abc123"
        assert stored.time == written_at

    async def test_append_failure_becomes_store_write_error(
        self, client: MagicMock, fs_store: FirestoreRequestStore
    ) -> None:
        client.collection.return_value.add.side_effect = google_exceptions.ServiceUnavailable("down")

        with pytest.raises(StoreWriteError):
            await fs_store.append(_new())

    async def test_read_back_failure_keeps_the_written_record(
        self, client: MagicMock, fs_store: FirestoreRequestStore
    ) -> None:
        ref = MagicMock()
        ref.id = "abc123"
        ref.get.side_effect = google_exceptions.ServiceUnavailable("read timed out")
        client.collection.return_value.add.return_value = (None, ref)

        stored = await fs_store.append(_new(EmergencyCategory.RESCUE))

        client.collection.return_value.add.assert_called_once()
        assert stored.id == "abc123"
        assert stored.type == EmergencyCategory.RESCUE
        assert stored.latitude == 26.85
        assert stored.time is None, "server timestamp is still pending"

    def test_subscribe_orders_by_time_descending(self, client: MagicMock, fs_store: FirestoreRequestStore) -> None:
        fs_store.subscribe(lambda records: None)

        client.collection.return_value.order_by.assert_called_once_with(
            "time", direction=firestore.Query.DESCENDING
        )

    def test_snapshot_callback_parses_documents(self, client: MagicMock, fs_store: FirestoreRequestStore) -> None:
        query = client.collection.return_value.order_by.return_value
        seen: list[list[EmergencyRequest]] = []
        subscription = fs_store.subscribe(seen.append)

        callback = query.on_snapshot.call_args.args[0]
        callback(
            [
                _doc("1", {"type": "Fire", "status": "Active", "time": None, "latitude": 1.0, "longitude": 2.0}),
                _doc("2", {"type": "Not a category", "latitude": 1.0, "longitude": 2.0}),
            ],
            [],
            None,
        )

        assert len(seen) == 1
        assert [r.id for r in seen[0]] == ["1"], "malformed documents are skipped"

        subscription.unsubscribe()
        query.on_snapshot.return_value.unsubscribe.assert_called_once()

    async def test_ping(self, client: MagicMock, fs_store: FirestoreRequestStore) -> None:
        client.collection.return_value.limit.return_value.stream.return_value = iter([])
        assert await fs_store.ping() is True

        client.collection.return_value.limit.return_value.stream.side_effect = RuntimeError("no creds")
        assert await fs_store.ping() is False


def test_create_request_store_memory() -> None:
    assert isinstance(create_request_store("memory"), InMemoryRequestStore)


def test_create_request_store_unknown_backend() -> None:
    with pytest.raises(ValueError):
        create_request_store("sqlite")
