"""Emergency request store with Firestore primary and in-process fallback.

The store is append-only: records are created by the submitting client
and read by every subscriber, never updated or deleted.  Subscribers
receive the *complete* ordered result set (newest first) on every change,
not a delta, matching Firestore's ``on_snapshot`` semantics.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import structlog
from pydantic import ValidationError

from src.models.emergency import EmergencyRequest, NewEmergencyRequest

logger = structlog.get_logger(__name__)

Listener = Callable[[list[EmergencyRequest]], None]

ORDER_FIELD = "time"


class StoreWriteError(Exception):
    """An append did not reach the store.  Safe to retry."""


class Subscription:
    """Handle for one live snapshot listener."""

    __slots__ = ("_active", "_release")

    def __init__(self, release: Callable[[], Any]) -> None:
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class RequestStore(Protocol):
    """Append-only collection of :class:`EmergencyRequest` records."""

    async def append(self, record: NewEmergencyRequest) -> EmergencyRequest: ...

    def subscribe(self, listener: Listener) -> Subscription: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _deliver(listener: Listener, records: list[EmergencyRequest]) -> None:
    # One broken listener must not starve the others.
    try:
        listener(records)
    except Exception:
        logger.error("request_store.listener_failed", exc_info=True)


# ---------------------------------------------------------------------------
# In-process backend
# ---------------------------------------------------------------------------


class InMemoryRequestStore:
    """Process-local store for development and tests.

    Listeners are called synchronously from :meth:`append`, and once on
    :meth:`subscribe` with the current result set.
    """

    __slots__ = ("_clock", "_listeners", "_records", "_seq", "_tokens")

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._records: list[tuple[int, EmergencyRequest]] = []
        self._listeners: dict[int, Listener] = {}
        self._seq = itertools.count(1)
        self._tokens = itertools.count(1)

    async def append(self, record: NewEmergencyRequest) -> EmergencyRequest:
        stored = EmergencyRequest(
            id=uuid4().hex,
            time=self._clock(),
            **record.model_dump(),
        )
        self._records.append((next(self._seq), stored))
        logger.info("request_store.appended", request_id=stored.id, type=stored.type.value)
        self._notify()
        return stored

    def snapshot(self) -> list[EmergencyRequest]:
        """Current records ordered by ``time`` descending; later inserts win ties."""
        ordered = sorted(self._records, key=lambda item: (item[1].time, item[0]), reverse=True)
        return [record for _, record in ordered]

    def subscribe(self, listener: Listener) -> Subscription:
        token = next(self._tokens)
        self._listeners[token] = listener
        logger.debug("request_store.subscribed", listeners=len(self._listeners))
        _deliver(listener, self.snapshot())
        return Subscription(lambda: self._listeners.pop(token, None))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._listeners.clear()

    def _notify(self) -> None:
        records = self.snapshot()
        for listener in list(self._listeners.values()):
            _deliver(listener, list(records))


# ---------------------------------------------------------------------------
# Firestore backend
# ---------------------------------------------------------------------------


def _parse_documents(docs: Any) -> list[EmergencyRequest]:
    records: list[EmergencyRequest] = []
    for doc in docs:
        try:
            records.append(EmergencyRequest.from_document(doc.id, doc.to_dict() or {}))
        except ValidationError:
            logger.warning("request_store.bad_document", doc_id=doc.id, exc_info=True)
    return records


class FirestoreRequestStore:
    """Firestore-backed store using the synchronous ``google-cloud-firestore`` client.

    Writes run in a worker thread.  Snapshot callbacks arrive on the
    client library's watch thread; listeners must be thread-safe.
    """

    __slots__ = ("_client", "_collection")

    def __init__(
        self,
        project_id: str = "",
        *,
        database: str = "(default)",
        collection: str = "emergency_requests",
        client: Any = None,
    ) -> None:
        if client is None:
            from google.cloud import firestore

            client = firestore.Client(project=project_id or None, database=database)
        self._client = client
        self._collection = collection

    async def append(self, record: NewEmergencyRequest) -> EmergencyRequest:
        """Write *record* once, then read it back for the server timestamp.

        Only the write raises :class:`StoreWriteError`.  Once ``add`` has
        succeeded the record exists, so a failed read-back returns it with
        ``time`` still pending rather than inviting a second write.
        """
        from google.api_core import exceptions as google_exceptions
        from google.cloud import firestore

        data = record.to_document()
        data[ORDER_FIELD] = firestore.SERVER_TIMESTAMP

        try:
            _, ref = await asyncio.to_thread(self._client.collection(self._collection).add, data)
        except google_exceptions.GoogleAPIError as exc:
            logger.warning("request_store.append_failed", collection=self._collection, error=str(exc))
            raise StoreWriteError(str(exc)) from exc

        try:
            snapshot = await asyncio.to_thread(ref.get)
        except google_exceptions.GoogleAPIError as exc:
            logger.warning("request_store.read_back_failed", request_id=ref.id, error=str(exc))
            stored = EmergencyRequest(id=ref.id, **record.model_dump())
        else:
            stored = EmergencyRequest.from_document(ref.id, snapshot.to_dict() or {})

        logger.info("request_store.appended", request_id=stored.id, type=stored.type.value)
        return stored

    def subscribe(self, listener: Listener) -> Subscription:
        from google.cloud import firestore

        query = self._client.collection(self._collection).order_by(
            ORDER_FIELD, direction=firestore.Query.DESCENDING
        )

        def _on_snapshot(docs: Any, changes: Any, read_time: Any) -> None:
            _deliver(listener, _parse_documents(docs))

        watch = query.on_snapshot(_on_snapshot)
        logger.debug("request_store.subscribed", collection=self._collection)
        return Subscription(watch.unsubscribe)

    async def ping(self) -> bool:
        """Return *True* if the collection can be read."""
        try:
            await asyncio.to_thread(
                lambda: list(self._client.collection(self._collection).limit(1).stream())
            )
            return True
        except Exception:
            return False

    async def close(self) -> None:
        self._client.close()


def create_request_store(
    backend: str,
    *,
    project_id: str = "",
    database: str = "(default)",
    collection: str = "emergency_requests",
) -> RequestStore:
    """Build the store named by *backend* (``"memory"`` or ``"firestore"``)."""
    if backend == "firestore":
        return FirestoreRequestStore(project_id, database=database, collection=collection)
    if backend == "memory":
        return InMemoryRequestStore()
    raise ValueError(f"unknown request store backend: {backend!r}")
