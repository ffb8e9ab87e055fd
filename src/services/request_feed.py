"""Live request list backing the volunteer dashboard and the tracking map.

A :class:`RequestFeed` owns at most one store subscription.  Every push
carries the full ordered result set and replaces the visible list
wholesale; there is no delta merging, pagination or filtering.  The
subscription is released on :meth:`RequestFeed.unmount` (or on leaving
the ``with`` block), so a view that goes away never leaves an open
channel behind.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable
from types import TracebackType

import structlog

from src.models.emergency import EmergencyRequest
from src.services.request_store import RequestStore, Subscription

logger = structlog.get_logger(__name__)

_Sink = Callable[[list[EmergencyRequest]], None]


class RequestFeed:
    """Request list view model over a :class:`RequestStore` subscription.

    Usage::

        with RequestFeed(store) as feed:
            async for requests in feed.stream():
                render(requests)
    """

    __slots__ = ("_lock", "_received", "_requests", "_sinks", "_store", "_subscription")

    def __init__(self, store: RequestStore) -> None:
        self._store = store
        self._subscription: Subscription | None = None
        self._requests: list[EmergencyRequest] = []
        self._received = False
        self._sinks: list[_Sink] = []
        # Snapshots may arrive on a store-owned thread.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def mounted(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def mount(self) -> None:
        """Open the subscription; a second call is a no-op."""
        if self.mounted:
            return
        self._subscription = self._store.subscribe(self._on_snapshot)
        logger.info("request_feed.mounted")

    def unmount(self) -> None:
        """Release the subscription; safe to call more than once."""
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        subscription.unsubscribe()
        logger.info("request_feed.unmounted")

    def __enter__(self) -> RequestFeed:
        self.mount()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.unmount()

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    @property
    def requests(self) -> list[EmergencyRequest]:
        with self._lock:
            return list(self._requests)

    async def stream(self) -> AsyncIterator[list[EmergencyRequest]]:
        """Yield every snapshot in arrival order, starting with the current one.

        Safe to consume while snapshots are delivered from another thread.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[list[EmergencyRequest]] = asyncio.Queue()

        def sink(records: list[EmergencyRequest]) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, records)

        with self._lock:
            self._sinks.append(sink)
            if self._received:
                queue.put_nowait(list(self._requests))
        try:
            while True:
                yield await queue.get()
        finally:
            with self._lock:
                self._sinks.remove(sink)

    def _on_snapshot(self, records: list[EmergencyRequest]) -> None:
        with self._lock:
            self._requests = list(records)
            self._received = True
            sinks = list(self._sinks)
        logger.debug("request_feed.snapshot", count=len(records))
        for sink in sinks:
            sink(list(records))
