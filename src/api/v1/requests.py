"""Emergency request listing and the live WebSocket feed.

The dashboard renders ``GET /requests`` once and then follows
``WS /requests/feed``, which pushes the full ordered list (newest first)
after every change.  Each socket holds exactly one store subscription,
released as soon as the socket closes.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing

import structlog
from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from src.models.emergency import EmergencyRequest
from src.services.request_feed import RequestFeed

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"])

_SNAPSHOT_TIMEOUT_SECONDS = 10.0


def _serialise(records: list[EmergencyRequest]) -> list[dict]:
    return [record.model_dump(mode="json") for record in records]


@router.get("", response_model=list[EmergencyRequest])
async def list_requests(request: Request) -> list[EmergencyRequest]:
    """Current result set, ordered by creation time descending."""
    store = getattr(request.app.state, "request_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Request store not available")

    with RequestFeed(store) as feed:
        async with aclosing(feed.stream()) as snapshots:
            try:
                return await asyncio.wait_for(anext(snapshots), timeout=_SNAPSHOT_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning("api.requests.snapshot_timeout")
                raise HTTPException(status_code=504, detail="Request store did not answer") from None


async def _push_snapshots(websocket: WebSocket, feed: RequestFeed) -> None:
    async with aclosing(feed.stream()) as snapshots:
        async for records in snapshots:
            await websocket.send_json(_serialise(records))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client frames, text or binary, carry no meaning; reading only detects the close.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/feed")
async def request_feed(websocket: WebSocket) -> None:
    store = getattr(websocket.app.state, "request_store", None)
    if store is None:
        await websocket.close(code=1013)
        return

    await websocket.accept()
    with RequestFeed(store) as feed:
        push = asyncio.create_task(_push_snapshots(websocket, feed))
        listen = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            done, _ = await asyncio.wait({push, listen}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            push.cancel()
            listen.cancel()
        await asyncio.gather(push, listen, return_exceptions=True)

        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("api.requests.feed_failed", exc_info=exc)

    logger.info("api.requests.feed_closed")
