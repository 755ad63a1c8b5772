"""Live-update push channels: WebSocket (read/write) and SSE (read-only).

Both transports register a subscriber with the broadcaster and run one
writer that drains the subscriber's queue, which keeps per-viewer delivery
in publish order. WebSocket viewers may also send JSON, which is echoed to
everyone.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sse_starlette.sse import EventSourceResponse

from hostrelay.api.deps import get_services
from hostrelay.services.broadcaster import Subscriber, encode_event, greeting_event
from hostrelay.services.container import RelayServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


async def _write_loop(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Send queued events until the subscriber is closed."""
    while True:
        text = await subscriber.next_message()
        if text is None:
            return
        await websocket.send_text(text)


async def _read_loop(
    websocket: WebSocket, subscriber: Subscriber, services: RelayServices
) -> None:
    """Relay inbound viewer frames, text or binary, until the socket closes."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes")
        await services.broadcaster.relay_inbound(subscriber, raw)


async def _serve_websocket(websocket: WebSocket, services: RelayServices) -> None:
    await websocket.accept()
    broadcaster = services.broadcaster
    subscriber = broadcaster.register("websocket")
    await websocket.send_text(encode_event(greeting_event(subscriber.id)))

    writer = asyncio.create_task(_write_loop(websocket, subscriber))
    reader = asyncio.create_task(_read_loop(websocket, subscriber, services))
    dropped = False
    try:
        done, _ = await asyncio.wait(
            {writer, reader}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Subscriber %s channel error: %s", subscriber.id, exc)
        dropped = writer in done and reader not in done
    finally:
        broadcaster.unregister(subscriber.id)
        for task in (writer, reader):
            task.cancel()
        await asyncio.gather(writer, reader, return_exceptions=True)

    if dropped:
        # Dropped by the broadcaster (outbound queue overflow).
        await websocket.close()


@router.websocket("/")
async def websocket_root(
    websocket: WebSocket,
    services: RelayServices = Depends(get_services),
) -> None:
    """Push channel at the root path, as the browser UI expects."""
    await _serve_websocket(websocket, services)


@router.websocket("/ws")
async def websocket_ws(
    websocket: WebSocket,
    services: RelayServices = Depends(get_services),
) -> None:
    """Same push channel under an explicit path."""
    await _serve_websocket(websocket, services)


async def _event_generator(
    request: Request,
    subscriber: Subscriber,
    services: RelayServices,
) -> AsyncGenerator[dict, None]:
    """Generate SSE events from the subscriber's queue.

    Yields the greeting first, then every published event. Sends a ping
    after each quiet interval so proxies keep the connection open.
    """
    interval = services.config.fanout.ping_interval_seconds
    try:
        yield {"data": encode_event(greeting_event(subscriber.id))}
        while True:
            if await request.is_disconnected():
                break
            try:
                text = await subscriber.next_message(timeout=interval)
            except asyncio.TimeoutError:
                yield {"data": json.dumps({"type": "ping"})}
                continue
            if text is None:
                break
            yield {"data": text}
    finally:
        services.broadcaster.unregister(subscriber.id)


@router.get("/events/stream")
async def stream_events(
    request: Request,
    services: RelayServices = Depends(get_services),
) -> EventSourceResponse:
    """Stream the live fan-out via Server-Sent Events."""
    subscriber = services.broadcaster.register("sse")
    return EventSourceResponse(
        _event_generator(request, subscriber, services),
        media_type="text/event-stream",
    )
