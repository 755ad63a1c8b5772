"""Fan-out broadcaster for live updates.

Maintains the set of connected viewers (WebSocket or SSE) and pushes every
published event to all of them. Each subscriber owns a bounded outbound
queue drained by exactly one writer task, so a viewer sees events in
publish order and a slow viewer never delays the others: when its queue
is full it is dropped instead.

There is no backlog. A viewer that reconnects starts from the events
published after it registered and re-reads state through the list routes.
"""

import asyncio
import json
import logging
from typing import Any

from hostrelay.utils.ids import generate_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 1000

GREETING_TEXT = "Connected to WebSocket server"
INVALID_FORMAT_TEXT = "Invalid message format."


def encode_event(event: dict[str, Any]) -> str:
    """Serialize an outbound event once for all subscribers."""
    return json.dumps(event, ensure_ascii=False)


def greeting_event(subscriber_id: str) -> dict[str, Any]:
    """Direct greeting sent to a newly connected viewer."""
    return {
        "type": "system",
        "data": {"message": GREETING_TEXT, "subscriber_id": subscriber_id},
    }


def invalid_format_event() -> dict[str, Any]:
    """Direct reply to a viewer that sent non-JSON text."""
    return {"type": "error", "data": {"message": INVALID_FORMAT_TEXT}}


class Subscriber:
    """One live viewer connection.

    Attributes:
        id: Opaque subscriber identifier.
        transport: 'websocket' or 'sse'.
    """

    def __init__(self, transport: str, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.id = generate_id()
        self.transport = transport
        # None is the end-of-stream sentinel; one extra slot keeps room for it.
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_pending + 1)
        self._max_pending = max_pending
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of queued messages not yet written to the transport."""
        return self._queue.qsize()

    def offer(self, text: str) -> bool:
        """Queue one serialized event without waiting.

        Returns:
            False if the subscriber is closed or its queue is full.
        """
        if self._closed or self._queue.qsize() >= self._max_pending:
            return False
        self._queue.put_nowait(text)
        return True

    def close(self) -> None:
        """Stop accepting events and wake the writer. Queued events are discarded."""
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def next_message(self, timeout: float | None = None) -> str | None:
        """Wait for the next queued event.

        Args:
            timeout: Seconds to wait; None waits forever.

        Returns:
            The serialized event, or None once the subscriber is closed.

        Raises:
            asyncio.TimeoutError: Nothing arrived within ``timeout``.
        """
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def __repr__(self) -> str:
        return f"<Subscriber(id={self.id!r}, transport={self.transport!r})>"


class Broadcaster:
    """Registry of live subscribers plus the publish operation.

    Args:
        max_pending: Outbound queue bound per subscriber.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._max_pending = max_pending
        self._subscribers: dict[str, Subscriber] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def register(self, transport: str = "websocket") -> Subscriber:
        """Add a new subscriber and return it."""
        subscriber = Subscriber(transport, self._max_pending)
        self._subscribers[subscriber.id] = subscriber
        logger.info(
            "Subscriber %s connected via %s (%d live)",
            subscriber.id,
            transport,
            len(self._subscribers),
        )
        return subscriber

    def unregister(self, subscriber_id: str) -> None:
        """Remove and close a subscriber. No-op if already gone."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        subscriber.close()
        logger.info(
            "Subscriber %s disconnected (%d live)", subscriber_id, len(self._subscribers)
        )

    async def publish(self, event: dict[str, Any]) -> int:
        """Push one event to every live subscriber.

        The event is serialized once. A subscriber whose queue is full or
        closed is removed without retry.

        Args:
            event: JSON-compatible event, conventionally ``{"type", "data"}``.

        Returns:
            Number of subscribers the event was queued for.
        """
        text = encode_event(event)
        delivered = 0
        failed: list[Subscriber] = []
        for subscriber in list(self._subscribers.values()):
            if subscriber.offer(text):
                delivered += 1
            else:
                failed.append(subscriber)

        for subscriber in failed:
            logger.warning(
                "Dropping subscriber %s: delivery of %s failed (%d pending)",
                subscriber.id,
                event.get("type"),
                subscriber.pending,
            )
            self.unregister(subscriber.id)

        logger.debug(
            "Published %s to %d subscriber(s)", event.get("type"), delivered
        )
        return delivered

    async def relay_inbound(self, sender: Subscriber, raw: str | bytes | None) -> int:
        """Handle a frame a viewer sent over its push channel.

        Valid JSON is re-broadcast to everyone (sender included) as an echo
        event. Binary frames must hold UTF-8 JSON. Anything else gets an
        error reply to the sender only.

        Returns:
            Number of subscribers the echo reached (0 on invalid input).
        """
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("Invalid message from subscriber %s", sender.id)
            if not sender.offer(encode_event(invalid_format_event())):
                self.unregister(sender.id)
            return 0

        return await self.publish({"type": "echo", "data": payload, "origin": sender.id})

    def close_all(self) -> None:
        """Close every subscriber (shutdown)."""
        for subscriber_id in list(self._subscribers):
            self.unregister(subscriber_id)
