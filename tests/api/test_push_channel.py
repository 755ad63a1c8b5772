"""Tests for the WebSocket and SSE push channels."""

import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from hostrelay.api.routes.events import _event_generator
from hostrelay.config import FanoutConfig, RelayConfig
from hostrelay.services.broadcaster import Broadcaster


class TestWebSocket:
    """WS / and /ws."""

    @pytest.mark.parametrize("path", ["/", "/ws"])
    def test_greeting_on_connect(self, client: TestClient, path):
        with client.websocket_connect(path) as ws:
            greeting = ws.receive_json()
            assert greeting["type"] == "system"
            assert greeting["data"]["message"] == "Connected to WebSocket server"
            assert greeting["data"]["subscriber_id"]
            assert client.get("/health").json()["subscribers"] == 1

    def test_echo_reaches_all_viewers(self, client: TestClient):
        with client.websocket_connect("/") as sender, client.websocket_connect("/ws") as other:
            sender_id = sender.receive_json()["data"]["subscriber_id"]
            other.receive_json()

            sender.send_text(json.dumps({"typing": True}))
            expected = {"type": "echo", "data": {"typing": True}, "origin": sender_id}
            assert sender.receive_json() == expected
            assert other.receive_json() == expected

    def test_invalid_message_gets_error_reply(self, client: TestClient):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_text("this is not json")
            assert ws.receive_json() == {
                "type": "error",
                "data": {"message": "Invalid message format."},
            }

    def test_binary_frame_keeps_connection_open(self, client: TestClient):
        with client.websocket_connect("/ws") as ws:
            sender_id = ws.receive_json()["data"]["subscriber_id"]
            ws.send_bytes(b"\x80\x81")
            assert ws.receive_json() == {
                "type": "error",
                "data": {"message": "Invalid message format."},
            }

            ws.send_bytes(json.dumps({"typing": False}).encode())
            assert ws.receive_json() == {
                "type": "echo",
                "data": {"typing": False},
                "origin": sender_id,
            }


@pytest.mark.integration
def test_viewer_sees_conversation_message_and_task_in_order(client: TestClient):
    """One viewer observes create, send and task update as three ordered events."""
    with client.websocket_connect("/") as ws:
        assert ws.receive_json()["type"] == "system"

        conversation = client.post("/conversation/create").json()
        client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "user",
            "content": [{"type": "text", "text": "Plan my trip"}],
        })
        client.post("/host/task_update", json={
            "id": "task-1",
            "contextId": conversation["id"],
            "status": "completed",
            "artifacts": [{"artifactId": "itinerary", "content": [{"type": "text", "text": "Day 1"}]}],
        })

        events = [ws.receive_json() for _ in range(3)]
        assert [e["type"] for e in events] == [
            "conversation_created",
            "new_message",
            "task_updated",
        ]
        assert events[0]["data"]["id"] == conversation["id"]
        assert events[1]["data"]["conversation_id"] == conversation["id"]
        assert events[2]["data"]["artifacts"][0]["content"] == [{"type": "text", "text": "Day 1"}]


def test_failed_requests_broadcast_nothing(client: TestClient, host):
    """A rejected task update and a failed host call leave viewers untouched."""
    with client.websocket_connect("/") as ws:
        ws.receive_json()
        client.post("/host/task_update", json={"status": "working"})
        host.respond("/create_conversation_service", 500, text="down")
        client.post("/conversation/create")

        # The next thing the viewer sees is its own echo, not a stray event.
        ws.send_text(json.dumps({"marker": 1}))
        assert ws.receive_json()["type"] == "echo"


class _FakeRequest:
    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


def _sse_services(broadcaster: Broadcaster, ping_interval: float = 5.0):
    config = RelayConfig(fanout=FanoutConfig(ping_interval_seconds=ping_interval))
    return SimpleNamespace(config=config, broadcaster=broadcaster)


class TestServerSentEvents:
    """GET /events/stream generator."""

    @pytest.mark.asyncio
    async def test_greeting_then_published_events(self):
        broadcaster = Broadcaster()
        subscriber = broadcaster.register("sse")
        gen = _event_generator(_FakeRequest(), subscriber, _sse_services(broadcaster))

        greeting = json.loads((await gen.__anext__())["data"])
        assert greeting["type"] == "system"

        await broadcaster.publish({"type": "agent_registered", "data": {"id": "a1"}})
        event = json.loads((await gen.__anext__())["data"])
        assert event == {"type": "agent_registered", "data": {"id": "a1"}}

        await gen.aclose()
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_ping_when_idle(self):
        broadcaster = Broadcaster()
        subscriber = broadcaster.register("sse")
        gen = _event_generator(
            _FakeRequest(), subscriber, _sse_services(broadcaster, ping_interval=0.01)
        )
        await gen.__anext__()
        ping = json.loads((await gen.__anext__())["data"])
        assert ping == {"type": "ping"}
        await gen.aclose()

    @pytest.mark.asyncio
    async def test_stops_on_disconnect(self):
        broadcaster = Broadcaster()
        subscriber = broadcaster.register("sse")
        request = _FakeRequest()
        gen = _event_generator(request, subscriber, _sse_services(broadcaster))
        await gen.__anext__()

        request.disconnected = True
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(gen.__anext__(), timeout=1.0)
        assert broadcaster.subscriber_count == 0
