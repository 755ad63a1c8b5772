"""Tests for the relay HTTP routes."""

import base64

import httpx
from fastapi.testclient import TestClient


class TestConversationRoutes:
    """POST /conversation/create, /conversation/list, DELETE /conversation/{id}."""

    def test_create_uses_fallback_name(self, client: TestClient, host):
        response = client.post("/conversation/create")
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Conversation created successfully"
        assert body["name"] == f"Conversation {body['id'][:8]}"
        assert body["is_active"] is True
        assert len(host.calls("/create_conversation_service")) == 1

    def test_create_uses_host_name(self, client: TestClient, host):
        host.respond("/create_conversation_service", json={"name": "Trip planning"})
        response = client.post("/conversation/create")
        assert response.json()["name"] == "Trip planning"

    def test_host_failure_is_502(self, client: TestClient, host):
        host.respond("/create_conversation_service", 500, text="host exploded")
        response = client.post("/conversation/create")
        assert response.status_code == 502
        body = response.json()
        assert body["status_code"] == 500
        assert body["details"] == "host exploded"
        assert client.post("/conversation/list").json() == []

    def test_host_unreachable_is_502(self, client: TestClient, host):
        host.fail("/create_conversation_service", httpx.ConnectError("refused"))
        response = client.post("/conversation/create")
        assert response.status_code == 502
        assert response.json()["status_code"] is None

    def test_list_newest_first(self, client: TestClient):
        first = client.post("/conversation/create").json()
        second = client.post("/conversation/create").json()
        listed = client.post("/conversation/list").json()
        assert [c["id"] for c in listed] == [second["id"], first["id"]]

    def test_delete(self, client: TestClient, conversation):
        response = client.delete(f"/conversation/{conversation['id']}")
        assert response.status_code == 204
        assert client.post("/conversation/list").json() == []

        again = client.delete(f"/conversation/{conversation['id']}")
        assert again.status_code == 404
        assert again.json()["error_code"] == "E-2001"


class TestAgentRoutes:
    """POST /agent/register and /agent/list."""

    def test_missing_url_is_400(self, client: TestClient, host):
        response = client.post("/agent/register", json={})
        assert response.status_code == 400
        assert response.json()["fields"] == ["agent_url"]
        assert host.calls("/register_agent_service") == []

    def test_register_with_host_metadata(self, client: TestClient, host):
        host.respond("/register_agent_service", json={
            "data": {"name": "Planner", "description": "Plans trips", "icon": "p.png"},
        })
        response = client.post("/agent/register", json={"agent_url": "http://planner.test"})
        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Planner"
        assert body["description"] == "Plans trips"
        assert body["icon"] == "p.png"
        assert body["message"] == "Agent registered successfully"
        assert host.last_body("/register_agent_service") == {"agent_url": "http://planner.test"}

    def test_register_fallbacks(self, client: TestClient):
        body = client.post("/agent/register", json={"agent_url": "http://a.test"}).json()
        assert body["name"] == "Agent at http://a.test"
        assert body["description"] == "No description provided."
        assert body["icon"] is None

    def test_duplicate_is_409(self, client: TestClient):
        client.post("/agent/register", json={"agent_url": "http://a.test"})
        response = client.post("/agent/register", json={"agent_url": "http://a.test"})
        assert response.status_code == 409
        assert len(client.post("/agent/list").json()) == 1

    def test_host_failure_is_502(self, client: TestClient, host):
        host.respond("/register_agent_service", 503, text="busy")
        response = client.post("/agent/register", json={"agent_url": "http://a.test"})
        assert response.status_code == 502
        assert client.post("/agent/list").json() == []


class TestMessageRoutes:
    """POST /message/send and /message/list."""

    def test_send_relays_then_stores(self, client: TestClient, host, conversation):
        content = [{"type": "text", "text": "Hello"}]
        response = client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "user",
            "content": content,
            "task_id": "t-1",
        })
        assert response.status_code == 201
        stored = response.json()["data"]
        assert stored["content"] == content

        relayed = host.last_body("/send_message_service")
        assert relayed == {
            "messageId": stored["id"],
            "contextId": conversation["id"],
            "role": "user",
            "parts": content,
            "taskId": "t-1",
        }

        listed = client.post("/message/list", json={"conversation_id": conversation["id"]})
        assert listed.json() == [stored]

    def test_send_without_task_omits_task_id(self, client: TestClient, host, conversation):
        client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "user",
            "content": [],
        })
        assert "taskId" not in host.last_body("/send_message_service")

    def test_unknown_conversation_is_404_and_not_relayed(self, client: TestClient, host):
        response = client.post("/message/send", json={
            "conversation_id": "ghost",
            "role": "user",
            "content": [{"type": "text", "text": "hi"}],
        })
        assert response.status_code == 404
        assert host.calls("/send_message_service") == []

    def test_invalid_role_is_400(self, client: TestClient, conversation):
        response = client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "system",
            "content": [],
        })
        assert response.status_code == 400
        assert "role" in response.json()["fields"]

    def test_content_must_be_a_list(self, client: TestClient, conversation):
        response = client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "user",
            "content": "plain text",
        })
        assert response.status_code == 400

    def test_host_failure_stores_nothing(self, client: TestClient, host, conversation):
        host.respond("/send_message_service", 500, text="nope")
        response = client.post("/message/send", json={
            "conversation_id": conversation["id"],
            "role": "user",
            "content": [],
        })
        assert response.status_code == 502
        listed = client.post("/message/list", json={"conversation_id": conversation["id"]})
        assert listed.json() == []

    def test_list_requires_conversation_id(self, client: TestClient):
        response = client.post("/message/list", json={})
        assert response.status_code == 400
        assert response.json()["fields"] == ["conversation_id"]


class TestTaskRoutes:
    """POST /host/task_update and /task/list."""

    def test_task_update_received(self, client: TestClient, conversation):
        response = client.post("/host/task_update", json={
            "id": "task-1",
            "contextId": conversation["id"],
            "status": "working",
            "artifacts": [{"artifactId": "a1", "content": [{"type": "text", "text": "x"}]}],
        })
        assert response.status_code == 200
        assert response.json() == {"status": "received", "taskId": "task-1"}

        tasks = client.post("/task/list", json={"conversation_id": conversation["id"]}).json()
        assert len(tasks) == 1
        assert tasks[0]["state_details"] == "working"
        assert tasks[0]["artifacts"][0]["artifact_id_ref"] == "a1"

    def test_task_update_missing_fields_is_400(self, client: TestClient):
        response = client.post("/host/task_update", json={"status": "working"})
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "E-1001"
        assert body["fields"] == ["id", "contextId"]

    def test_task_update_without_body_is_400(self, client: TestClient):
        response = client.post("/host/task_update")
        assert response.status_code == 400

    def test_task_update_unknown_conversation_is_500(self, client: TestClient):
        response = client.post("/host/task_update", json={
            "id": "task-1", "contextId": "ghost", "status": "working",
        })
        assert response.status_code == 500
        assert response.json()["error_code"] == "E-4001"

    def test_task_list_all_and_filtered(self, client: TestClient):
        c1 = client.post("/conversation/create").json()
        c2 = client.post("/conversation/create").json()
        for task_id, conv in (("t1", c1), ("t2", c2)):
            client.post("/host/task_update", json={
                "id": task_id, "contextId": conv["id"], "status": "working",
            })

        all_tasks = client.post("/task/list").json()
        assert [t["id"] for t in all_tasks] == ["t2", "t1"]
        only_c1 = client.post("/task/list", json={"conversation_id": c1["id"]}).json()
        assert [t["id"] for t in only_c1] == ["t1"]


class TestFileRoutes:
    """POST /host/file_received and GET /message/file/{id}."""

    def test_receive_and_download(self, client: TestClient):
        payload = b"%PDF-1.4 fake"
        response = client.post("/host/file_received", json={
            "name": "report.pdf",
            "mime_type": "application/pdf",
            "bytes": base64.b64encode(payload).decode(),
        })
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "file_received"

        download = client.get(f"/message/file/{body['file_id']}")
        assert download.status_code == 200
        assert download.content == payload
        assert download.headers["content-type"] == "application/pdf"

    def test_host_chosen_id_and_duplicate(self, client: TestClient):
        body = {
            "file_id": "file-1",
            "name": "a.txt",
            "mime_type": "text/plain",
            "bytes": base64.b64encode(b"abc").decode(),
        }
        first = client.post("/host/file_received", json=body)
        assert first.json()["file_id"] == "file-1"
        assert client.post("/host/file_received", json=body).status_code == 409

    def test_bad_base64_is_400(self, client: TestClient):
        response = client.post("/host/file_received", json={
            "name": "a.bin", "mime_type": "application/octet-stream", "bytes": "***",
        })
        assert response.status_code == 400
        assert response.json()["fields"] == ["bytes"]

    def test_missing_fields_is_400(self, client: TestClient):
        response = client.post("/host/file_received", json={"name": "a.bin"})
        assert response.status_code == 400
        assert set(response.json()["fields"]) == {"mime_type", "bytes"}

    def test_unknown_file_is_404(self, client: TestClient):
        assert client.get("/message/file/ghost").status_code == 404


class TestApiKeyRoute:
    """POST /api_key/update."""

    def test_update_applies_to_next_host_call(self, client: TestClient, host):
        client.post("/conversation/create")
        response = client.post("/api_key/update", json={"api_key": "rotated"})
        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "API key updated for future host communications.",
        }
        client.post("/conversation/create")

        keys = [r.headers["X-API-Key"] for r in host.calls("/create_conversation_service")]
        assert keys == ["initial-key", "rotated"]

    def test_empty_key_allowed(self, client: TestClient):
        assert client.post("/api_key/update", json={"api_key": ""}).status_code == 200

    def test_non_string_key_is_400(self, client: TestClient):
        assert client.post("/api_key/update", json={"api_key": 12345}).status_code == 400
        assert client.post("/api_key/update", json={}).status_code == 400


def test_health(client: TestClient):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["subscribers"] == 0
    assert "version" in body
