"""Pytest fixtures for API tests.

Provides a TestClient wired to an in-memory database and a fake host.
"""

import json
from collections.abc import Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from hostrelay.api.main import create_app
from hostrelay.config import HostConfig, RelayConfig, StoreConfig


class FakeHost(httpx.AsyncBaseTransport):
    """Stands in for the agent host.

    Every call succeeds with an empty JSON object unless a response was
    configured for its path.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, object] = {}

    def respond(self, path: str, status: int = 200, **kwargs) -> None:
        """Configure the response for a host path (json=..., text=...)."""
        self._responses[path] = (status, kwargs)

    def fail(self, path: str, exc: Exception) -> None:
        self._responses[path] = exc

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def last_body(self, path: str) -> dict:
        return json.loads(self.calls(path)[-1].content)

    async def handle_async_request(self, request):
        self.requests.append(request)
        outcome = self._responses.get(request.url.path)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return httpx.Response(200, json={}, request=request)
        status, kwargs = outcome
        return httpx.Response(status, request=request, **kwargs)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(
        host=HostConfig(base_url="http://host.test", api_key="initial-key"),
        store=StoreConfig(database_url="sqlite+aiosqlite:///:memory:"),
    )


@pytest.fixture
def client(relay_config: RelayConfig, host: FakeHost) -> Generator[TestClient, None, None]:
    """TestClient running the full lifespan against the fake host."""
    app = create_app(relay_config, http_client=httpx.AsyncClient(transport=host))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def conversation(client: TestClient) -> dict:
    """A conversation created through the API."""
    response = client.post("/conversation/create")
    assert response.status_code == 201
    return response.json()
