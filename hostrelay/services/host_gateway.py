"""Outbound HTTP gateway to the agent-orchestration host.

Thin wrapper around httpx. Every call is a JSON POST carrying the current
API key in ``X-API-Key``. Failures are returned as data: each call yields a
``GatewayResult`` holding either the decoded JSON body or a
``HostGatewayError``, so the ingress handler decides the response code and
nothing is raised across the gateway boundary.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any

import httpx

from hostrelay.errors import HostGatewayError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

REGISTER_AGENT_PATH = "/register_agent_service"
CREATE_CONVERSATION_PATH = "/create_conversation_service"
SEND_MESSAGE_PATH = "/send_message_service"


class ApiKeyCell:
    """Holds the host API key; swapped atomically at runtime.

    A new key applies to the next outbound call. Calls already in flight
    keep the key they started with.
    """

    def __init__(self, initial: str = "") -> None:
        self._lock = threading.Lock()
        self._value = initial

    def get(self) -> str:
        with self._lock:
            return self._value

    def set(self, value: str) -> None:
        with self._lock:
            self._value = value
        logger.info("Host API key updated (%s)", "set" if value else "cleared")


@dataclass
class GatewayResult:
    """Outcome of one host call: exactly one of ``data`` / ``error`` is set."""

    data: dict[str, Any] | None = None
    error: HostGatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class HostGateway:
    """Client for the host's service endpoints.

    Args:
        base_url: Host base URL, e.g. ``http://localhost:8000``.
        api_key: Shared key cell; read at the start of each call.
        timeout: Per-call timeout in seconds.
        client: Pre-built httpx client (tests inject one with a fake
            transport). When None, one is created and owned by the gateway.
    """

    def __init__(
        self,
        base_url: str,
        api_key: ApiKeyCell,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying client if the gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def register_agent(self, agent_url: str) -> GatewayResult:
        """Ask the host to register a remote agent.

        Returns:
            GatewayResult whose data may carry name / description / icon.
        """
        return await self._post(REGISTER_AGENT_PATH, {"agent_url": agent_url})

    async def create_conversation(self) -> GatewayResult:
        """Ask the host to open a conversation. Sends no body."""
        return await self._post(CREATE_CONVERSATION_PATH, None)

    async def send_message(self, payload: dict[str, Any]) -> GatewayResult:
        """Relay a user message to the host.

        Args:
            payload: ``{messageId, contextId, role, parts, taskId?}``.
        """
        return await self._post(SEND_MESSAGE_PATH, payload)

    async def _post(self, path: str, body: dict[str, Any] | None) -> GatewayResult:
        url = f"{self._base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self._api_key.get(),
        }
        logger.info("POST %s", url)
        try:
            if body is None:
                resp = await self._client.post(url, headers=headers)
            else:
                resp = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Host call %s failed: %s", path, e)
            return GatewayResult(error=HostGatewayError(
                "transport",
                f"Could not reach host: {e.__class__.__name__}: {e}",
            ))

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.error(
                "Host call %s returned %d: %s", path, resp.status_code, resp.text[:500]
            )
            return GatewayResult(error=HostGatewayError(
                "status",
                f"Host returned HTTP {resp.status_code}",
                host_status=resp.status_code,
                body=resp.text,
            ))

        if not resp.content.strip():
            return GatewayResult(data={})
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("Host call %s returned a non-JSON body", path)
            return GatewayResult(error=HostGatewayError(
                "decode",
                "Host response is not valid JSON",
                host_status=resp.status_code,
                body=resp.text,
            ))
        if not isinstance(data, dict):
            data = {"result": data}
        return GatewayResult(data=data)
