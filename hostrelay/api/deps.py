"""Request-scoped helpers shared by the route modules."""

from typing import Any

from fastapi.responses import JSONResponse
from starlette.requests import HTTPConnection

from hostrelay.errors import HostGatewayError
from hostrelay.services.container import RelayServices


def get_services(connection: HTTPConnection) -> RelayServices:
    """FastAPI dependency returning the app's service container.

    Works for both HTTP requests and WebSocket connections.
    """
    return connection.app.state.services


def gateway_failure_response(action: str, error: HostGatewayError) -> JSONResponse:
    """Map a failed host call to HTTP 502.

    Args:
        action: What the relay was trying to do, e.g. 'register agent'.
        error: Failure returned by the host gateway.
    """
    body: dict[str, Any] = {
        "message": f"Failed to {action} with host",
        "details": error.body if error.body is not None else error.message,
        "status_code": error.host_status,
        "kind": error.kind,
    }
    return JSONResponse(status_code=502, content=body)


def host_field(data: dict[str, Any] | None, key: str) -> Any:
    """Read a field from a host response, nested under 'data' or top level."""
    if not data:
        return None
    nested = data.get("data")
    if isinstance(nested, dict) and nested.get(key):
        return nested[key]
    return data.get(key) or None
