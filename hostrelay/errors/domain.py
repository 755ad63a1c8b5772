"""Typed domain exceptions for the relay.

Routes map these to HTTP status codes through the exception handlers
registered in ``hostrelay.api.main``. ``HostGatewayError`` is the one
exception that is never raised: the gateway returns it inside a
``GatewayResult`` so the ingress handler picks the response code.

Error codes:
- E-1xxx: Malformed input (events from the host, requests from the UI)
- E-2xxx: Resource state (not found, conflicts)
- E-3xxx: Host gateway failures
- E-4xxx: Store and payload failures
"""

from typing import Any, Literal


class RelayError(Exception):
    """Base exception for all relay errors."""

    code = "E-4000"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used for HTTP error responses."""
        return {"error_code": self.code, "message": self.message}


class InvalidRequest(RelayError):
    """Request is missing required fields or has malformed ones. Maps to HTTP 400."""

    code = "E-1002"
    status_code = 400

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class InvalidEvent(InvalidRequest):
    """Inbound host event failed top-level validation. Maps to HTTP 400."""

    code = "E-1001"


class NotFoundError(RelayError):
    """Resource was not found. Maps to HTTP 404."""

    code = "E-2001"
    status_code = 404

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(RelayError):
    """Uniqueness violation (duplicate agent url, duplicate file id). Maps to HTTP 409."""

    code = "E-2002"
    status_code = 409


class StoreError(RelayError):
    """Persistence layer failure. Maps to HTTP 500; callers retry the whole operation."""

    code = "E-4001"
    status_code = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["details"] = self.details
        return body


class DecodeError(RelayError):
    """A stored opaque payload could not be parsed.

    Non-fatal: the store catches it and substitutes a visible placeholder.
    """

    code = "E-4002"


GatewayFailureKind = Literal["transport", "status", "decode"]


class HostGatewayError(RelayError):
    """Failure talking to the external host.

    Attributes:
        kind: 'transport' (network error or timeout), 'status' (non-2xx
            response) or 'decode' (2xx response whose body is not JSON).
        host_status: HTTP status returned by the host, when one was received.
        body: Raw response body, verbatim, when one was received.
    """

    code = "E-3001"
    status_code = 502

    def __init__(
        self,
        kind: GatewayFailureKind,
        message: str,
        host_status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.host_status = host_status
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update({
            "kind": self.kind,
            "status_code": self.host_status,
            "details": self.body,
        })
        return body
