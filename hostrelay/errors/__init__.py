"""Error taxonomy for hostrelay.

Request-scoped errors are raised and mapped to HTTP responses; gateway
failures are returned as data; decode failures are replaced by placeholders.
"""

from hostrelay.errors.domain import (
    ConflictError,
    DecodeError,
    HostGatewayError,
    InvalidEvent,
    InvalidRequest,
    NotFoundError,
    RelayError,
    StoreError,
)

__all__ = [
    "RelayError",
    "InvalidRequest",
    "InvalidEvent",
    "NotFoundError",
    "ConflictError",
    "StoreError",
    "DecodeError",
    "HostGatewayError",
]
