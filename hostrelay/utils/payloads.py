"""Codec for opaque structured fields (message content, state details, artifacts).

The store keeps these fields as serialized JSON text and never inspects them.
Decoding happens only when a canonical record is produced; a payload that no
longer parses is replaced by a placeholder so the rest of the record stays
usable.
"""

import json
from typing import Any

from hostrelay.errors import DecodeError


def encode_payload(value: Any) -> str:
    """Serialize a JSON-compatible value for storage."""
    return json.dumps(value, ensure_ascii=False)


def decode_payload(raw: str | None) -> Any:
    """Parse a stored payload.

    Args:
        raw: Serialized JSON text. None decodes to None.

    Returns:
        The decoded value.

    Raises:
        DecodeError: If the text is not valid JSON.
    """
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise DecodeError(f"Stored payload is not valid JSON: {exc}") from exc


def state_details_placeholder() -> dict[str, Any]:
    """Marker substituted for unparseable task state details."""
    return {"error": "Could not parse state_details.", "decode_error": True}


def content_placeholder(kind: str) -> list[dict[str, Any]]:
    """Marker substituted for unparseable message or artifact content.

    Args:
        kind: 'message' or 'artifact', used in the rendered text.
    """
    return [{
        "type": "error",
        "text": f"Error: Could not parse {kind} content.",
        "decode_error": True,
    }]
