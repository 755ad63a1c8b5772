"""Tests for the opaque payload codec."""

import pytest

from hostrelay.errors import DecodeError
from hostrelay.utils.payloads import (
    content_placeholder,
    decode_payload,
    encode_payload,
    state_details_placeholder,
)


def test_encode_keeps_non_ascii_verbatim():
    """Unicode text is stored as-is, not escaped."""
    assert encode_payload([{"type": "text", "text": "héllo ✓"}]) == (
        '[{"type": "text", "text": "héllo ✓"}]'
    )


def test_decode_none_is_none():
    assert decode_payload(None) is None


def test_decode_plain_string_payload():
    """A bare status string stored as state details decodes back to a string."""
    assert decode_payload(encode_payload("working")) == "working"


def test_decode_invalid_raises():
    with pytest.raises(DecodeError):
        decode_payload("{not json")


def test_placeholders_are_marked():
    """Placeholders carry an explicit decode_error flag and readable text."""
    details = state_details_placeholder()
    assert details["decode_error"] is True
    assert details["error"] == "Could not parse state_details."

    parts = content_placeholder("artifact")
    assert parts == [{
        "type": "error",
        "text": "Error: Could not parse artifact content.",
        "decode_error": True,
    }]
