"""Opaque identifier generation for store-assigned entities."""

from uuid import uuid4


def generate_id() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())
