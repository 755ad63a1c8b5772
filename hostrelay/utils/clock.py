"""Monotonic UTC timestamps.

Task ``updated_at`` values must strictly increase across reconciliations and
artifacts are ordered by ``created_at``, so two timestamps issued by this
process never compare equal even when the wall clock is coarse or steps back.
All values use the same fixed-width ISO8601 form, which keeps lexicographic
and chronological order identical in the database.
"""

import threading
from datetime import UTC, datetime, timedelta

_ONE_TICK = timedelta(microseconds=1)

_lock = threading.Lock()
_last_issued: datetime | None = None


def format_timestamp(value: datetime) -> str:
    """Render a UTC datetime in the fixed-width storage format."""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored ISO8601 timestamp back to an aware UTC datetime.

    Returns:
        The parsed datetime, or None for empty or unparseable input.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def utc_now_iso(after: str | None = None) -> str:
    """Return the current UTC time, strictly later than anything issued before.

    Args:
        after: Optional previously stored timestamp (possibly written by an
            earlier process) that the result must also exceed.

    Returns:
        ISO8601 timestamp with microsecond precision.
    """
    global _last_issued

    floor = parse_timestamp(after)
    with _lock:
        now = datetime.now(UTC)
        for bound in (_last_issued, floor):
            if bound is not None and now <= bound:
                now = bound + _ONE_TICK
        _last_issued = now
    return format_timestamp(now)
