"""
Domain time utilities (pure).

Centralized timestamp validation and conversion helpers.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the requirement that stored timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    """Server clock used for uploaded_at / analyzed_at."""

    return datetime.now(timezone.utc)


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a stored timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    Naive timestamps are interpreted as UTC.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        # fromisoformat doesn't consistently accept 'Z' across versions.
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
