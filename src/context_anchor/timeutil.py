"""UTC timestamp helpers shared by the record types."""
from __future__ import annotations

import datetime
from typing import Any


def utcnow() -> datetime.datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def parse_ts(value: Any) -> datetime.datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime); None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    else:
        parsed = datetime.datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def format_ts(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def days_between(earlier: datetime.datetime, later: datetime.datetime) -> float:
    """Return the (non-negative) number of days from *earlier* to *later*."""
    return max(0.0, (later - earlier).total_seconds() / 86400.0)
