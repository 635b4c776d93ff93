"""
Timestamp helpers.

CRITICAL: All datetimes handled by the engine are timezone-aware UTC.
Naive values are assumed to already be UTC.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Any) -> Optional[datetime]:
    """
    Parse various timestamp formats to a timezone-aware datetime (UTC).

    Accepts datetimes, ISO-8601 strings (with or without a trailing Z) and
    Firestore timestamp objects. Returns None for None; raises ValueError
    for anything it cannot interpret.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    # Firestore Timestamp / protobuf interfaces
    if hasattr(value, "ToDatetime"):
        return ensure_utc(value.ToDatetime())
    if hasattr(value, "to_datetime"):
        return ensure_utc(value.to_datetime())
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, never negative."""
    return max(0, int((end - start).total_seconds() // 60))
