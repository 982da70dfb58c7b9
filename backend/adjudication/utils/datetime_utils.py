"""
Datetime utilities
Provides timezone-aware helpers used for decision timestamps
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time

    Returns:
        datetime: Current UTC time with timezone awareness
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC

    Naive values are assumed to already be in UTC (SQLite drops tzinfo
    on the way back out of the database).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_updated_at(previous: Optional[datetime]) -> datetime:
    """
    Timestamp for a record write that never goes backwards

    Args:
        previous: The record's current updated_at, if any

    Returns:
        datetime: max(now, previous) in UTC
    """
    now = utc_now()
    previous = ensure_utc(previous)
    if previous is not None and previous > now:
        return previous
    return now
