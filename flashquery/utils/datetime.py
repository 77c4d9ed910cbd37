"""
Utilities for standardized datetime handling.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        datetime: Current UTC time
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    Some backends (SQLite) drop tzinfo on read; values are always written in UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_past(dt: Optional[datetime]) -> bool:
    """True when ``dt`` is set and already in the past."""
    if dt is None:
        return False
    return ensure_utc(dt) < utc_now()


def days_from_now(days: int) -> datetime:
    """Get the UTC datetime ``days`` days from now."""
    return utc_now() + timedelta(days=days)
