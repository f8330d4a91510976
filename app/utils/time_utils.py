# app/utils/time_utils.py
from datetime import datetime, timezone
from typing import Optional


def get_now() -> datetime:
    """FastAPI dependency for the request clock; tests override it."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.
    Naive values (SQLite round-trips, date-only input) are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
