"""
UTC time helpers.

SQLite drops tzinfo on the way back out, so values read from the database
are normalized before being compared with aware datetimes.
"""

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def combine_utc(day: date, at: time) -> datetime:
    """Start instant of a showtime. Showtime dates and times are stored in UTC."""
    return datetime.combine(day, at, tzinfo=timezone.utc)
