"""
Datetime helpers.

Everything is timezone-aware UTC. Stored timestamps come back from the
database as ISO strings, sometimes with a trailing Z and sometimes naive;
as_utc() normalizes all of them.
"""

from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Coerce a stored timestamp to an aware UTC datetime.

    - None / "" -> None
    - naive values are interpreted as UTC
    - "...Z" and offset values are converted to UTC
    - a bare date becomes midnight UTC
    """
    if value is None:
        return None

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        value = datetime.fromisoformat(s)

    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_date(value: Union[str, datetime, date, None]) -> Optional[date]:
    """UTC calendar date of a stored timestamp."""
    dt = as_utc(value)
    return dt.date() if dt else None


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for storage."""
    if dt is None:
        return None
    return as_utc(dt).isoformat()


def whole_hours_between(start: datetime, end: datetime) -> int:
    """Full hours elapsed from start to end, truncated toward zero."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return int(seconds / 3600)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Full days elapsed from start to end, truncated toward zero."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return int(seconds / 86400)


def start_of_week(day: date) -> date:
    """Sunday on or before day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)
