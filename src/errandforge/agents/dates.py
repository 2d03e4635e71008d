"""Date helpers shared by the agents."""

import math
from datetime import date, datetime, timezone
from typing import Any, Optional

_SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> Optional[datetime]:
    """Coerce a datetime, date or ISO string to an aware UTC datetime.

    Naive datetimes are taken to be UTC. Returns None for anything that is
    not a date.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return None


def days_until(when: datetime, now: datetime) -> int:
    """Whole days from now until a moment, rounded up."""
    return math.ceil((when - now).total_seconds() / _SECONDS_PER_DAY)
