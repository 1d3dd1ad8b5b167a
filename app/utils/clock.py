"""
ShopLedger - Clock

Services take a ``clock`` callable so tests can pin time.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Tuple

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the half-open ``[start, end)`` UTC datetime range of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)
