"""Date and time helpers shared by the calendar and domain layers."""

import logging
import re
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

_TIME_OF_DAY_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def format_time_cross_platform(dt: datetime, suffix: str = "") -> str:
    """Format time in 12-hour format without leading zeros (e.g. "7:00 pm").

    strftime's ``%-I`` is not available on every platform, so the hour is
    formatted by hand.
    """
    hour = dt.hour % 12 or 12
    am_pm = "am" if dt.hour < 12 else "pm"
    return f"{hour}:{dt.minute:02d} {am_pm}{suffix.lower()}"


def parse_time_of_day(value: str) -> Optional[time]:
    """Parse "HH:MM" or "HH:MM:SS" into a time, returning None when invalid."""
    match = _TIME_OF_DAY_RE.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    try:
        return time(hour, minute, second)
    except ValueError:
        logger.debug("Time of day out of range: %r", value)
        return None


def iter_dates(first: date, last: date) -> Iterator[date]:
    """Yield every calendar date from ``first`` to ``last`` inclusive."""
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def start_of_week(day: date) -> date:
    """Return the Sunday on or before ``day`` (calendar weeks start on Sunday)."""
    return day - timedelta(days=(day.weekday() + 1) % 7)
