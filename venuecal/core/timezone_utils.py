"""Display-zone reconciliation and clock utilities for venuecal.

All stored times are absolute UTC instants, while the calendar is rendered in a
single fixed display zone. This module owns the conversion between the two,
including the daylight-saving edge cases where a wall-clock time is ambiguous
(fall back) or does not exist at all (spring forward).
"""

from __future__ import annotations

import datetime
import logging
import os
import re
from functools import lru_cache
from typing import NamedTuple, Optional, Protocol, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import TimezoneReconciliationError

logger = logging.getLogger(__name__)

# Default display zone for all calendar rendering (Mountain time)
DEFAULT_DISPLAY_TIMEZONE = "America/Denver"

_DATE_KEY_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

DateLike = Union[datetime.date, datetime.datetime, str]


class WallClock(NamedTuple):
    """Civil date and time components in the display zone."""

    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0

    @classmethod
    def combine(cls, day: datetime.date, time: datetime.time) -> WallClock:
        """Build wall-clock components from a calendar date and a time of day."""
        return cls(day.year, day.month, day.day, time.hour, time.minute, time.second)

    @property
    def date(self) -> datetime.date:
        return datetime.date(self.year, self.month, self.day)

    @property
    def time(self) -> datetime.time:
        return datetime.time(self.hour, self.minute, self.second)

    def to_naive(self) -> datetime.datetime:
        return datetime.datetime(
            self.year, self.month, self.day, self.hour, self.minute, self.second
        )


def ensure_utc(instant: datetime.datetime) -> datetime.datetime:
    """Return ``instant`` as an aware UTC datetime (naive values are taken as UTC)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=datetime.UTC)
    return instant.astimezone(datetime.UTC)


def format_date_key(day: datetime.date) -> str:
    """Format a calendar date as a ``YYYY-MM-DD`` key."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_date_key(value: DateLike) -> Optional[datetime.date]:
    """Extract a calendar date from a date object or a string containing ``YYYY-MM-DD``.

    Datetimes are reduced to their own date part; use
    ``TimezoneReconciler.local_date`` when the display-zone date is needed.

    Returns:
        The date, or None if no valid date can be found.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str):
        return None

    match = _DATE_KEY_RE.search(value)
    if not match:
        return None
    try:
        return datetime.date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def get_display_timezone(fallback: str = DEFAULT_DISPLAY_TIMEZONE) -> str:
    """Get the configured display zone from the environment with validation.

    Reads VENUECAL_DISPLAY_TIMEZONE and falls back to ``fallback`` if it is unset
    or not a valid IANA zone name.
    """
    timezone = os.environ.get("VENUECAL_DISPLAY_TIMEZONE", fallback)
    try:
        ZoneInfo(timezone)
        return timezone
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to %r", timezone, fallback, exc_info=True)
        return fallback


class TimezoneReconciler:
    """Converts between UTC instants and wall-clock time in one display zone.

    None of the public methods raise for unresolvable input: a wall-clock time
    with no exact UTC counterpart degrades to the zone's standard offset, so one
    bad instant cannot break a whole calendar render.
    """

    def __init__(self, timezone_name: Optional[str] = None):
        """Initialize reconciler.

        Args:
            timezone_name: IANA zone name; defaults to the configured display zone
        """
        name = timezone_name or get_display_timezone()
        try:
            self.zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown display timezone %r, using %s", name, DEFAULT_DISPLAY_TIMEZONE
            )
            self.zone = ZoneInfo(DEFAULT_DISPLAY_TIMEZONE)
        self.timezone_name = self.zone.key

    def __repr__(self) -> str:
        return f"TimezoneReconciler({self.timezone_name!r})"

    def to_local_wall_clock(self, instant: datetime.datetime) -> WallClock:
        """Convert a UTC instant to wall-clock components in the display zone."""
        utc_instant = ensure_utc(instant)
        try:
            local = utc_instant.astimezone(self.zone)
        except (OverflowError, ValueError):
            naive = utc_instant.replace(tzinfo=None)
            logger.warning("Could not localize %s; applying standard offset", utc_instant)
            try:
                local = naive + self.standard_offset(naive)
            except OverflowError:
                logger.warning("Instant %s out of range; using UTC components", utc_instant)
                local = naive
        return WallClock(local.year, local.month, local.day, local.hour, local.minute, local.second)

    def from_local_wall_clock(
        self, components: Union[WallClock, tuple[int, ...], datetime.datetime]
    ) -> datetime.datetime:
        """Convert display-zone wall-clock components to an aware UTC instant.

        Each offset the zone can have at that moment is tried in turn and the
        first one whose UTC value converts back to exactly the same wall-clock
        time is used. For an ambiguous time this is the earlier (daylight)
        instant. A non-existent time falls back to the zone's standard offset.
        """
        naive = self._normalize(components)
        try:
            return self._resolve_exact(naive)
        except TimezoneReconciliationError as exc:
            logger.debug("%s; using standard offset", exc)

        try:
            return (naive - self.standard_offset(naive)).replace(tzinfo=datetime.UTC)
        except OverflowError:
            logger.warning("Wall-clock %s out of range; treating as UTC", naive)
            return naive.replace(tzinfo=datetime.UTC)

    def parse_calendar_date(self, value: DateLike) -> Optional[datetime.datetime]:
        """Return the instant of display-zone midnight for a calendar date.

        Accepts a date, a ``YYYY-MM-DD`` key or any string containing one (such
        as an ISO timestamp). Returns None when no date can be recognised.
        """
        if isinstance(value, datetime.datetime):
            day: Optional[datetime.date] = self.local_date(value)
        else:
            day = parse_date_key(value)
        if day is None:
            logger.warning("Unrecognised calendar date %r", value)
            return None
        return self.from_local_wall_clock(WallClock(day.year, day.month, day.day))

    def standard_offset(self, naive: datetime.datetime) -> datetime.timedelta:
        """Return the zone's standard (non-daylight) UTC offset around ``naive``."""
        aware = naive.replace(tzinfo=self.zone)
        offset = aware.utcoffset() or datetime.timedelta(0)
        return offset - (aware.dst() or datetime.timedelta(0))

    def local_date(self, instant: datetime.datetime) -> datetime.date:
        """Return the display-zone calendar date of an instant."""
        return self.to_local_wall_clock(instant).date

    def date_key(self, instant: datetime.datetime) -> str:
        """Return the display-zone ``YYYY-MM-DD`` key of an instant."""
        return format_date_key(self.local_date(instant))

    def combine(self, day: datetime.date, time: datetime.time) -> datetime.datetime:
        """Return the instant of ``time`` on local calendar ``day``."""
        return self.from_local_wall_clock(WallClock.combine(day, time))

    def day_bounds(self, day: datetime.date) -> tuple[datetime.datetime, datetime.datetime]:
        """Return the half-open ``[start, end)`` instants of a local calendar day."""
        start = self.from_local_wall_clock(WallClock(day.year, day.month, day.day))
        following = day + datetime.timedelta(days=1)
        end = self.from_local_wall_clock(WallClock(following.year, following.month, following.day))
        return start, end

    def _resolve_exact(self, naive: datetime.datetime) -> datetime.datetime:
        tried: list[datetime.timedelta] = []
        for fold in (0, 1):
            offset = naive.replace(tzinfo=self.zone, fold=fold).utcoffset()
            if offset is None or offset in tried:
                continue
            tried.append(offset)

            candidate = (naive - offset).replace(tzinfo=datetime.UTC)
            if candidate.astimezone(self.zone).replace(tzinfo=None) == naive:
                return candidate

        raise TimezoneReconciliationError(
            f"No offset in {self.timezone_name} round-trips wall-clock {naive.isoformat()}"
        )

    @staticmethod
    def _normalize(
        components: Union[WallClock, tuple[int, ...], datetime.datetime],
    ) -> datetime.datetime:
        """Build a naive datetime, rolling over out-of-range fields instead of failing."""
        if isinstance(components, datetime.datetime):
            return components.replace(tzinfo=None, fold=0)

        year, month, day, hour, minute, second = (tuple(components) + (0, 0, 0))[:6]
        try:
            return datetime.datetime(year, month, day, hour, minute, second)
        except ValueError:
            logger.debug("Normalizing out-of-range wall-clock %r", components)

        # Roll overflowing fields forward (e.g. 2024-02-30 -> 2024-03-01)
        year += (month - 1) // 12
        month = (month - 1) % 12 + 1
        year = min(max(year, datetime.MINYEAR), datetime.MAXYEAR)
        base = datetime.datetime(year, month, 1)
        try:
            return base + datetime.timedelta(
                days=day - 1, hours=hour, minutes=minute, seconds=second
            )
        except OverflowError:
            return base


@lru_cache(maxsize=8)
def get_reconciler(timezone_name: Optional[str] = None) -> TimezoneReconciler:
    """Get a shared reconciler for a zone (convenience function)."""
    return TimezoneReconciler(timezone_name)


class Clock(Protocol):
    """Source of the current instant, injected wherever "now" or "today" is needed."""

    def now(self) -> datetime.datetime: ...


class SystemClock:
    """Wall clock of the host, with a test time override.

    The VENUECAL_TEST_TIME environment variable (ISO 8601, e.g.
    "2024-01-15T19:00:00-07:00") freezes the clock for manual testing.
    """

    def now(self) -> datetime.datetime:
        test_time = os.environ.get("VENUECAL_TEST_TIME")
        if test_time:
            try:
                from dateutil import parser as date_parser

                return ensure_utc(date_parser.isoparse(test_time))
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse VENUECAL_TEST_TIME=%r: %s", test_time, e)

        return datetime.datetime.now(datetime.UTC)


class FixedClock:
    """Deterministic clock frozen at a given instant."""

    def __init__(self, instant: datetime.datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime.datetime:
        return self._instant

    def advance(self, delta: datetime.timedelta) -> None:
        self._instant = self._instant + delta


def local_today(clock: Clock, reconciler: TimezoneReconciler) -> datetime.date:
    """Return today's date in the display zone according to ``clock``."""
    return reconciler.local_date(clock.now())
