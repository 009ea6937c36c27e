"""Data models for calendar content - events, specials, announcements and occurrences."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..core.timezone_utils import ensure_utc, format_date_key, parse_date_key

logger = logging.getLogger(__name__)

# Used when an event has no stored end
DEFAULT_EVENT_DURATION = timedelta(hours=1)


class Weekday(str, Enum):
    """Days of the week, keyed by their recurrence-rule tokens."""

    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"
    SUNDAY = "SU"

    @property
    def weekday_number(self) -> int:
        """Python weekday number (Monday == 0)."""
        return _WEEKDAY_ORDER.index(self)

    @property
    def full_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_index(cls, index: int) -> Weekday:
        return _WEEKDAY_ORDER[index % 7]

    @classmethod
    def parse(cls, value: Any) -> Optional[Weekday]:
        """Parse a token ("MO"), a name ("Monday", "mon") or a Weekday; None if unknown."""
        if isinstance(value, Weekday):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip().upper()
        for day in _WEEKDAY_ORDER:
            if text in (day.value, day.name, day.name[:3]):
                return day
        return None


_WEEKDAY_ORDER: tuple[Weekday, ...] = tuple(Weekday)


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SpecialType(str, Enum):
    FOOD = "food"
    DRINK = "drink"


class EventCategory(str, Enum):
    """Built-in event categories, in their default display priority."""

    GAME_DAY = "game_day"
    POKER = "poker"
    KARAOKE = "karaoke"


class ViewMode(str, Enum):
    """Calendar grid granularity."""

    MONTH = "month"
    WEEK = "week"
    DAY = "day"


class CalendarItemKind(str, Enum):
    SPECIAL = "special"
    ANNOUNCEMENT = "announcement"
    EVENT = "event"


def _parse_weekday_list(value: Any) -> list[Weekday]:
    """Accept a list of tokens/names or its JSON text form (as legacy records store it)."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            value = value.split(",")
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"Expected a list of weekdays, got {value!r}")

    days = []
    for raw in value:
        day = Weekday.parse(raw)
        if day is None:
            logger.debug("Ignoring unknown weekday %r", raw)
            continue
        if day not in days:
            days.append(day)
    return days


class RecurrencePattern(BaseModel):
    """Structured description of how an event repeats.

    ``weekdays`` only matters for weekly patterns and ``month_day`` only for
    monthly ones. ``until`` is an inclusive local calendar date.
    """

    frequency: Frequency = Frequency.NONE
    weekdays: frozenset[Weekday] = Field(default_factory=frozenset)
    month_day: Optional[int] = Field(default=None, ge=1, le=31)
    until: Optional[date] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("weekdays", mode="before")
    @classmethod
    def _coerce_weekdays(cls, value: Any) -> frozenset[Weekday]:
        return frozenset(_parse_weekday_list(value))

    @property
    def effective_frequency(self) -> Frequency:
        """Frequency as seen by expansion; incomplete patterns have no effect."""
        if self.frequency == Frequency.WEEKLY and not self.weekdays:
            return Frequency.NONE
        if self.frequency == Frequency.MONTHLY and self.month_day is None:
            return Frequency.NONE
        return self.frequency

    @property
    def is_recurring(self) -> bool:
        return self.effective_frequency != Frequency.NONE

    def ordered_weekdays(self) -> list[Weekday]:
        """Weekdays in Monday-first order."""
        return sorted(self.weekdays, key=lambda d: d.weekday_number)


class EventDefinition(BaseModel):
    """A stored calendar event, optionally recurring."""

    id: str = Field(..., description="Event ID")
    title: str = Field(..., description="Event title")
    description: Optional[str] = Field(default=None, description="Event description")

    # Stored as UTC instants
    start: datetime = Field(..., description="Anchor start instant")
    end: Optional[datetime] = Field(default=None, description="Anchor end instant")
    is_all_day: bool = Field(default=False, description="All-day event flag")

    # Recurrence is kept as opaque rule text, decoded at expansion time
    recurrence_rule: Optional[str] = Field(default=None, description="Compact recurrence rule")
    exception_dates: set[str] = Field(
        default_factory=set, description="Local YYYY-MM-DD dates with suppressed occurrences"
    )

    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    category: Optional[str] = Field(default=None, description="Display category")
    is_active: bool = Field(default=True, description="Inactive events are not displayed")

    # Optimistic-concurrency token, bumped by every store write
    version: int = Field(default=0, ge=0)

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("recurrence_rule")
    @classmethod
    def _blank_rule_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("exception_dates", mode="before")
    @classmethod
    def _parse_exception_dates(cls, value: Any) -> set[str]:
        if value is None or value == "":
            return set()
        if isinstance(value, str):
            # Legacy records keep the list as serialized JSON text
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                value = value.split(",")
            if isinstance(value, str):
                value = [value]
        keys = set()
        for raw in value:
            day = parse_date_key(raw)
            if day is None:
                logger.warning("Dropping unparseable exception date %r", raw)
                continue
            keys.add(format_date_key(day))
        return keys

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value.value if isinstance(value, Enum) else value).strip().lower()
        return text or None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    @property
    def duration(self) -> timedelta:
        """Length of the anchor occurrence (one hour when no end is stored)."""
        if self.end is None or self.end < self.start:
            return DEFAULT_EVENT_DURATION
        return self.end - self.start

    def resolved_category(self, known: tuple[str, ...] = ()) -> Optional[str]:
        """Return the explicit category, or the first tag naming a known category."""
        if self.category:
            return self.category
        for tag in self.tags:
            normalized = tag.strip().lower()
            if normalized in known:
                return normalized
        return None

    @field_serializer("start")
    def serialize_start(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("end", when_used="unless-none")
    def serialize_end(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("exception_dates")
    def serialize_exceptions(self, keys: set[str]) -> list[str]:
        return sorted(keys)


class DatedSpecial(BaseModel):
    """A food or drink special, recurring on weekdays or running over a date range."""

    id: str
    title: str
    type: SpecialType
    applies_on: list[Weekday] = Field(
        default_factory=list, description="Weekdays for recurring specials"
    )
    start_date: Optional[date] = Field(default=None, description="First day (inclusive)")
    end_date: Optional[date] = Field(default=None, description="Last day (inclusive)")
    is_active: bool = True

    @field_validator("applies_on", mode="before")
    @classmethod
    def _coerce_weekdays(cls, value: Any) -> list[Weekday]:
        return _parse_weekday_list(value)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        # Stored values may be full ISO timestamps; only the calendar date matters
        if isinstance(value, (str, datetime)):
            return parse_date_key(value)
        return value

    @property
    def is_recurring(self) -> bool:
        return bool(self.applies_on)

    def matches(self, day: date) -> bool:
        """Check whether the special applies on a local calendar date."""
        if self.applies_on:
            return Weekday.from_index(day.weekday()) in self.applies_on
        if self.start_date is None:
            return False
        return self.start_date <= day <= (self.end_date or self.start_date)

    @field_serializer("applies_on")
    def serialize_weekdays(self, days: list[Weekday]) -> list[str]:
        return [d.full_name for d in days]


class Announcement(BaseModel):
    """A published notice shown on every local date between publish and expiry."""

    id: str
    title: str
    body: str = ""
    publish_at: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    is_published: bool = True

    @field_validator("publish_at", "expire_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_serializer("publish_at", "expire_at", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class Occurrence(BaseModel):
    """One concrete instance of an event, derived at render time and never persisted."""

    id: str
    event_id: str
    title: str
    start: datetime
    end: Optional[datetime] = None
    date_key: str = Field(..., description="Local calendar date the occurrence is bucketed under")
    is_all_day: bool = False
    is_recurring: bool = False
    category: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_serializer("start")
    def serialize_start(self, dt: datetime) -> str:
        return dt.isoformat()

    @field_serializer("end", when_used="unless-none")
    def serialize_end(self, dt: datetime) -> str:
        return dt.isoformat()


class CalendarItem(BaseModel):
    """A single entry in a rendered day cell."""

    kind: CalendarItemKind
    date_key: str
    title: str
    source_id: str
    special_type: Optional[SpecialType] = None
    occurrence: Optional[Occurrence] = None

    model_config = ConfigDict(frozen=True)
