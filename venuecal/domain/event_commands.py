"""Calendar commands that mutate events through the store.

Commands only touch the local EventCache after the store confirms a write, so
a failed request leaves the previous state on screen.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from venuecal.calendar.lite_datetime_utils import parse_time_of_day
from venuecal.calendar.lite_models import DEFAULT_EVENT_DURATION, EventDefinition
from venuecal.calendar.lite_rrule_codec import RecurrenceRuleCodec
from venuecal.core.exceptions import CommandError, EventNotFoundError, StoreError
from venuecal.core.timezone_utils import TimezoneReconciler, format_date_key, parse_date_key
from venuecal.domain.event_store import EventStore

logger = logging.getLogger(__name__)

SNAP_MINUTES = 30


def snap_pointer_to_time(offset_px: float, hour_height_px: float) -> datetime.time:
    """Convert a pointer offset within a day column to a time of day.

    The time is floored to the 30-minute boundary at or before the pointer and
    the hour is clamped to 0..23.

    Raises:
        CommandError: If hour_height_px is not positive
    """
    if hour_height_px <= 0:
        raise CommandError(f"Hour height must be positive, got {hour_height_px}")

    total_minutes = int(max(offset_px, 0) / hour_height_px * 60)
    hour = min(total_minutes // 60, 23)
    minute = (total_minutes % 60) // SNAP_MINUTES * SNAP_MINUTES
    return datetime.time(hour, minute)


class EventCache:
    """Locally cached events, as last confirmed by the store."""

    def __init__(self, events: Iterable[EventDefinition] = ()) -> None:
        self._events: dict[str, EventDefinition] = {e.id: e for e in events}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def get(self, event_id: str) -> Optional[EventDefinition]:
        return self._events.get(event_id)

    def put(self, event: EventDefinition) -> None:
        self._events[event.id] = event

    def replace_all(self, events: Iterable[EventDefinition]) -> None:
        self._events = {e.id: e for e in events}

    def events(self) -> list[EventDefinition]:
        return list(self._events.values())


class CommandStatus(Enum):
    """Outcome of a calendar command."""

    APPLIED = "applied"
    REJECTED_ALL_DAY = "rejected_all_day"
    REJECTED_NOT_RECURRING = "rejected_not_recurring"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class CommandResult:
    """Result returned to the interaction layer.

    ``event`` is the store-confirmed event when the command was applied.
    ``error`` carries the store failure for FAILED results.
    """

    status: CommandStatus
    event_id: str
    event: Optional[EventDefinition] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == CommandStatus.APPLIED


@dataclass(frozen=True)
class RescheduleRequest:
    """Drop target for one event: a local date, a local time and optionally a duration."""

    event_id: str
    target_date: datetime.date
    target_time: datetime.time
    duration: Optional[datetime.timedelta] = None

    @classmethod
    def from_strings(
        cls, event_id: str, date_text: str, time_text: str
    ) -> RescheduleRequest:
        """Build a request from "YYYY-MM-DD" and "HH:MM" text.

        Raises:
            CommandError: If either value cannot be parsed
        """
        target_date = parse_date_key(date_text)
        if target_date is None:
            raise CommandError(f"Invalid target date {date_text!r}")
        target_time = parse_time_of_day(time_text)
        if target_time is None:
            raise CommandError(f"Invalid target time {time_text!r}")
        return cls(event_id=event_id, target_date=target_date, target_time=target_time)


async def _load_event(
    store: EventStore, cache: EventCache, event_id: str
) -> EventDefinition | CommandResult:
    cached = cache.get(event_id)
    if cached is not None:
        return cached
    try:
        return await store.fetch_by_id(event_id)
    except EventNotFoundError:
        return CommandResult(CommandStatus.NOT_FOUND, event_id)
    except StoreError as e:
        logger.warning("Could not load event %s: %s", event_id, e)
        return CommandResult(CommandStatus.FAILED, event_id, error=e)


class RescheduleCommand:
    """Moves an event so that it starts at a new local date and time."""

    def __init__(
        self,
        store: EventStore,
        cache: EventCache,
        reconciler: Optional[TimezoneReconciler] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.reconciler = reconciler or TimezoneReconciler()

    async def execute(self, request: RescheduleRequest) -> CommandResult:
        """Relocate the event and persist the change.

        All-day events are rejected. The new end keeps the request's duration,
        else the event's own duration (one hour when it has no end).
        """
        loaded = await _load_event(self.store, self.cache, request.event_id)
        if isinstance(loaded, CommandResult):
            return loaded
        event = loaded

        if event.is_all_day:
            logger.info("Not rescheduling all-day event %s", event.id)
            return CommandResult(CommandStatus.REJECTED_ALL_DAY, event.id, event=event)

        duration = request.duration or event.duration or DEFAULT_EVENT_DURATION
        new_start = self.reconciler.combine(request.target_date, request.target_time)
        new_end = new_start + duration

        try:
            updated = await self.store.update(
                event.id,
                {"start": new_start, "end": new_end},
                expected_version=event.version,
            )
        except EventNotFoundError:
            return CommandResult(CommandStatus.NOT_FOUND, event.id)
        except StoreError as e:
            logger.warning("Reschedule of %s failed; keeping previous position: %s", event.id, e)
            return CommandResult(CommandStatus.FAILED, event.id, error=e)

        self.cache.put(updated)
        logger.info(
            "Rescheduled %s to %s %s",
            event.id,
            format_date_key(request.target_date),
            request.target_time.strftime("%H:%M"),
        )
        return CommandResult(CommandStatus.APPLIED, event.id, event=updated)


class DeleteOccurrenceCommand:
    """Suppresses one occurrence of a recurring event by recording an exception date."""

    def __init__(
        self,
        store: EventStore,
        cache: EventCache,
        codec: Optional[RecurrenceRuleCodec] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.codec = codec or RecurrenceRuleCodec()

    async def execute(self, event_id: str, date_key: str) -> CommandResult:
        """Add ``date_key`` to the event's exception dates.

        Raises:
            CommandError: If date_key is not a valid date
        """
        day = parse_date_key(date_key)
        if day is None:
            raise CommandError(f"Invalid occurrence date {date_key!r}")

        loaded = await _load_event(self.store, self.cache, event_id)
        if isinstance(loaded, CommandResult):
            return loaded
        event = loaded

        # A rule that does not decode expands as a one-time event
        if not self.codec.decode(event.recurrence_rule).is_recurring:
            return CommandResult(CommandStatus.REJECTED_NOT_RECURRING, event.id, event=event)

        try:
            updated = await self.store.append_exception(event.id, format_date_key(day))
        except EventNotFoundError:
            return CommandResult(CommandStatus.NOT_FOUND, event.id)
        except StoreError as e:
            logger.warning("Could not skip %s on %s: %s", event.id, format_date_key(day), e)
            return CommandResult(CommandStatus.FAILED, event.id, error=e)

        self.cache.put(updated)
        return CommandResult(CommandStatus.APPLIED, event.id, event=updated)
