"""Occurrence expansion for venuecal events.

Recurring events repeat in civil time: a weekly Monday 19:00 event happens at
19:00 local on every matching Monday, whatever the UTC offset is that day.
Local calendar dates are therefore enumerated first (with dateutil.rrule on
naive dates) and each one is then combined with the anchor's local
time-of-day through the TimezoneReconciler.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from dateutil.rrule import MONTHLY, WEEKLY, rrule

from ..core.config_loader import DEFAULT_CATEGORY_PRECEDENCE
from ..core.config_manager import get_config_value
from ..core.timezone_utils import TimezoneReconciler, ensure_utc, format_date_key
from .lite_models import EventDefinition, Frequency, Occurrence, RecurrencePattern
from .lite_rrule_codec import RecurrenceRuleCodec

logger = logging.getLogger(__name__)


@dataclass
class ExpanderConfig:
    """Configuration for occurrence expansion.

    Consolidates all expansion-related settings with explicit defaults.
    """

    # Guard against runaway rules in very wide windows
    max_occurrences_per_event: int = 250

    @classmethod
    def from_settings(cls, settings: Any) -> ExpanderConfig:
        """Extract expansion configuration from a settings object.

        Args:
            settings: Configuration object (or mapping) with expansion settings

        Returns:
            ExpanderConfig with values from settings or defaults
        """
        value = get_config_value(settings, "max_occurrences_per_event", 250)
        return cls(max_occurrences_per_event=max(1, int(value)))


@dataclass(frozen=True)
class _AnchorTimes:
    """Local time-of-day of an event's anchor, stamped onto each occurrence."""

    first_date: date
    start_time: time
    end_time: Optional[time]
    # Whole local days between the anchor's start and end dates
    end_day_span: int


class OccurrenceExpander:
    """Produces concrete occurrences of events inside a visible window."""

    def __init__(
        self,
        reconciler: Optional[TimezoneReconciler] = None,
        codec: Optional[RecurrenceRuleCodec] = None,
        config: Optional[ExpanderConfig] = None,
        known_categories: tuple[str, ...] = DEFAULT_CATEGORY_PRECEDENCE,
    ):
        self.reconciler = reconciler or TimezoneReconciler()
        self.codec = codec or RecurrenceRuleCodec()
        self.config = config or ExpanderConfig()
        self.known_categories = known_categories

    def expand(
        self, event: EventDefinition, range_start: datetime, range_end: datetime
    ) -> list[Occurrence]:
        """Expand one event into its occurrences starting in ``[range_start, range_end)``.

        Args:
            event: Event definition to expand
            range_start: Inclusive window start instant
            range_end: Exclusive window end instant

        Returns:
            Occurrences ordered by start instant
        """
        range_start = ensure_utc(range_start)
        range_end = ensure_utc(range_end)
        if range_end <= range_start:
            return []

        pattern = self.codec.decode(event.recurrence_rule)
        if not pattern.is_recurring:
            if range_start <= event.start < range_end:
                return [self._anchor_occurrence(event, recurring=False)]
            return []

        return self._expand_recurring(event, pattern, range_start, range_end)

    def expand_all(
        self, events: Iterable[EventDefinition], range_start: datetime, range_end: datetime
    ) -> list[Occurrence]:
        """Expand a collection of events, isolating failures per event.

        Inactive events are skipped. An event whose expansion fails is
        logged and degrades to its anchor occurrence (when in range) without
        affecting the others.
        """
        range_start = ensure_utc(range_start)
        range_end = ensure_utc(range_end)

        occurrences: list[Occurrence] = []
        for event in events:
            if not event.is_active:
                continue
            try:
                occurrences.extend(self.expand(event, range_start, range_end))
            except Exception:
                logger.exception("Expansion failed for event %s; using anchor only", event.id)
                if range_start <= event.start < range_end:
                    occurrences.append(self._anchor_occurrence(event, recurring=False))

        occurrences.sort(key=lambda o: (o.start, o.event_id))
        logger.debug(
            "Expanded %d occurrences between %s and %s",
            len(occurrences),
            range_start.isoformat(),
            range_end.isoformat(),
        )
        return occurrences

    def _expand_recurring(
        self,
        event: EventDefinition,
        pattern: RecurrencePattern,
        range_start: datetime,
        range_end: datetime,
    ) -> list[Occurrence]:
        anchor = self._anchor_times(event)

        by_date: dict[str, Occurrence] = {}
        for day in self._local_dates(pattern, anchor.first_date, range_start, range_end):
            key = format_date_key(day)
            if key in event.exception_dates:
                continue
            start = self.reconciler.combine(day, anchor.start_time)
            if not range_start <= start < range_end:
                continue
            end = None
            if anchor.end_time is not None:
                end = self.reconciler.combine(
                    day + timedelta(days=anchor.end_day_span), anchor.end_time
                )
            by_date[key] = self._build_occurrence(event, start, end, key, recurring=True)

        # The stored anchor always counts, even where date enumeration misses it
        anchor_key = format_date_key(anchor.first_date)
        if range_start <= event.start < range_end and anchor_key not in event.exception_dates:
            by_date[anchor_key] = self._anchor_occurrence(event, recurring=True)

        return sorted(by_date.values(), key=lambda o: o.start)

    def _local_dates(
        self,
        pattern: RecurrencePattern,
        first_date: date,
        range_start: datetime,
        range_end: datetime,
    ) -> list[date]:
        """Enumerate local calendar dates the pattern selects within the window."""
        window_first = self.reconciler.local_date(range_start)
        window_last = self.reconciler.local_date(range_end)

        first = max(first_date, window_first)
        last = window_last if pattern.until is None else min(window_last, pattern.until)
        if first > last:
            return []

        dtstart = datetime.combine(first, time())
        until = datetime.combine(last, time())
        if pattern.effective_frequency == Frequency.WEEKLY:
            rule = rrule(
                WEEKLY,
                dtstart=dtstart,
                until=until,
                byweekday=[d.weekday_number for d in pattern.ordered_weekdays()],
            )
        else:
            # dateutil skips months that lack the requested day
            rule = rrule(MONTHLY, dtstart=dtstart, until=until, bymonthday=pattern.month_day)

        limit = self.config.max_occurrences_per_event
        dates = []
        for value in rule:
            if len(dates) >= limit:
                logger.warning(
                    "Occurrence limit %d reached between %s and %s; truncating",
                    limit,
                    format_date_key(first),
                    format_date_key(last),
                )
                break
            dates.append(value.date())
        return dates

    def _anchor_times(self, event: EventDefinition) -> _AnchorTimes:
        local_start = self.reconciler.to_local_wall_clock(event.start)
        end_time = None
        span = 0
        if event.end is not None:
            if event.end < event.start:
                logger.warning("Event %s ends before it starts; ignoring end", event.id)
            else:
                local_end = self.reconciler.to_local_wall_clock(event.end)
                end_time = local_end.time
                span = (local_end.date - local_start.date).days
        return _AnchorTimes(
            first_date=local_start.date,
            start_time=local_start.time,
            end_time=end_time,
            end_day_span=span,
        )

    def _anchor_occurrence(self, event: EventDefinition, recurring: bool) -> Occurrence:
        end = event.end if event.end is not None and event.end >= event.start else None
        return self._build_occurrence(
            event, event.start, end, self.reconciler.date_key(event.start), recurring
        )

    def _build_occurrence(
        self,
        event: EventDefinition,
        start: datetime,
        end: Optional[datetime],
        key: str,
        recurring: bool,
    ) -> Occurrence:
        local_start = self.reconciler.to_local_wall_clock(start).to_naive()
        return Occurrence(
            id=f"{event.id}_{local_start.strftime('%Y%m%dT%H%M%S')}",
            event_id=event.id,
            title=event.title,
            start=start,
            end=end,
            date_key=key,
            is_all_day=event.is_all_day,
            is_recurring=recurring,
            category=event.resolved_category(self.known_categories),
        )
