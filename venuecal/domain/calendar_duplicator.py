"""Copy a year's recurring events into a later year."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from venuecal.calendar.lite_models import EventDefinition, RecurrencePattern
from venuecal.calendar.lite_occurrence_expander import OccurrenceExpander
from venuecal.calendar.lite_rrule_codec import RecurrenceRuleCodec
from venuecal.core.exceptions import VenueCalError
from venuecal.core.timezone_utils import TimezoneReconciler

logger = logging.getLogger(__name__)


@dataclass
class DuplicationError:
    event_id: str
    title: str
    error: str


@dataclass
class DuplicationReport:
    """Events created by a duplication run and the events that could not be copied."""

    created: list[EventDefinition] = field(default_factory=list)
    errors: list[DuplicationError] = field(default_factory=list)


def _shift_year(day: datetime.date, years: int) -> datetime.date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year + years, day=28)


class CalendarDuplicator:
    """Re-anchors recurring events of one year onto their first occurrence in another.

    Each copy keeps the local time-of-day, duration and repetition of its
    source. Exception dates are not carried over, and an end date is moved
    forward by the same number of years.
    """

    def __init__(
        self,
        reconciler: Optional[TimezoneReconciler] = None,
        codec: Optional[RecurrenceRuleCodec] = None,
        expander: Optional[OccurrenceExpander] = None,
    ):
        self.reconciler = reconciler or TimezoneReconciler()
        self.codec = codec or RecurrenceRuleCodec()
        self.expander = expander or OccurrenceExpander(self.reconciler, self.codec)

    def duplicate(
        self,
        events: Iterable[EventDefinition],
        source_year: int,
        target_year: int,
        event_ids: Optional[Iterable[str]] = None,
    ) -> DuplicationReport:
        """Create copies of the active recurring events anchored in ``source_year``.

        Args:
            events: Candidate events
            source_year: Local year the source events are anchored in
            target_year: Year to copy into; must be later than source_year
            event_ids: Optional subset of event ids to copy

        Raises:
            ValueError: If target_year is not after source_year
        """
        if target_year <= source_year:
            raise ValueError("Target year must be after source year")

        wanted = set(event_ids) if event_ids is not None else None
        window_start, _ = self.reconciler.day_bounds(datetime.date(target_year, 1, 1))
        _, window_end = self.reconciler.day_bounds(datetime.date(target_year, 12, 31))

        report = DuplicationReport()
        for event in events:
            if wanted is not None and event.id not in wanted:
                continue
            if not event.is_active or self.reconciler.local_date(event.start).year != source_year:
                continue
            pattern = self.codec.decode(event.recurrence_rule)
            if not pattern.is_recurring:
                continue

            try:
                copy = self._copy_event(
                    event, pattern, target_year - source_year, window_start, window_end
                )
            except (VenueCalError, ValueError) as e:
                logger.warning("Could not duplicate event %s: %s", event.id, e)
                report.errors.append(DuplicationError(event.id, event.title, str(e)))
                continue

            if copy is None:
                report.errors.append(
                    DuplicationError(event.id, event.title, "No dates generated for target year")
                )
                continue
            report.created.append(copy)

        logger.info(
            "Duplicated %d events from %d to %d (%d errors)",
            len(report.created),
            source_year,
            target_year,
            len(report.errors),
        )
        return report

    def _copy_event(
        self,
        event: EventDefinition,
        pattern: RecurrencePattern,
        years: int,
        window_start: datetime.datetime,
        window_end: datetime.datetime,
    ) -> Optional[EventDefinition]:
        until = _shift_year(pattern.until, years) if pattern.until else None
        shifted_rule = self.codec.encode(pattern.model_copy(update={"until": until}))
        template = event.model_copy(
            update={"recurrence_rule": shifted_rule, "exception_dates": set()}
        )

        occurrences = self.expander.expand(template, window_start, window_end)
        if not occurrences:
            return None
        first = occurrences[0]
        target_year = self.reconciler.local_date(first.start).year

        return EventDefinition(
            id=f"{event.id}-{target_year}",
            title=event.title,
            description=event.description,
            start=first.start,
            end=first.end,
            is_all_day=event.is_all_day,
            recurrence_rule=shifted_rule,
            tags=list(event.tags),
            category=event.category,
            is_active=event.is_active,
        )
