"""Calendar view state: visible window, navigation and rendered day lists."""

from __future__ import annotations

import datetime
import logging
from typing import Optional, Union

from venuecal.calendar.lite_datetime_utils import start_of_week
from venuecal.calendar.lite_models import Announcement, CalendarItem, DatedSpecial, ViewMode
from venuecal.calendar.lite_occurrence_expander import OccurrenceExpander
from venuecal.core.timezone_utils import Clock, SystemClock, TimezoneReconciler, local_today
from venuecal.domain.calendar_aggregator import CalendarItemAggregator
from venuecal.domain.event_commands import EventCache
from venuecal.domain.event_store import EventStore

logger = logging.getLogger(__name__)


def _add_months(day: datetime.date, months: int) -> datetime.date:
    index = day.year * 12 + (day.month - 1) + months
    return datetime.date(index // 12, index % 12 + 1, 1)


class CalendarView:
    """Tracks which part of the calendar is visible and renders it.

    ``refresh()`` is the only method that performs I/O. ``recompute()`` rebuilds
    the rendered lists from the cache, so it can run after every navigation or
    local change. Navigation re-renders from the cache only; await
    ``refresh()`` afterwards to load events of the new window.
    """

    def __init__(
        self,
        store: EventStore,
        clock: Optional[Clock] = None,
        reconciler: Optional[TimezoneReconciler] = None,
        expander: Optional[OccurrenceExpander] = None,
        aggregator: Optional[CalendarItemAggregator] = None,
        cache: Optional[EventCache] = None,
        mode: ViewMode = ViewMode.MONTH,
        anchor_date: Optional[datetime.date] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.reconciler = reconciler or TimezoneReconciler()
        self.expander = expander or OccurrenceExpander(self.reconciler)
        self.aggregator = aggregator or CalendarItemAggregator(self.reconciler)
        self.cache = cache or EventCache()
        self.mode = mode
        self.anchor_date = anchor_date or local_today(self.clock, self.reconciler)

        self._specials: list[DatedSpecial] = []
        self._announcements: list[Announcement] = []

    def visible_dates(self) -> tuple[datetime.date, datetime.date]:
        """Return the first and last local dates shown (inclusive).

        Month grids show whole Sunday-to-Saturday weeks covering the month.
        """
        if self.mode == ViewMode.DAY:
            return self.anchor_date, self.anchor_date
        if self.mode == ViewMode.WEEK:
            first = start_of_week(self.anchor_date)
            return first, first + datetime.timedelta(days=6)

        month_first = self.anchor_date.replace(day=1)
        month_last = _add_months(month_first, 1) - datetime.timedelta(days=1)
        return start_of_week(month_first), start_of_week(month_last) + datetime.timedelta(days=6)

    def visible_range(self) -> tuple[datetime.datetime, datetime.datetime]:
        """Return the half-open instant window covering the visible dates."""
        first, last = self.visible_dates()
        start, _ = self.reconciler.day_bounds(first)
        _, end = self.reconciler.day_bounds(last)
        return start, end

    def set_mode(self, mode: Union[ViewMode, str]) -> None:
        self.mode = ViewMode(mode)
        self.recompute()

    def next(self) -> None:
        self._shift(1)

    def previous(self) -> None:
        self._shift(-1)

    def today(self) -> None:
        self.anchor_date = local_today(self.clock, self.reconciler)
        self.recompute()

    def go_to(self, day: datetime.date) -> None:
        self.anchor_date = day
        self.recompute()

    async def refresh(self) -> None:
        """Fetch the visible window's content from the store and re-render."""
        start, end = self.visible_range()
        events = await self.store.fetch_range(start, end)
        self._specials = await self.store.list_specials()
        self._announcements = await self.store.list_announcements()
        self.cache.replace_all(events)
        logger.debug("Refreshed %d events for %s view", len(events), self.mode.value)
        self.recompute()

    def recompute(self) -> None:
        """Expand cached events and rebuild the per-day lists for the visible window."""
        start, end = self.visible_range()
        occurrences = self.expander.expand_all(self.cache.events(), start, end)
        self.aggregator.load(occurrences, self._specials, self._announcements, start, end)

    def items_for_day(self, day: Union[datetime.date, str]) -> list[CalendarItem]:
        return self.aggregator.for_day(day, self.mode)

    def items_by_date(self) -> dict[str, list[CalendarItem]]:
        return self.aggregator.items_by_date(self.mode)

    def _shift(self, steps: int) -> None:
        if self.mode == ViewMode.MONTH:
            self.anchor_date = _add_months(self.anchor_date, steps)
        elif self.mode == ViewMode.WEEK:
            self.anchor_date += datetime.timedelta(weeks=steps)
        else:
            self.anchor_date += datetime.timedelta(days=steps)
        self.recompute()
