"""Per-day aggregation of specials, announcements and event occurrences."""

from __future__ import annotations

import datetime
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Optional, Union

from venuecal.calendar.lite_datetime_utils import iter_dates
from venuecal.calendar.lite_models import (
    Announcement,
    CalendarItem,
    CalendarItemKind,
    DatedSpecial,
    Occurrence,
    SpecialType,
    ViewMode,
)
from venuecal.core.config_loader import DEFAULT_CATEGORY_PRECEDENCE, DEFAULT_VIEW_CAPS
from venuecal.core.timezone_utils import TimezoneReconciler, format_date_key, parse_date_key

logger = logging.getLogger(__name__)


class CalendarItemAggregator:
    """Builds the ordered, capped item list rendered in each day cell.

    A day lists at most one food and one drink special, then the announcements
    running that day, then the day's event occurrences ordered by category
    precedence. Announcements and events are capped per view.
    """

    def __init__(
        self,
        reconciler: Optional[TimezoneReconciler] = None,
        category_precedence: tuple[str, ...] = DEFAULT_CATEGORY_PRECEDENCE,
        view_caps: Optional[dict[str, tuple[int, int]]] = None,
    ):
        """Initialize aggregator.

        Args:
            reconciler: Display-zone reconciler used to date announcements
            category_precedence: Event categories in display priority order
            view_caps: Per-view (announcements, events) caps
        """
        self.reconciler = reconciler or TimezoneReconciler()
        self.category_precedence = tuple(category_precedence)
        self.view_caps = {**DEFAULT_VIEW_CAPS, **(view_caps or {})}

        self._occurrences_by_date: dict[str, list[Occurrence]] = {}
        self._specials: list[DatedSpecial] = []
        self._announcements: list[tuple[datetime.date, datetime.date, Announcement]] = []
        self._window: tuple[datetime.date, datetime.date] | None = None

    def load(
        self,
        occurrences: Iterable[Occurrence],
        specials: Iterable[DatedSpecial],
        announcements: Iterable[Announcement],
        range_start: datetime.datetime,
        range_end: datetime.datetime,
    ) -> None:
        """Index the content of a visible window.

        Inactive specials, unpublished announcements and announcements without
        both publish and expire instants are left out.
        """
        by_date: dict[str, list[Occurrence]] = defaultdict(list)
        for occurrence in occurrences:
            by_date[occurrence.date_key].append(occurrence)
        self._occurrences_by_date = dict(by_date)

        self._specials = [s for s in specials if s.is_active]

        self._announcements = []
        for announcement in announcements:
            if not announcement.is_published:
                continue
            if announcement.publish_at is None or announcement.expire_at is None:
                logger.debug("Announcement %s lacks publish/expire instants", announcement.id)
                continue
            first = self.reconciler.local_date(announcement.publish_at)
            last = self.reconciler.local_date(announcement.expire_at)
            self._announcements.append((first, last, announcement))

        last_instant = max(range_start, range_end - datetime.timedelta(microseconds=1))
        self._window = (
            self.reconciler.local_date(range_start),
            self.reconciler.local_date(last_instant),
        )
        logger.debug(
            "Aggregator loaded %d occurrence dates, %d specials, %d announcements",
            len(self._occurrences_by_date),
            len(self._specials),
            len(self._announcements),
        )

    def for_day(
        self,
        day: Union[datetime.date, str],
        view: Union[ViewMode, str] = ViewMode.MONTH,
    ) -> list[CalendarItem]:
        """Return the display list for one local calendar date.

        Args:
            day: Local date or ``YYYY-MM-DD`` key
            view: View the list is rendered in; selects the caps

        Returns:
            Specials, then announcements, then events
        """
        local_day = parse_date_key(day)
        if local_day is None:
            logger.warning("Cannot aggregate unrecognised day %r", day)
            return []

        key = format_date_key(local_day)
        announcement_cap, event_cap = self.caps_for(view)

        items = self._specials_for(local_day, key)

        running = [a for first, last, a in self._announcements if first <= local_day <= last]
        items.extend(
            CalendarItem(
                kind=CalendarItemKind.ANNOUNCEMENT,
                date_key=key,
                title=a.title,
                source_id=a.id,
            )
            for a in running[:announcement_cap]
        )

        events = sorted(self._occurrences_by_date.get(key, []), key=self._event_sort_key)
        items.extend(
            CalendarItem(
                kind=CalendarItemKind.EVENT,
                date_key=key,
                title=o.title,
                source_id=o.event_id,
                occurrence=o,
            )
            for o in events[:event_cap]
        )
        return items

    def items_by_date(
        self, view: Union[ViewMode, str] = ViewMode.MONTH
    ) -> dict[str, list[CalendarItem]]:
        """Return the display list of every date in the loaded window."""
        if self._window is None:
            return {}
        first, last = self._window
        return {format_date_key(d): self.for_day(d, view) for d in iter_dates(first, last)}

    def caps_for(self, view: Union[ViewMode, str]) -> tuple[int, int]:
        name = view.value if isinstance(view, ViewMode) else str(view).lower()
        return self.view_caps.get(name, self.view_caps[ViewMode.MONTH.value])

    def category_rank(self, occurrence: Occurrence) -> int:
        """Position of the occurrence's category in the precedence list (uncategorised last)."""
        if occurrence.category in self.category_precedence:
            return self.category_precedence.index(occurrence.category)
        return len(self.category_precedence)

    def _event_sort_key(self, occurrence: Occurrence) -> tuple[int, int, datetime.datetime, str]:
        return (
            self.category_rank(occurrence),
            0 if occurrence.is_recurring else 1,
            occurrence.start,
            occurrence.title,
        )

    def _specials_for(self, day: datetime.date, key: str) -> list[CalendarItem]:
        # First match in list order wins for each type
        items = []
        for special_type in (SpecialType.FOOD, SpecialType.DRINK):
            match = next(
                (s for s in self._specials if s.type == special_type and s.matches(day)), None
            )
            if match is not None:
                items.append(
                    CalendarItem(
                        kind=CalendarItemKind.SPECIAL,
                        date_key=key,
                        title=match.title,
                        source_id=match.id,
                        special_type=special_type,
                    )
                )
        return items
