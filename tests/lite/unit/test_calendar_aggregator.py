"""Unit tests for per-day calendar aggregation."""

from datetime import UTC, date, datetime, timedelta

import pytest

from venuecal.calendar.lite_models import (
    Announcement,
    CalendarItemKind,
    DatedSpecial,
    Occurrence,
    SpecialType,
    ViewMode,
)
from venuecal.domain.calendar_aggregator import CalendarItemAggregator

pytestmark = pytest.mark.unit


@pytest.fixture
def aggregator(reconciler) -> CalendarItemAggregator:
    return CalendarItemAggregator(reconciler)


def occurrence(
    event_id: str,
    start: datetime,
    date_key: str,
    category: str | None = None,
    recurring: bool = False,
) -> Occurrence:
    return Occurrence(
        id=f"{event_id}_{date_key}",
        event_id=event_id,
        title=event_id.title(),
        start=start,
        end=start + timedelta(hours=2),
        date_key=date_key,
        is_recurring=recurring,
        category=category,
    )


def announcement(announcement_id: str, publish: datetime, expire: datetime, **fields) -> Announcement:
    return Announcement(
        id=announcement_id, title=announcement_id.title(), publish_at=publish, expire_at=expire, **fields
    )


class TestAnnouncements:
    def test_publish_window_covers_overlapped_local_dates(self, aggregator, window):
        """Published 2024-03-01T00:00Z, expiring 2024-03-03T23:59Z, shown in UTC-7."""
        item = announcement(
            "patio",
            datetime(2024, 3, 1, 0, 0, tzinfo=UTC),
            datetime(2024, 3, 3, 23, 59, tzinfo=UTC),
        )
        aggregator.load([], [], [item], *window(date(2024, 2, 25), date(2024, 3, 9)))

        shown = [
            key
            for key, items in aggregator.items_by_date().items()
            if any(i.kind == CalendarItemKind.ANNOUNCEMENT for i in items)
        ]
        assert shown == ["2024-02-29", "2024-03-01", "2024-03-02", "2024-03-03"]

    def test_unpublished_and_open_ended_announcements_are_ignored(self, aggregator, window):
        publish = datetime(2024, 3, 1, 18, 0, tzinfo=UTC)
        expire = datetime(2024, 3, 2, 18, 0, tzinfo=UTC)
        items = [
            announcement("draft", publish, expire, is_published=False),
            Announcement(id="forever", title="Forever", publish_at=publish),
        ]
        aggregator.load([], [], items, *window(date(2024, 3, 1), date(2024, 3, 2)))
        assert aggregator.for_day(date(2024, 3, 1)) == []

    def test_caps_depend_on_view(self, aggregator, window):
        publish = datetime(2024, 3, 1, 18, 0, tzinfo=UTC)
        expire = datetime(2024, 3, 1, 20, 0, tzinfo=UTC)
        items = [announcement(f"notice-{n}", publish, expire) for n in range(7)]
        aggregator.load([], [], items, *window(date(2024, 3, 1), date(2024, 3, 1)))

        assert len(aggregator.for_day("2024-03-01", ViewMode.MONTH)) == 2
        assert len(aggregator.for_day("2024-03-01", ViewMode.WEEK)) == 5
        assert len(aggregator.for_day("2024-03-01", "day")) == 5


class TestSpecials:
    def test_first_food_and_first_drink_special_win(self, aggregator, window):
        specials = [
            DatedSpecial(id="f1", title="Taco Tuesday", type=SpecialType.FOOD, applies_on=["TU"]),
            DatedSpecial(id="f2", title="Fish Fry", type=SpecialType.FOOD, applies_on=["TU"]),
            DatedSpecial(
                id="d1",
                title="Stout Week",
                type=SpecialType.DRINK,
                start_date=date(2024, 1, 15),
                end_date=date(2024, 1, 21),
            ),
            DatedSpecial(id="d2", title="Margaritas", type=SpecialType.DRINK, applies_on=["TU"]),
        ]
        aggregator.load([], specials, [], *window(date(2024, 1, 14), date(2024, 1, 20)))

        items = aggregator.for_day(date(2024, 1, 16))
        assert [(i.source_id, i.special_type) for i in items] == [
            ("f1", SpecialType.FOOD),
            ("d1", SpecialType.DRINK),
        ]

    def test_inactive_specials_are_skipped(self, aggregator, window):
        specials = [
            DatedSpecial(id="f1", title="Old", type="food", applies_on=["TU"], is_active=False),
            DatedSpecial(id="f2", title="New", type="food", applies_on=["TU"]),
        ]
        aggregator.load([], specials, [], *window(date(2024, 1, 16), date(2024, 1, 16)))
        assert [i.source_id for i in aggregator.for_day(date(2024, 1, 16))] == ["f2"]

    def test_no_special_on_unmatched_day(self, aggregator, window):
        specials = [DatedSpecial(id="f1", title="Tacos", type="food", applies_on=["TU"])]
        aggregator.load([], specials, [], *window(date(2024, 1, 17), date(2024, 1, 17)))
        assert aggregator.for_day(date(2024, 1, 17)) == []


class TestEvents:
    def test_category_precedence_then_recurring_then_start(self, aggregator, local_dt, window):
        key = "2024-01-21"
        occurrences = [
            occurrence("brunch", local_dt(2024, 1, 21, 10), key),
            occurrence("karaoke", local_dt(2024, 1, 21, 21), key, category="karaoke"),
            occurrence("poker", local_dt(2024, 1, 21, 19), key, category="poker"),
            occurrence("broncos", local_dt(2024, 1, 21, 14), key, category="game_day"),
            occurrence("live-band", local_dt(2024, 1, 21, 20), key, recurring=True),
            occurrence("jazz", local_dt(2024, 1, 21, 12), key, recurring=True),
        ]
        aggregator.load(occurrences, [], [], *window(date(2024, 1, 21), date(2024, 1, 21)))

        items = aggregator.for_day(date(2024, 1, 21), ViewMode.WEEK)
        assert [i.source_id for i in items] == [
            "broncos",
            "poker",
            "karaoke",
            "jazz",
            "live-band",
            "brunch",
        ]

    def test_month_view_caps_events_at_two(self, aggregator, local_dt, window):
        key = "2024-01-21"
        occurrences = [occurrence(f"e{n}", local_dt(2024, 1, 21, 10 + n), key) for n in range(4)]
        aggregator.load(occurrences, [], [], *window(date(2024, 1, 21), date(2024, 1, 21)))

        assert [i.source_id for i in aggregator.for_day(date(2024, 1, 21))] == ["e0", "e1"]
        assert len(aggregator.for_day(date(2024, 1, 21), ViewMode.WEEK)) == 4

    def test_configured_precedence_and_caps(self, reconciler, local_dt, window):
        aggregator = CalendarItemAggregator(
            reconciler, category_precedence=("karaoke", "poker"), view_caps={"month": (1, 1)}
        )
        key = "2024-01-21"
        occurrences = [
            occurrence("poker", local_dt(2024, 1, 21, 19), key, category="poker"),
            occurrence("karaoke", local_dt(2024, 1, 21, 21), key, category="karaoke"),
        ]
        aggregator.load(occurrences, [], [], *window(date(2024, 1, 21), date(2024, 1, 21)))
        assert [i.source_id for i in aggregator.for_day(date(2024, 1, 21))] == ["karaoke"]


def test_day_list_order_is_specials_announcements_events(aggregator, local_dt, window):
    key = "2024-01-16"
    aggregator.load(
        [occurrence("trivia", local_dt(2024, 1, 16, 19), key)],
        [DatedSpecial(id="f1", title="Tacos", type="food", applies_on=["TU"])],
        [announcement("patio", local_dt(2024, 1, 16, 8), local_dt(2024, 1, 16, 22))],
        *window(date(2024, 1, 16), date(2024, 1, 16)),
    )
    kinds = [i.kind for i in aggregator.for_day(date(2024, 1, 16))]
    assert kinds == [CalendarItemKind.SPECIAL, CalendarItemKind.ANNOUNCEMENT, CalendarItemKind.EVENT]


def test_items_by_date_covers_window(aggregator, window):
    aggregator.load([], [], [], *window(date(2024, 1, 14), date(2024, 1, 20)))
    keys = list(aggregator.items_by_date())
    assert keys[0] == "2024-01-14"
    assert keys[-1] == "2024-01-20"
    assert len(keys) == 7


def test_items_by_date_is_empty_before_load(aggregator):
    assert aggregator.items_by_date() == {}


def test_unrecognised_day_returns_nothing(aggregator):
    assert aggregator.for_day("someday") == []
