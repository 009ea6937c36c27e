from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import pytest

from venuecal.calendar.lite_models import EventDefinition
from venuecal.calendar.lite_occurrence_expander import OccurrenceExpander
from venuecal.core.timezone_utils import FixedClock, TimezoneReconciler, WallClock


@pytest.fixture
def test_timezone() -> str:
    """Return the display zone used across tests.

    Mountain time observes DST (UTC-7 in winter, UTC-6 in summer), which lets
    tests exercise both offsets.
    """
    return "America/Denver"


@pytest.fixture
def reconciler(test_timezone: str) -> TimezoneReconciler:
    return TimezoneReconciler(test_timezone)


@pytest.fixture
def local_dt(reconciler: TimezoneReconciler) -> Callable[..., datetime]:
    """Build the UTC instant of a display-zone wall-clock time."""

    def _local(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
        return reconciler.from_local_wall_clock(WallClock(year, month, day, hour, minute))

    return _local


@pytest.fixture
def window(reconciler: TimezoneReconciler) -> Callable[[date, date], tuple[datetime, datetime]]:
    """Half-open instant window covering local dates ``first`` to ``last`` inclusive."""

    def _window(first: date, last: date) -> tuple[datetime, datetime]:
        start, _ = reconciler.day_bounds(first)
        _, end = reconciler.day_bounds(last)
        return start, end

    return _window


@pytest.fixture
def clock(local_dt: Callable[..., datetime]) -> FixedClock:
    """Clock frozen at Monday 2024-01-15 12:00 Mountain time."""
    return FixedClock(local_dt(2024, 1, 15, 12))


@pytest.fixture
def expander(reconciler: TimezoneReconciler) -> OccurrenceExpander:
    return OccurrenceExpander(reconciler)


@pytest.fixture
def make_event(local_dt: Callable[..., datetime]) -> Callable[..., EventDefinition]:
    """Factory for events anchored at a local wall-clock time.

    ``start``/``end`` are (year, month, day, hour, minute) tuples in the
    display zone; any other keyword is passed to EventDefinition.
    """

    def _make(
        event_id: str = "trivia",
        start: tuple[int, ...] = (2024, 1, 15, 19, 0),
        end: tuple[int, ...] | None = (2024, 1, 15, 21, 0),
        **fields: Any,
    ) -> EventDefinition:
        return EventDefinition(
            id=event_id,
            title=fields.pop("title", event_id.replace("-", " ").title()),
            start=local_dt(*start),
            end=local_dt(*end) if end is not None else None,
            **fields,
        )

    return _make
