"""Command-line entry for venuecal.

Reads events, specials and announcements from the JSON data file named in the
configuration (or ``--data``) and renders or edits the calendar.
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import json
import logging
import sys
from typing import NoReturn, Optional

from . import _init_logging
from .calendar.lite_datetime_utils import format_time_cross_platform
from .calendar.lite_models import CalendarItem, CalendarItemKind, ViewMode
from .calendar.lite_occurrence_expander import ExpanderConfig, OccurrenceExpander
from .calendar.lite_rrule_codec import RecurrenceRuleCodec, selection_from_pattern
from .core.config_loader import Config
from .core.config_manager import ConfigManager
from .core.exceptions import CommandError, StoreError
from .core.lite_logging import configure_logging
from .core.timezone_utils import SystemClock, TimezoneReconciler, parse_date_key
from .domain.calendar_aggregator import CalendarItemAggregator
from .domain.calendar_duplicator import CalendarDuplicator, DuplicationError
from .domain.calendar_view import CalendarView
from .domain.event_commands import (
    CommandResult,
    DeleteOccurrenceCommand,
    EventCache,
    RescheduleCommand,
    RescheduleRequest,
)
from .domain.event_store import JsonEventStore

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the venuecal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="venuecal",
        description="venuecal - restaurant calendar occurrence engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m venuecal agenda --view week --date 2024-01-15
  python -m venuecal reschedule trivia-night 2024-01-22 19:30
  python -m venuecal skip-occurrence trivia-night 2024-01-29
  python -m venuecal decode-rule "FREQ=WEEKLY;BYDAY=MO,WE"
  python -m venuecal duplicate 2024 2025
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML/JSON config file")
    parser.add_argument(
        "--data",
        metavar="PATH",
        help="JSON data file (default: data_file from config or VENUECAL_DATA_FILE)",
    )
    parser.add_argument("--timezone", metavar="ZONE", help="IANA display timezone")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    agenda = sub.add_parser("agenda", help="Print the calendar items of the visible window")
    agenda.add_argument(
        "--view", choices=[m.value for m in ViewMode], default=ViewMode.WEEK.value
    )
    agenda.add_argument("--date", metavar="YYYY-MM-DD", help="Anchor date (default: today)")

    reschedule = sub.add_parser("reschedule", help="Move an event to a new local date and time")
    reschedule.add_argument("event_id")
    reschedule.add_argument("date", metavar="YYYY-MM-DD")
    reschedule.add_argument("time", metavar="HH:MM")

    skip = sub.add_parser("skip-occurrence", help="Delete one occurrence of a recurring event")
    skip.add_argument("event_id")
    skip.add_argument("date", metavar="YYYY-MM-DD")

    decode = sub.add_parser("decode-rule", help="Decode and normalize a recurrence rule")
    decode.add_argument("rule")

    duplicate = sub.add_parser("duplicate", help="Copy a year's recurring events to a later year")
    duplicate.add_argument("source_year", type=int)
    duplicate.add_argument("target_year", type=int)

    return parser


def _load_config(args: argparse.Namespace) -> Config:
    config = ConfigManager().load_full_config(args.config)
    if args.data:
        config.data_file = args.data
    if args.timezone:
        config.display_timezone = args.timezone
    return config


def _open_store(config: Config) -> JsonEventStore:
    if not config.data_file:
        raise CommandError("No data file configured; pass --data or set VENUECAL_DATA_FILE")
    return JsonEventStore(config.data_file)


def _format_item(item: CalendarItem, reconciler: TimezoneReconciler) -> str:
    if item.kind == CalendarItemKind.SPECIAL and item.special_type is not None:
        return f"  [{item.special_type.value} special] {item.title}"
    if item.kind == CalendarItemKind.ANNOUNCEMENT:
        return f"  [announcement] {item.title}"
    occurrence = item.occurrence
    if occurrence is None or occurrence.is_all_day:
        return f"  [all day] {item.title}"
    local = reconciler.to_local_wall_clock(occurrence.start).to_naive()
    return f"  {format_time_cross_platform(local)} {item.title}"


async def _run_agenda(args: argparse.Namespace, config: Config) -> int:
    reconciler = TimezoneReconciler(config.display_timezone)
    anchor: Optional[datetime.date] = None
    if args.date:
        anchor = parse_date_key(args.date)
        if anchor is None:
            raise CommandError(f"Invalid date {args.date!r}")

    view = CalendarView(
        _open_store(config),
        clock=SystemClock(),
        reconciler=reconciler,
        expander=OccurrenceExpander(
            reconciler,
            config=ExpanderConfig.from_settings(config),
            known_categories=config.category_precedence,
        ),
        aggregator=CalendarItemAggregator(
            reconciler, config.category_precedence, config.view_caps
        ),
        mode=ViewMode(args.view),
        anchor_date=anchor,
    )
    await view.refresh()

    for key, items in view.items_by_date().items():
        if not items:
            continue
        print(key)
        for item in items:
            print(_format_item(item, reconciler))
    return 0


def _report(result: CommandResult) -> int:
    if result.ok:
        print(f"{result.event_id}: {result.status.value}")
        return 0
    detail = f" ({result.error})" if result.error else ""
    print(f"{result.event_id}: {result.status.value}{detail}", file=sys.stderr)
    return 1


async def _run_reschedule(args: argparse.Namespace, config: Config) -> int:
    request = RescheduleRequest.from_strings(args.event_id, args.date, args.time)
    command = RescheduleCommand(
        _open_store(config), EventCache(), TimezoneReconciler(config.display_timezone)
    )
    return _report(await command.execute(request))


async def _run_skip(args: argparse.Namespace, config: Config) -> int:
    command = DeleteOccurrenceCommand(_open_store(config), EventCache())
    return _report(await command.execute(args.event_id, args.date))


async def _run_duplicate(args: argparse.Namespace, config: Config) -> int:
    store = _open_store(config)
    reconciler = TimezoneReconciler(config.display_timezone)
    start, _ = reconciler.day_bounds(datetime.date(args.source_year, 1, 1))
    _, end = reconciler.day_bounds(datetime.date(args.source_year, 12, 31))

    report = CalendarDuplicator(reconciler).duplicate(
        await store.fetch_range(start, end), args.source_year, args.target_year
    )

    added = []
    for event in report.created:
        try:
            await store.add(event)
        except StoreError as e:
            logger.warning("Could not store duplicated event %s: %s", event.id, e)
            report.errors.append(DuplicationError(event.id, event.title, str(e)))
            continue
        added.append(event)
    report.created = added

    for error in report.errors:
        print(f"{error.event_id}: {error.error}", file=sys.stderr)
    print(f"Duplicated {len(report.created)} events, {len(report.errors)} errors")
    return 1 if report.errors else 0


def _run_decode(args: argparse.Namespace) -> int:
    codec = RecurrenceRuleCodec()
    pattern = codec.decode(args.rule)
    print(json.dumps({"rule": codec.encode(pattern), **selection_from_pattern(pattern)}))
    return 0


def _dispatch(args: argparse.Namespace, config: Config) -> int:
    if args.command == "decode-rule":
        return _run_decode(args)

    runners = {
        "agenda": _run_agenda,
        "reschedule": _run_reschedule,
        "skip-occurrence": _run_skip,
        "duplicate": _run_duplicate,
    }
    return asyncio.run(runners[args.command](args, config))


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the venuecal CLI and exit with its status code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
        _init_logging("DEBUG" if args.debug else config.log_level)
        configure_logging(debug_mode=args.debug, log_level=config.log_level)
        sys.exit(_dispatch(args, config))
    except (CommandError, StoreError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
