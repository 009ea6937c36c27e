"""Event store protocol with in-memory and JSON-file implementations.

Every write bumps the event's ``version``; callers that read an event and
later update it can pass the version they saw and get a StoreConflictError
instead of silently overwriting a concurrent change. Exception dates are
appended under the store lock, so concurrent "delete this occurrence" actions
on the same event cannot lose each other's dates.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from venuecal.calendar.lite_models import Announcement, DatedSpecial, EventDefinition
from venuecal.core.exceptions import (
    EventNotFoundError,
    StoreConflictError,
    StoreError,
    StoreUnavailableError,
)
from venuecal.core.timezone_utils import ensure_utc, format_date_key, parse_date_key

logger = logging.getLogger(__name__)

# Fields a partial update may not touch
_PROTECTED_FIELDS = frozenset({"id", "version"})


class EventStore(Protocol):
    """Persistence collaborator consumed by the calendar commands."""

    async def fetch_range(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> list[EventDefinition]: ...

    async def fetch_by_id(self, event_id: str) -> EventDefinition: ...

    async def update(
        self, event_id: str, partial: dict[str, Any], expected_version: int | None = None
    ) -> EventDefinition: ...

    async def append_exception(self, event_id: str, date_key: str) -> EventDefinition: ...

    async def list_specials(self) -> list[DatedSpecial]: ...

    async def list_announcements(self) -> list[Announcement]: ...


class InMemoryEventStore:
    """Event store held in memory, guarded by an asyncio lock."""

    def __init__(
        self,
        events: Iterable[EventDefinition] = (),
        specials: Iterable[DatedSpecial] = (),
        announcements: Iterable[Announcement] = (),
    ) -> None:
        self._lock = asyncio.Lock()
        self._events: dict[str, EventDefinition] = {e.id: e for e in events}
        self._specials: list[DatedSpecial] = list(specials)
        self._announcements: list[Announcement] = list(announcements)

    async def fetch_range(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> list[EventDefinition]:
        """Return events that may have occurrences in ``[start, end)``.

        One-time events must start inside the window; recurring events only
        need to be anchored before its end.
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        async with self._lock:
            events = [
                e
                for e in self._events.values()
                if e.start < end and (e.is_recurring or e.start >= start)
            ]
        return sorted(events, key=lambda e: (e.start, e.id))

    async def fetch_by_id(self, event_id: str) -> EventDefinition:
        async with self._lock:
            return self._get_locked(event_id)

    async def add(self, event: EventDefinition) -> EventDefinition:
        """Insert a new event.

        Raises:
            StoreConflictError: If an event with the same id exists
        """
        async with self._lock:
            if event.id in self._events:
                raise StoreConflictError(f"Event {event.id} already exists")
            self._events[event.id] = event
            try:
                self._persist_locked()
            except StoreUnavailableError:
                del self._events[event.id]
                raise
            logger.info("Added event %s", event.id)
            return event

    async def update(
        self, event_id: str, partial: dict[str, Any], expected_version: int | None = None
    ) -> EventDefinition:
        """Apply a partial update to an event.

        Args:
            event_id: Event to update
            partial: Field values to replace
            expected_version: Version the caller last saw; None skips the check

        Returns:
            The updated event with its version bumped

        Raises:
            EventNotFoundError: If the event does not exist
            StoreConflictError: If expected_version is stale
            StoreError: If the update names unknown or protected fields or
                produces an invalid event
        """
        unknown = set(partial) - set(EventDefinition.model_fields)
        protected = set(partial) & _PROTECTED_FIELDS
        if unknown or protected:
            raise StoreError(f"Cannot update fields: {sorted(unknown | protected)}")

        async with self._lock:
            current = self._get_locked(event_id)
            if expected_version is not None and expected_version != current.version:
                raise StoreConflictError(
                    f"Event {event_id} is at version {current.version}, "
                    f"update expected {expected_version}"
                )
            try:
                updated = EventDefinition.model_validate(
                    {**current.model_dump(), **partial, "version": current.version + 1}
                )
            except ValidationError as e:
                raise StoreError(f"Invalid update for event {event_id}: {e}") from e

            self._replace_locked(current, updated)
            logger.info(
                "Updated event %s (%s) to version %d",
                event_id,
                ", ".join(partial),
                updated.version,
            )
            return updated

    async def append_exception(self, event_id: str, date_key: str) -> EventDefinition:
        """Add a suppressed occurrence date to an event; adding a date twice is a no-op.

        Raises:
            EventNotFoundError: If the event does not exist
            StoreError: If the date key is not a valid date
        """
        day = parse_date_key(date_key)
        if day is None:
            raise StoreError(f"Invalid exception date {date_key!r}")
        key = format_date_key(day)

        async with self._lock:
            current = self._get_locked(event_id)
            if key in current.exception_dates:
                logger.debug("Exception %s already recorded for event %s", key, event_id)
                return current

            updated = current.model_copy(
                update={
                    "exception_dates": current.exception_dates | {key},
                    "version": current.version + 1,
                }
            )
            self._replace_locked(current, updated)
            logger.info("Added exception %s to event %s", key, event_id)
            return updated

    async def list_specials(self) -> list[DatedSpecial]:
        async with self._lock:
            return list(self._specials)

    async def list_announcements(self) -> list[Announcement]:
        async with self._lock:
            return list(self._announcements)

    def _get_locked(self, event_id: str) -> EventDefinition:
        try:
            return self._events[event_id]
        except KeyError:
            raise EventNotFoundError(f"Event {event_id} not found") from None

    def _replace_locked(self, current: EventDefinition, updated: EventDefinition) -> None:
        """Swap in an updated event, restoring the old one if persisting fails."""
        self._events[current.id] = updated
        try:
            self._persist_locked()
        except StoreUnavailableError:
            self._events[current.id] = current
            raise

    def _persist_locked(self) -> None:
        """Write the current state to durable storage. Called with lock held."""


class JsonEventStore(InMemoryEventStore):
    """Event store persisted to a JSON file with atomic writes.

    The on-disk format is a JSON object with ``events``, ``specials`` and
    ``announcements`` lists. Malformed records are skipped with a warning so
    one bad entry does not hide the rest of the calendar.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load JSON from disk (if it exists) and populate memory.

        Raises:
            StoreUnavailableError: If the file exists but cannot be read or parsed
        """
        if not self._path.exists():
            logger.debug("Event store file not found; starting empty: %s", self._path)
            self._events, self._specials, self._announcements = {}, [], []
            return

        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailableError(f"Failed to read event store {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreUnavailableError(f"Event store {self._path} root must be an object")

        events = _load_records(data.get("events", []), EventDefinition, "event")
        self._events = {e.id: e for e in events}
        self._specials = _load_records(data.get("specials", []), DatedSpecial, "special")
        self._announcements = _load_records(
            data.get("announcements", []), Announcement, "announcement"
        )
        logger.debug(
            "Loaded event store %s (%d events, %d specials, %d announcements)",
            self._path,
            len(self._events),
            len(self._specials),
            len(self._announcements),
        )

    def _persist_locked(self) -> None:
        """Persist the store atomically via a temp file in the same directory."""
        data = {
            "events": [e.model_dump(mode="json") for e in self._events.values()],
            "specials": [s.model_dump(mode="json") for s in self._specials],
            "announcements": [a.model_dump(mode="json") for a in self._announcements],
        }

        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                os.fsync(tf.fileno())
            os.replace(tmp_path, self._path)
        except OSError as exc:
            logger.warning("Failed to persist event store to %s: %s", self._path, exc)
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise StoreUnavailableError(f"Failed to write event store {self._path}") from exc


def _load_records(raw: Any, model: Any, label: str) -> list[Any]:
    if not isinstance(raw, list):
        logger.warning("Ignoring %s list that is not a JSON array", label)
        return []

    records = []
    for index, item in enumerate(raw):
        try:
            records.append(model.model_validate(item))
        except (ValidationError, ValueError, TypeError) as exc:
            logger.warning("Skipping malformed %s record #%d: %s", label, index, exc)
    return records
