"""Compact recurrence rule codec for venuecal.

Rules use a small subset of RFC 5545 RRULE syntax:

    FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20240630T235959Z
    FREQ=MONTHLY;BYMONTHDAY=15

Decoding never raises. A rule the codec cannot understand is logged and
decoded as a non-recurring pattern, so a single malformed record only loses its
repetition rather than breaking the calendar.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, Union

from ..core.exceptions import RecurrenceRuleError
from ..core.timezone_utils import format_date_key, parse_date_key
from .lite_models import Frequency, RecurrencePattern, Weekday

logger = logging.getLogger(__name__)

_UNTIL_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T\d{6}Z?)?$")

# RFC parts accepted syntactically but without effect on expansion
_IGNORED_PARTS = {"interval", "count", "wkst", "bysetpos"}


@dataclass
class RecurrenceValidationResult:
    """Outcome of validating a pattern before it is saved from a form."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class RecurrenceRuleCodec:
    """Converts between rule text and RecurrencePattern."""

    def decode(self, rule_text: Optional[str]) -> RecurrencePattern:
        """Parse rule text into a pattern.

        Args:
            rule_text: Rule text such as "FREQ=WEEKLY;BYDAY=MO" (None or blank
                means no recurrence)

        Returns:
            The decoded pattern, or a non-recurring pattern if the text is
            malformed or uses unsupported features
        """
        if rule_text is None or not rule_text.strip():
            return RecurrencePattern()

        try:
            return self._parse(rule_text)
        except RecurrenceRuleError as e:
            logger.debug("Treating rule %r as non-recurring: %s", rule_text, e)
            return RecurrencePattern()

    def encode(self, pattern: RecurrencePattern) -> str:
        """Serialize a pattern to rule text.

        Patterns without effect (frequency none, weekly without weekdays,
        monthly without a month day) encode to an empty string.
        """
        frequency = pattern.effective_frequency
        if frequency == Frequency.WEEKLY:
            days = ",".join(d.value for d in pattern.ordered_weekdays())
            text = f"FREQ=WEEKLY;BYDAY={days}"
        elif frequency == Frequency.MONTHLY:
            text = f"FREQ=MONTHLY;BYMONTHDAY={pattern.month_day}"
        else:
            return ""

        if pattern.until is not None:
            # End of day keeps the last date inclusive
            text += f";UNTIL={pattern.until.strftime('%Y%m%d')}T235959Z"
        return text

    def validate(
        self, pattern: RecurrencePattern, anchor_date: Optional[date] = None
    ) -> RecurrenceValidationResult:
        """Check a pattern for problems a form should report before saving."""
        result = RecurrenceValidationResult()

        if pattern.frequency == Frequency.WEEKLY and not pattern.weekdays:
            result.errors.append("Weekly recurrence needs at least one weekday")
        if pattern.frequency == Frequency.MONTHLY and pattern.month_day is None:
            result.errors.append("Monthly recurrence needs a day of the month")

        if pattern.until is not None:
            if pattern.frequency == Frequency.NONE:
                result.warnings.append("End date is ignored for non-recurring events")
            elif anchor_date is not None and pattern.until < anchor_date:
                result.errors.append(
                    f"End date {format_date_key(pattern.until)} is before the first "
                    f"occurrence on {format_date_key(anchor_date)}"
                )

        if pattern.effective_frequency == Frequency.MONTHLY and (pattern.month_day or 0) > 28:
            result.warnings.append(
                f"Months with fewer than {pattern.month_day} days will have no occurrence"
            )

        return result

    def _parse(self, rule_text: str) -> RecurrencePattern:
        text = rule_text.strip()
        if text.upper().startswith("RRULE:"):
            text = text[len("RRULE:") :]

        parts: dict[str, str] = {}
        for part in text.split(";"):
            if not part.strip():
                continue
            if "=" not in part:
                raise RecurrenceRuleError(f"Malformed rule part {part!r}")
            key, value = part.split("=", 1)
            key = key.strip().lower()
            if key in _IGNORED_PARTS:
                logger.debug("Ignoring unsupported rule part %s=%s", key.upper(), value)
                continue
            parts[key] = value.strip()

        freq_value = parts.pop("freq", "").upper()
        if not freq_value:
            raise RecurrenceRuleError("Rule is missing FREQ")

        until = self._parse_until(parts.pop("until")) if "until" in parts else None
        byday = parts.pop("byday", None)
        bymonthday = parts.pop("bymonthday", None)

        for key in parts:
            logger.debug("Ignoring unknown rule part %s", key.upper())

        if freq_value == "WEEKLY":
            weekdays = self._parse_weekdays(byday) if byday else frozenset()
            return RecurrencePattern(frequency=Frequency.WEEKLY, weekdays=weekdays, until=until)

        if freq_value == "MONTHLY":
            if bymonthday is None:
                if byday:
                    raise RecurrenceRuleError("Monthly nth-weekday rules are not supported")
                raise RecurrenceRuleError("Monthly rule is missing BYMONTHDAY")
            return RecurrencePattern(
                frequency=Frequency.MONTHLY,
                month_day=self._parse_month_day(bymonthday),
                until=until,
            )

        raise RecurrenceRuleError(f"Unsupported frequency {freq_value!r}")

    @staticmethod
    def _parse_weekdays(value: str) -> frozenset[Weekday]:
        days = set()
        for token in value.split(","):
            token = token.strip().upper()
            if not token:
                continue
            try:
                days.add(Weekday(token))
            except ValueError:
                # Covers ordinal forms like "1MO" as well as typos
                raise RecurrenceRuleError(f"Unsupported BYDAY value {token!r}") from None
        return frozenset(days)

    @staticmethod
    def _parse_month_day(value: str) -> int:
        try:
            day = int(value)
        except ValueError:
            raise RecurrenceRuleError(f"Unsupported BYMONTHDAY value {value!r}") from None
        if not 1 <= day <= 31:
            raise RecurrenceRuleError(f"BYMONTHDAY out of range: {day}")
        return day

    @staticmethod
    def _parse_until(value: str) -> date:
        match = _UNTIL_RE.match(value.strip().upper())
        if not match:
            raise RecurrenceRuleError(f"Unsupported UNTIL value {value!r}")
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError as e:
            raise RecurrenceRuleError(f"Invalid UNTIL date {value!r}") from e


def pattern_from_selection(
    frequency: Union[str, Frequency],
    day_names: Iterable[str] = (),
    month_day: Optional[int] = None,
    until: Union[date, str, None] = None,
) -> RecurrencePattern:
    """Build a pattern from form selections.

    Args:
        frequency: "none", "weekly" or "monthly"
        day_names: Selected weekday names ("Monday", "tue", "WE", ...)
        month_day: Selected day of the month for monthly rules
        until: Optional inclusive end date (date or "YYYY-MM-DD")

    Raises:
        ValueError: If a selection is not recognised
    """
    freq = Frequency(frequency.lower() if isinstance(frequency, str) else frequency)

    weekdays = set()
    for name in day_names:
        day = Weekday.parse(name)
        if day is None:
            raise ValueError(f"Unknown weekday {name!r}")
        weekdays.add(day)

    until_date = None
    if until:
        until_date = parse_date_key(until)
        if until_date is None:
            raise ValueError(f"Invalid end date {until!r}")

    if freq == Frequency.NONE:
        return RecurrencePattern()
    if freq == Frequency.WEEKLY:
        return RecurrencePattern(frequency=freq, weekdays=frozenset(weekdays), until=until_date)
    return RecurrencePattern(frequency=freq, month_day=month_day, until=until_date)


def selection_from_pattern(pattern: RecurrencePattern) -> dict[str, Any]:
    """Convert a pattern back into the values a form displays."""
    return {
        "frequency": pattern.effective_frequency.value,
        "days": [d.full_name for d in pattern.ordered_weekdays()],
        "month_day": pattern.month_day,
        "until": format_date_key(pattern.until) if pattern.until else None,
    }


_default_codec = RecurrenceRuleCodec()


def decode_rule(rule_text: Optional[str]) -> RecurrencePattern:
    """Decode rule text with the shared codec (convenience function)."""
    return _default_codec.decode(rule_text)


def encode_rule(pattern: RecurrencePattern) -> str:
    """Encode a pattern with the shared codec (convenience function)."""
    return _default_codec.encode(pattern)
