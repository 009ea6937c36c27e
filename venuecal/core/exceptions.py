"""Custom exception hierarchy for venuecal.

Specific exception types let callers tell a recoverable store failure apart
from a programming error, and let the calendar surface degrade per event
instead of failing as a whole.
"""


class VenueCalError(Exception):
    """Base exception for all venuecal errors."""


class RecurrenceRuleError(VenueCalError):
    """Recurrence rule text could not be parsed.

    Raised internally by the rule codec. The public ``decode`` entry point
    catches it and demotes the event to non-recurring.
    """


class TimezoneReconciliationError(VenueCalError):
    """Wall-clock to instant conversion could not be resolved exactly.

    Raised when:
    - No candidate UTC offset round-trips to the requested wall-clock time
    - The wall-clock components do not form a valid date

    The reconciler converts this into its default-offset fallback.
    """


class StoreError(VenueCalError):
    """Base exception for event store failures.

    Store errors are recoverable from the caller's point of view: the
    local cached state is left untouched and the user may retry.
    """


class EventNotFoundError(StoreError):
    """The requested event id does not exist in the store."""


class StoreConflictError(StoreError):
    """An update carried a stale version token.

    Raised when another writer changed the record after it was read.
    """


class StoreUnavailableError(StoreError):
    """The backing store could not be read or written."""


class CommandError(VenueCalError):
    """A calendar command was rejected before reaching the store."""
