# domain/errors.py - Errors raised by instrument in/out operations
#
# All three are local to a single operation on one record and are raised
# before anything is written.


class TrackerError(Exception):
    """Base class for operation errors reported back to the operator."""


class NotFoundError(TrackerError):
    """No instrument matches the given management number (or id)."""


class InvalidStateError(TrackerError):
    """The instrument is not in a state that allows the operation (e.g. borrow while in stock)."""


class ValidationError(TrackerError):
    """Malformed input, e.g. a non-positive delay or a blank borrower name."""
