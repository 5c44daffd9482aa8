"""
Domain-specific exception hierarchy for the booking engine.

Business-rule rejections are not exceptions; they are returned as
``RejectionReason`` values. Everything here is either a client input error,
an invalid lifecycle operation, a commit-time conflict or an infrastructure
failure.
"""


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class InvalidTimestamp(BookingEngineError, ValueError):
    """Raised when a timestamp or timezone cannot be parsed."""


class InvalidScheduleError(BookingEngineError, ValueError):
    """Raised when a provider schedule violates its invariants."""


class InvalidBookingRequest(BookingEngineError, ValueError):
    """Raised when a booking request is malformed (duration, price, past start)."""


class UnknownProvider(BookingEngineError, LookupError):
    """Raised when no schedule exists for the requested provider."""


class ReservationNotFound(BookingEngineError, LookupError):
    """Raised when a reservation id is not present in the ledger."""


class InvalidStatusTransition(BookingEngineError):
    """Raised when a reservation is moved out of a terminal or wrong state."""


class HoldExpiredError(BookingEngineError):
    """Raised when a PENDING hold is confirmed after its expiry."""


class SlotConflictError(BookingEngineError):
    """Raised by the ledger when the commit-time re-check finds an overlap."""

    def __init__(self, message: str, conflicting_ids: tuple = ()):
        super().__init__(message)
        self.conflicting_ids = tuple(conflicting_ids)


class LedgerUnavailableError(BookingEngineError):
    """Raised when reservation storage cannot be reached. Retryable."""
