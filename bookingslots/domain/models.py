"""
Domain models for schedules, reservations and derived slots.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, time
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidBookingRequest, InvalidScheduleError, InvalidStatusTransition

MINUTES_PER_DAY = 24 * 60


def weekday_index(day: Union[Date, DateTime]) -> int:
    """Return the weekday with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class ScheduleConfig:
    """
    A provider's working schedule in the operating timezone.

    ``end_time`` of 00:00 means the provider closes at midnight. Any other
    ``end_time`` at or before ``start_time`` leaves the day without a
    bookable window; overnight spans are not supported.
    """
    working_days: FrozenSet[int]
    start_time: time
    end_time: time
    session_duration: int
    break_between_sessions: int = 0
    is_available: bool = True

    def __post_init__(self):
        object.__setattr__(self, "working_days", frozenset(self.working_days))

        invalid_days = sorted(day for day in self.working_days if day not in range(7))
        if invalid_days:
            raise InvalidScheduleError(f"working_days must be between 0 and 6, got {invalid_days}")
        if self.session_duration <= 0:
            raise InvalidScheduleError("session_duration must be greater than zero")
        if self.break_between_sessions < 0:
            raise InvalidScheduleError("break_between_sessions must not be negative")

    @property
    def grid_step(self) -> int:
        """Spacing in minutes between successive slot starts."""
        return self.session_duration + self.break_between_sessions

    @property
    def start_minute(self) -> int:
        return self.start_time.hour * 60 + self.start_time.minute

    @property
    def end_minute(self) -> int:
        if self.end_time == time(0, 0):
            return MINUTES_PER_DAY
        return self.end_time.hour * 60 + self.end_time.minute

    @property
    def has_open_window(self) -> bool:
        """False when the end boundary does not come after the start boundary."""
        return self.end_minute > self.start_minute

    @property
    def days_off(self) -> FrozenSet[int]:
        return frozenset(range(7)) - self.working_days

    def is_working_day(self, day: Union[Date, DateTime]) -> bool:
        """Check if a given date falls on one of the working days."""
        return weekday_index(day) in self.working_days


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)


BLOCKING_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})

_ALLOWED_TRANSITIONS: Dict[ReservationStatus, Set[ReservationStatus]] = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED},
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class Reservation:
    """
    A committed or held booking as stored by the ledger.

    ``start_utc`` is always normalised to UTC. ``expires_at`` is only
    meaningful while the reservation is a PENDING hold.
    """
    id: str
    provider_id: str
    start_utc: DateTime
    duration_minutes: int
    status: ReservationStatus = ReservationStatus.PENDING
    price_amount: float = 0.0
    notes: str = ""
    location: Optional[str] = None
    service_name: str = ""
    created_at: Optional[DateTime] = None
    expires_at: Optional[DateTime] = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {self.duration_minutes}")
        object.__setattr__(self, "start_utc", pendulum.instance(self.start_utc).in_timezone("UTC"))
        object.__setattr__(self, "status", ReservationStatus(self.status))

    @property
    def end_utc(self) -> DateTime:
        return self.start_utc.add(minutes=self.duration_minutes)

    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_utc, end=self.end_utc)

    def is_expired(self, now: DateTime) -> bool:
        """A PENDING hold past its expiry no longer holds capacity."""
        return (
            self.status == ReservationStatus.PENDING
            and self.expires_at is not None
            and self.expires_at <= now
        )

    def is_blocking(self, now: Optional[DateTime] = None) -> bool:
        """Only live PENDING holds and CONFIRMED bookings block new bookings."""
        if self.status not in BLOCKING_STATUSES:
            return False
        if now is not None and self.is_expired(now):
            return False
        return True

    def transition_to(self, status: ReservationStatus) -> "Reservation":
        """Return a copy in the new status, enforcing the lifecycle."""
        status = ReservationStatus(status)
        if self.status.is_terminal:
            raise InvalidStatusTransition(
                f"Reservation {self.id} is already {self.status.value}"
            )
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Reservation {self.id} cannot move from {self.status.value} to {status.value}"
            )
        expires_at = self.expires_at if status == ReservationStatus.PENDING else None
        return replace(self, status=status, expires_at=expires_at)


@dataclass(frozen=True)
class TimeSlot:
    """
    One candidate bookable interval of a day, in local time.
    """
    start_local: DateTime
    end_local: DateTime
    is_booked: bool = False

    @property
    def label(self) -> str:
        """Display label, e.g. ``2:00 PM``."""
        return self.start_local.format("h:mm A")

    @property
    def time_of_day(self) -> str:
        return self.start_local.format("HH:mm")


@dataclass
class DayAvailability:
    """
    The slot list of a single calendar day.

    Fully booked days and days off are still returned so callers can render
    them.
    """
    date: Date
    slots: List[TimeSlot] = field(default_factory=list)
    is_day_off: bool = False

    @property
    def day_label(self) -> str:
        return self.date.format("ddd")

    @property
    def day_number(self) -> str:
        return str(self.date.day)

    @property
    def month_name(self) -> str:
        return self.date.format("MMM")

    @property
    def free_slots(self) -> List[TimeSlot]:
        return [slot for slot in self.slots if not slot.is_booked]

    @property
    def is_fully_booked(self) -> bool:
        return bool(self.slots) and not self.free_slots


@dataclass(frozen=True)
class BookingRequest:
    """
    A client's proposed booking. ``requested_start`` may be an ISO-8601
    string (with or without offset) or a datetime.
    """
    provider_id: str
    service_duration_minutes: int
    requested_start: Union[str, datetime]
    price_amount: float = 0.0
    notes: str = ""
    location: Optional[str] = None
    service_name: str = ""

    def __post_init__(self):
        if not self.provider_id:
            raise InvalidBookingRequest("provider_id is required")
        if self.service_duration_minutes <= 0:
            raise InvalidBookingRequest(
                f"service_duration_minutes must be positive, got {self.service_duration_minutes}"
            )
        if self.price_amount < 0:
            raise InvalidBookingRequest("price_amount cannot be negative")


class RejectionReason(str, Enum):
    PROVIDER_NOT_ACCEPTING = "PROVIDER_NOT_ACCEPTING"
    DAY_OFF = "DAY_OFF"
    OUTSIDE_BUSINESS_HOURS = "OUTSIDE_BUSINESS_HOURS"
    MISALIGNED_SLOT = "MISALIGNED_SLOT"
    TIME_CONFLICT = "TIME_CONFLICT"

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    RejectionReason.PROVIDER_NOT_ACCEPTING: "This provider is not currently accepting bookings",
    RejectionReason.DAY_OFF: "Selected day is the provider's day off",
    RejectionReason.OUTSIDE_BUSINESS_HOURS: "Selected time is outside the provider's working hours",
    RejectionReason.MISALIGNED_SLOT: "Selected time does not align with the provider's scheduling intervals",
    RejectionReason.TIME_CONFLICT: "This time slot is already booked",
}


class ValidationState(str, Enum):
    RECEIVED = "RECEIVED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class BookingDecision:
    """Verdict of the booking validator for one request."""
    state: ValidationState
    start_local: DateTime
    end_local: DateTime
    reason: Optional[RejectionReason] = None
    conflicting_ids: Tuple[str, ...] = ()
    states: Tuple[ValidationState, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.state == ValidationState.ACCEPTED


@dataclass(frozen=True)
class BookingOutcome:
    """Result of ``validate_and_reserve``: a reservation or a rejection reason."""
    reservation: Optional[Reservation] = None
    reason: Optional[RejectionReason] = None

    def __post_init__(self):
        if (self.reservation is None) == (self.reason is None):
            raise ValueError("BookingOutcome needs exactly one of reservation or reason")

    @property
    def accepted(self) -> bool:
        return self.reservation is not None
