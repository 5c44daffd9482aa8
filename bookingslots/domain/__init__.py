"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityComputer
from .booking_validator import BookingValidator
from .conflict_detector import ConflictDetector
from .models import (
    BookingDecision,
    BookingOutcome,
    BookingRequest,
    DayAvailability,
    RejectionReason,
    Reservation,
    ReservationStatus,
    ScheduleConfig,
    TimeRange,
    TimeSlot,
    ValidationState,
)
from .slot_generator import SlotGenerator
from .time_normalizer import DEFAULT_TIMEZONE, TimeNormalizer

__all__ = [
    "AvailabilityComputer",
    "BookingDecision",
    "BookingOutcome",
    "BookingRequest",
    "BookingValidator",
    "ConflictDetector",
    "DEFAULT_TIMEZONE",
    "DayAvailability",
    "RejectionReason",
    "Reservation",
    "ReservationStatus",
    "ScheduleConfig",
    "SlotGenerator",
    "TimeNormalizer",
    "TimeRange",
    "TimeSlot",
    "ValidationState",
]
