"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService, ReservationLedgerProtocol, ScheduleStoreProtocol

__all__ = ["BookingService", "ReservationLedgerProtocol", "ScheduleStoreProtocol"]
