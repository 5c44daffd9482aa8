"""
Application service for availability queries and booking commands.

The service fetches schedules and reservations through storage adapters and
delegates slot generation and validation to the domain layer. Storage is
reached through small protocols so the in-memory adapter and any database
backed ledger are interchangeable.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Callable, List, Optional, Protocol, Union

from pendulum import DateTime

from ..config import AppConfig
from ..domain.availability import AvailabilityComputer
from ..domain.booking_validator import BookingValidator
from ..domain.conflict_detector import ConflictDetector
from ..domain.exceptions import (
    HoldExpiredError,
    InvalidBookingRequest,
    LedgerUnavailableError,
    SlotConflictError,
)
from ..domain.models import (
    BookingDecision,
    BookingOutcome,
    BookingRequest,
    DayAvailability,
    RejectionReason,
    Reservation,
    ReservationStatus,
    ScheduleConfig,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.time_normalizer import TimeNormalizer

logger = logging.getLogger(__name__)


class ScheduleStoreProtocol(Protocol):
    """Provider settings store: read access to a provider's schedule."""

    async def get_schedule(self, provider_id: str) -> ScheduleConfig:
        """Return the current schedule or raise ``UnknownProvider``."""


class ReservationLedgerProtocol(Protocol):
    """
    Reservation storage.

    ``insert_pending`` must re-check conflicts and insert atomically for the
    provider and day, raising ``SlotConflictError`` when it loses a race.
    Connectivity failures surface as ``LedgerUnavailableError``.
    """

    async def list_reservations(
        self, provider_id: str, start_utc: DateTime, end_utc: DateTime
    ) -> List[Reservation]:
        """Return reservations of the provider overlapping ``[start_utc, end_utc)``."""

    async def insert_pending(self, reservation: Reservation, *, now: DateTime) -> Reservation:
        """Store a PENDING hold unless it overlaps a blocking reservation."""

    async def get(self, reservation_id: str) -> Reservation:
        """Return a reservation or raise ``ReservationNotFound``."""

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> Reservation:
        """Move a reservation to ``status`` following the lifecycle."""

    async def release_expired(self, now: DateTime) -> List[Reservation]:
        """Cancel PENDING holds whose expiry is at or before ``now``."""


class BookingService:
    """
    Caller-facing availability query and booking command.

    The validator's conflict check runs against a fresh ledger read and only
    gives early feedback; the ledger's atomic insert is what prevents double
    booking.
    """

    def __init__(
        self,
        schedule_store: ScheduleStoreProtocol,
        ledger: ReservationLedgerProtocol,
        normalizer: TimeNormalizer,
        *,
        hold_ttl_minutes: int = 15,
        availability_days: int = 14,
        min_duration_minutes: int = 15,
        max_duration_minutes: int = 240,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._schedule_store = schedule_store
        self._ledger = ledger
        self.normalizer = normalizer
        self.hold_ttl_minutes = hold_ttl_minutes
        self.availability_days = availability_days
        self.min_duration_minutes = min_duration_minutes
        self.max_duration_minutes = max_duration_minutes
        self._clock = clock or normalizer.now

        conflict_detector = ConflictDetector()
        self._availability = AvailabilityComputer(SlotGenerator(normalizer), conflict_detector)
        self._validator = BookingValidator(normalizer, conflict_detector)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        schedule_store: ScheduleStoreProtocol,
        ledger: ReservationLedgerProtocol,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> "BookingService":
        return cls(
            schedule_store,
            ledger,
            TimeNormalizer(config.timezone),
            hold_ttl_minutes=config.hold_ttl_minutes,
            availability_days=config.availability_days,
            min_duration_minutes=config.booking.min_duration_minutes,
            max_duration_minutes=config.booking.max_duration_minutes,
            clock=clock,
        )

    async def get_availability(
        self,
        provider_id: str,
        days: Optional[int] = None,
        start: Union[str, date, None] = None,
    ) -> List[DayAvailability]:
        """
        Return one ``DayAvailability`` per day, starting today unless ``start``
        is given. Slots already in the past are omitted.
        """
        days = self.availability_days if days is None else days
        if days <= 0:
            raise InvalidBookingRequest(f"days must be positive, got {days}")

        now = self._now()
        start_day = now.date() if start is None else self.normalizer.parse_date(start)
        schedule = await self._schedule_store.get_schedule(provider_id)

        range_start, range_end = self.normalizer.day_bounds_utc(start_day, days)
        reservations = await self._read_ledger(provider_id, range_start, range_end)

        return self._availability.compute(schedule, start_day, days, reservations, now=now)

    async def validate(self, provider_id: str, request: BookingRequest) -> BookingDecision:
        """Run all gates against the live ledger without reserving anything."""
        start, now = self._check_request(provider_id, request)
        schedule = await self._schedule_store.get_schedule(provider_id)
        return await self._decide(provider_id, schedule, start, request.service_duration_minutes, now)

    async def validate_and_reserve(self, provider_id: str, request: BookingRequest) -> BookingOutcome:
        """
        Validate a booking request and, if accepted, place a PENDING hold.

        Returns:
            BookingOutcome carrying the stored reservation or the rejection reason

        Raises:
            InvalidBookingRequest, InvalidTimestamp, UnknownProvider: bad input
            LedgerUnavailableError: storage unreachable, retry with backoff
        """
        start, now = self._check_request(provider_id, request)
        schedule = await self._schedule_store.get_schedule(provider_id)
        decision = await self._decide(provider_id, schedule, start, request.service_duration_minutes, now)

        if not decision.accepted:
            return BookingOutcome(reason=decision.reason)

        reservation = Reservation(
            id=uuid.uuid4().hex,
            provider_id=provider_id,
            start_utc=decision.start_local,
            duration_minutes=request.service_duration_minutes,
            status=ReservationStatus.PENDING,
            price_amount=request.price_amount,
            notes=request.notes,
            location=request.location,
            service_name=request.service_name,
            created_at=now.in_timezone("UTC"),
            expires_at=now.add(minutes=self.hold_ttl_minutes).in_timezone("UTC"),
        )

        try:
            stored = await self._ledger.insert_pending(reservation, now=now)
        except SlotConflictError as exc:
            logger.warning(
                "Commit-time conflict for provider %s at %s after passing pre-check (conflicts: %s)",
                provider_id,
                decision.start_local.to_iso8601_string(),
                ", ".join(exc.conflicting_ids) or "unknown",
            )
            return BookingOutcome(reason=RejectionReason.TIME_CONFLICT)
        except LedgerUnavailableError:
            logger.error("Reservation ledger unavailable while committing for provider %s", provider_id)
            raise

        logger.info(
            "Hold %s placed for provider %s at %s until %s",
            stored.id,
            provider_id,
            decision.start_local.to_iso8601_string(),
            stored.expires_at.to_iso8601_string() if stored.expires_at else "-",
        )
        return BookingOutcome(reservation=stored)

    async def confirm(self, reservation_id: str) -> Reservation:
        """Turn a live PENDING hold into a CONFIRMED booking after payment."""
        now = self._now()
        reservation = await self._ledger.get(reservation_id)

        if reservation.is_expired(now):
            await self._ledger.update_status(reservation_id, ReservationStatus.CANCELLED)
            raise HoldExpiredError(f"Hold {reservation_id} expired at {reservation.expires_at}")

        return await self._ledger.update_status(reservation_id, ReservationStatus.CONFIRMED)

    async def cancel(self, reservation_id: str) -> Reservation:
        return await self._ledger.update_status(reservation_id, ReservationStatus.CANCELLED)

    async def complete(self, reservation_id: str) -> Reservation:
        return await self._ledger.update_status(reservation_id, ReservationStatus.COMPLETED)

    async def release_expired_holds(self) -> List[Reservation]:
        """Cancel every hold past its expiry, freeing its capacity."""
        released = await self._ledger.release_expired(self._now())
        if released:
            logger.info("Released %d expired hold(s)", len(released))
        return released

    def _now(self) -> DateTime:
        return self.normalizer.to_local(self._clock())

    def _check_request(self, provider_id: str, request: BookingRequest):
        """Input validation; these errors are never retried."""
        if request.provider_id != provider_id:
            raise InvalidBookingRequest(
                f"Request is for provider {request.provider_id!r}, not {provider_id!r}"
            )

        duration = request.service_duration_minutes
        if not self.min_duration_minutes <= duration <= self.max_duration_minutes:
            raise InvalidBookingRequest(
                f"service_duration_minutes must be between {self.min_duration_minutes} "
                f"and {self.max_duration_minutes}, got {duration}"
            )

        start = self.normalizer.parse(request.requested_start)
        now = self._now()
        if start < now:
            raise InvalidBookingRequest(f"Requested start {start.to_iso8601_string()} is in the past")

        return start, now

    async def _decide(
        self,
        provider_id: str,
        schedule: ScheduleConfig,
        start: DateTime,
        duration_minutes: int,
        now: DateTime,
    ) -> BookingDecision:
        # Fresh read of the whole local day; never reuse an earlier availability read
        day_start, day_end = self.normalizer.day_bounds_utc(start.date(), 1)
        reservations = await self._read_ledger(provider_id, day_start, day_end)
        return self._validator.validate(schedule, start, duration_minutes, reservations, now=now)

    async def _read_ledger(
        self, provider_id: str, start_utc: DateTime, end_utc: DateTime
    ) -> List[Reservation]:
        try:
            return await self._ledger.list_reservations(provider_id, start_utc, end_utc)
        except LedgerUnavailableError:
            logger.error("Reservation ledger unavailable while reading provider %s", provider_id)
            raise
