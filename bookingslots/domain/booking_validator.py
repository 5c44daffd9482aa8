"""
Gate-by-gate validation of a booking request.

A request enters as RECEIVED and leaves ACCEPTED or REJECTED with the reason
of the first failing gate. No gate tries to correct the request; a misaligned
or out-of-hours start is reported, never snapped to a nearby slot.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from pendulum import DateTime

from .conflict_detector import ConflictDetector
from .models import (
    BookingDecision,
    RejectionReason,
    Reservation,
    ScheduleConfig,
    ValidationState,
)
from .time_normalizer import TimeNormalizer

logger = logging.getLogger(__name__)


class _Candidate:
    """The request as seen by the gates: local start, end and live ledger rows."""

    def __init__(
        self,
        schedule: ScheduleConfig,
        start: DateTime,
        duration_minutes: int,
        reservations: Sequence[Reservation],
        now: Optional[DateTime],
    ):
        self.schedule = schedule
        self.start = start
        self.duration_minutes = duration_minutes
        self.end = start.add(minutes=duration_minutes)
        self.reservations = reservations
        self.now = now
        self.conflicts: List[Reservation] = []


class BookingValidator:
    """
    Runs a booking request through the ordered gates:

    1. provider accepting bookings       -> PROVIDER_NOT_ACCEPTING
    2. requested weekday is a working day -> DAY_OFF
    3. interval inside business hours     -> OUTSIDE_BUSINESS_HOURS
    4. start aligned to the slot grid     -> MISALIGNED_SLOT
    5. no overlap with live reservations  -> TIME_CONFLICT

    The verdict depends only on its inputs, so re-validating an accepted
    request against an unchanged ledger gives the same verdict.
    """

    def __init__(self, normalizer: TimeNormalizer, conflict_detector: ConflictDetector):
        self.normalizer = normalizer
        self.conflict_detector = conflict_detector
        self._gates: Tuple[Tuple[RejectionReason, Callable[[_Candidate], bool]], ...] = (
            (RejectionReason.PROVIDER_NOT_ACCEPTING, self._is_accepting),
            (RejectionReason.DAY_OFF, self._is_working_day),
            (RejectionReason.OUTSIDE_BUSINESS_HOURS, self._within_business_hours),
            (RejectionReason.MISALIGNED_SLOT, self._is_aligned),
            (RejectionReason.TIME_CONFLICT, self._is_free),
        )

    def validate(
        self,
        schedule: ScheduleConfig,
        requested_start: DateTime,
        duration_minutes: int,
        reservations: Sequence[Reservation],
        now: Optional[DateTime] = None,
    ) -> BookingDecision:
        """
        Decide whether the request may become a reservation.

        Args:
            schedule: The provider's schedule, read for this request
            requested_start: Requested start, any timezone
            duration_minutes: Service length in minutes (positive)
            reservations: The provider's live reservations around the request
            now: Instant used to ignore expired holds

        Returns:
            BookingDecision in state ACCEPTED or REJECTED
        """
        candidate = _Candidate(
            schedule=schedule,
            start=self.normalizer.to_local(requested_start),
            duration_minutes=duration_minutes,
            reservations=reservations,
            now=now,
        )
        state = ValidationState.RECEIVED
        logger.debug("Booking request %s at %s", state.value, candidate.start.to_iso8601_string())

        for reason, gate in self._gates:
            if not gate(candidate):
                logger.info(
                    "Booking request at %s rejected: %s",
                    candidate.start.to_iso8601_string(),
                    reason.value,
                )
                return BookingDecision(
                    state=ValidationState.REJECTED,
                    start_local=candidate.start,
                    end_local=candidate.end,
                    reason=reason,
                    conflicting_ids=tuple(r.id for r in candidate.conflicts),
                    states=(state, ValidationState.REJECTED),
                )

        return BookingDecision(
            state=ValidationState.ACCEPTED,
            start_local=candidate.start,
            end_local=candidate.end,
            states=(state, ValidationState.ACCEPTED),
        )

    @staticmethod
    def _is_accepting(candidate: _Candidate) -> bool:
        return candidate.schedule.is_available

    @staticmethod
    def _is_working_day(candidate: _Candidate) -> bool:
        return candidate.schedule.is_working_day(candidate.start)

    def _within_business_hours(self, candidate: _Candidate) -> bool:
        schedule = candidate.schedule
        if not schedule.has_open_window:
            return False

        start_minute = self.normalizer.minute_of_day(candidate.start)
        # Wall-clock end; a session running past local midnight exceeds 1440.
        end_minute = start_minute + candidate.duration_minutes

        return schedule.start_minute <= start_minute and end_minute <= schedule.end_minute

    def _is_aligned(self, candidate: _Candidate) -> bool:
        if candidate.start.second or candidate.start.microsecond:
            return False
        offset = self.normalizer.minute_of_day(candidate.start) - candidate.schedule.start_minute
        return offset % candidate.schedule.grid_step == 0

    def _is_free(self, candidate: _Candidate) -> bool:
        candidate.conflicts = self.conflict_detector.find_conflicts(
            candidate.start,
            candidate.duration_minutes,
            candidate.reservations,
            now=candidate.now,
        )
        return not candidate.conflicts
