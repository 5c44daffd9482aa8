"""
Day-by-day availability: generated slots annotated booked or free.
"""

from datetime import date
from typing import List, Optional, Sequence

import pendulum
from pendulum import DateTime

from .conflict_detector import ConflictDetector
from .models import DayAvailability, Reservation, ScheduleConfig, TimeSlot
from .slot_generator import SlotGenerator


class AvailabilityComputer:
    """
    Composes ``SlotGenerator`` and ``ConflictDetector`` over a date range.

    Read-only: the reservations are passed in, already fetched by the caller
    with a single range query.
    """

    def __init__(self, slot_generator: SlotGenerator, conflict_detector: ConflictDetector):
        self.slot_generator = slot_generator
        self.conflict_detector = conflict_detector

    def compute(
        self,
        schedule: ScheduleConfig,
        start_day: date,
        days: int,
        reservations: Sequence[Reservation],
        now: Optional[DateTime] = None,
    ) -> List[DayAvailability]:
        """
        Build one ``DayAvailability`` per day of ``[start_day, start_day + days)``.

        Args:
            schedule: The provider's working schedule
            start_day: First local calendar day
            days: Number of days to cover
            reservations: Existing reservations overlapping the range
            now: When given, slots starting before it are omitted and expired
                holds no longer mark slots as booked

        Returns:
            List with exactly ``days`` entries, including days off and fully
            booked days
        """
        first_day = pendulum.date(start_day.year, start_day.month, start_day.day)
        result: List[DayAvailability] = []

        for day_offset in range(days):
            day = first_day.add(days=day_offset)
            result.append(self.compute_day(schedule, day, reservations, now=now))

        return result

    def compute_day(
        self,
        schedule: ScheduleConfig,
        day: date,
        reservations: Sequence[Reservation],
        now: Optional[DateTime] = None,
    ) -> DayAvailability:
        starts = self.slot_generator.generate(schedule, day)
        slots: List[TimeSlot] = []

        for start in starts:
            if now is not None and start < now:
                continue

            is_booked = self.conflict_detector.has_conflict(
                start, schedule.session_duration, reservations, now=now
            )
            slots.append(
                TimeSlot(
                    start_local=start,
                    end_local=start.add(minutes=schedule.session_duration),
                    is_booked=is_booked,
                )
            )

        return DayAvailability(
            date=pendulum.date(day.year, day.month, day.day),
            slots=slots,
            is_day_off=not schedule.is_working_day(day),
        )
