"""
Candidate slot generation for a single day.

Pure domain logic: identical inputs always yield identical output, no I/O and
no hidden state.
"""

import logging
from datetime import date
from typing import List

from pendulum import DateTime

from .models import ScheduleConfig
from .time_normalizer import TimeNormalizer

logger = logging.getLogger(__name__)


class SlotGenerator:
    """
    Produces the ordered slot start times of a day for a schedule.

    Algorithm:
    1. Return nothing when the provider is unavailable or the day is off
    2. Walk the local wall clock from ``start_time`` in grid steps
       (``session_duration + break_between_sessions``)
    3. Keep a start only if the whole session ends by ``end_time``
    4. Drop starts the wall clock skips on a daylight-saving jump
    """

    def __init__(self, normalizer: TimeNormalizer):
        self.normalizer = normalizer

    def generate(self, schedule: ScheduleConfig, day: date) -> List[DateTime]:
        """
        Generate the local start times of all candidate slots on ``day``.

        Args:
            schedule: The provider's working schedule
            day: Calendar date in the operating timezone

        Returns:
            Ordered list of local DateTimes, empty if nothing is bookable
        """
        if not schedule.is_available or not schedule.is_working_day(day):
            return []

        starts: List[DateTime] = []
        for offset in self.grid_offsets(schedule):
            minute = schedule.start_minute + offset
            # Starts inside a daylight-saving gap never occur on the wall clock
            if self.normalizer.is_skipped(day, minute):
                continue
            starts.append(self.normalizer.local_datetime(day, minute))

        return starts

    def grid_offsets(self, schedule: ScheduleConfig) -> List[int]:
        """
        Minute offsets from ``start_time`` of every slot whose entire session
        fits before ``end_time``.
        """
        if not schedule.has_open_window:
            logger.warning(
                "Schedule end %s is not after start %s; overnight spans are unsupported",
                schedule.end_time.strftime("%H:%M"),
                schedule.start_time.strftime("%H:%M"),
            )
            return []

        offsets: List[int] = []
        window = schedule.end_minute - schedule.start_minute
        offset = 0

        while offset + schedule.session_duration <= window:
            offsets.append(offset)
            offset += schedule.grid_step

        return offsets
