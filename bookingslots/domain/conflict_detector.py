"""
Overlap detection between a candidate interval and existing reservations.
"""

from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import Reservation, TimeRange


class ConflictDetector:
    """
    Decides whether a candidate interval collides with existing reservations.

    Two half-open intervals ``[a.start, a.end)`` and ``[b.start, b.end)``
    overlap iff ``a.start < b.end and a.end > b.start``. Back-to-back
    intervals therefore never conflict. Only PENDING holds that have not
    expired and CONFIRMED reservations are considered.
    """

    @staticmethod
    def overlaps(first: TimeRange, second: TimeRange) -> bool:
        return first.overlaps(second)

    def find_conflicts(
        self,
        start: DateTime,
        duration_minutes: int,
        reservations: Iterable[Reservation],
        now: Optional[DateTime] = None,
    ) -> List[Reservation]:
        """
        Return the blocking reservations that intersect
        ``[start, start + duration_minutes)``.

        Args:
            start: Candidate start (any timezone, compared as an instant)
            duration_minutes: Candidate length
            reservations: Existing reservations of the provider
            now: When given, PENDING holds expired at this instant are ignored
        """
        candidate = TimeRange(start=start, end=start.add(minutes=duration_minutes))

        return [
            reservation
            for reservation in reservations
            if reservation.is_blocking(now) and self.overlaps(candidate, reservation.time_range())
        ]

    def has_conflict(
        self,
        start: DateTime,
        duration_minutes: int,
        reservations: Iterable[Reservation],
        now: Optional[DateTime] = None,
    ) -> bool:
        return bool(self.find_conflicts(start, duration_minutes, reservations, now=now))
