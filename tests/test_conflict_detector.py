"""
Tests for conflict detection.
"""

import pendulum
import pytest

from bookingslots.domain.conflict_detector import ConflictDetector
from bookingslots.domain.models import Reservation, ReservationStatus, TimeRange

TZ = "Africa/Cairo"


def _at(hour: int, minute: int = 0):
    return pendulum.datetime(2024, 11, 25, hour, minute, tz=TZ)


def _reservation(rid: str, hour: int, minute: int = 0, duration: int = 60, **kwargs) -> Reservation:
    params = {"status": ReservationStatus.CONFIRMED}
    params.update(kwargs)
    return Reservation(
        id=rid,
        provider_id="artist-1",
        start_utc=_at(hour, minute),
        duration_minutes=duration,
        **params,
    )


def _four_branch_overlap(a: TimeRange, b: TimeRange) -> bool:
    """Enumerated overlap cases: starts inside, ends inside, contains, contained."""
    starts_inside = b.start <= a.start < b.end
    ends_inside = b.start < a.end <= b.end
    contains = a.start <= b.start and a.end >= b.end
    contained = a.start >= b.start and a.end <= b.end
    return starts_inside or ends_inside or contains or contained


class TestOverlap:
    """Tests for the interval overlap predicate."""

    @pytest.mark.parametrize(
        "first, second, expected",
        [
            ((10, 0, 11, 0), (10, 30, 11, 30), True),   # partial
            ((10, 0, 12, 0), (10, 30, 11, 0), True),    # containment
            ((10, 0, 11, 0), (10, 0, 11, 0), True),     # identical
            ((10, 0, 11, 0), (11, 0, 12, 0), False),    # touching
            ((10, 0, 11, 0), (12, 0, 13, 0), False),    # disjoint
            ((9, 45, 10, 15), (10, 0, 11, 0), True),
        ],
    )
    def test_overlap_is_symmetric(self, first, second, expected):
        a = TimeRange(start=_at(first[0], first[1]), end=_at(first[2], first[3]))
        b = TimeRange(start=_at(second[0], second[1]), end=_at(second[2], second[3]))

        assert ConflictDetector.overlaps(a, b) is expected
        assert ConflictDetector.overlaps(b, a) is expected

    def test_matches_enumerated_case_predicate(self):
        """The single half-open test agrees with the case-by-case formulation."""
        boundaries = [_at(10).add(minutes=15 * step) for step in range(9)]
        ranges = [
            TimeRange(start=start, end=end)
            for start in boundaries
            for end in boundaries
            if start < end
        ]

        for a in ranges:
            for b in ranges:
                assert ConflictDetector.overlaps(a, b) == _four_branch_overlap(a, b), (str(a), str(b))

    def test_comparison_is_by_instant(self):
        """Ranges in different zones are compared as absolute instants."""
        local = TimeRange(start=_at(14), end=_at(15))
        utc = TimeRange(
            start=pendulum.datetime(2024, 11, 25, 12, 30, tz="UTC"),
            end=pendulum.datetime(2024, 11, 25, 13, 30, tz="UTC"),
        )

        assert ConflictDetector.overlaps(local, utc)


class TestConflictDetector:
    """Tests for ConflictDetector.find_conflicts."""

    def setup_method(self):
        self.detector = ConflictDetector()

    def test_finds_overlapping_reservation(self):
        existing = [_reservation("r1", 14), _reservation("r2", 16)]

        conflicts = self.detector.find_conflicts(_at(14, 30), 60, existing)

        assert [r.id for r in conflicts] == ["r1"]

    def test_back_to_back_is_not_a_conflict(self):
        existing = [_reservation("r1", 14)]

        assert not self.detector.has_conflict(_at(15), 60, existing)
        assert not self.detector.has_conflict(_at(13), 60, existing)

    def test_long_request_spanning_several_bookings(self):
        existing = [_reservation("r1", 11), _reservation("r2", 13), _reservation("r3", 16)]

        conflicts = self.detector.find_conflicts(_at(10, 30), 180, existing)

        assert [r.id for r in conflicts] == ["r1", "r2"]

    @pytest.mark.parametrize("status", [ReservationStatus.CANCELLED, ReservationStatus.COMPLETED])
    def test_terminal_reservations_are_ignored(self, status):
        existing = [_reservation("r1", 14, status=status)]

        assert not self.detector.has_conflict(_at(14), 60, existing)

    def test_live_hold_blocks(self):
        now = _at(9)
        existing = [_reservation("h1", 14, status=ReservationStatus.PENDING, expires_at=now.add(minutes=15))]

        assert self.detector.has_conflict(_at(14), 60, existing, now=now)

    def test_expired_hold_is_ignored(self):
        now = _at(9)
        existing = [_reservation("h1", 14, status=ReservationStatus.PENDING, expires_at=now.subtract(minutes=1))]

        assert not self.detector.has_conflict(_at(14), 60, existing, now=now)

    def test_empty_ledger_has_no_conflict(self):
        assert self.detector.find_conflicts(_at(14), 60, []) == []
