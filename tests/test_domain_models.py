"""
Tests for domain models.
"""

import pendulum
import pytest
from datetime import time

from bookingslots.domain.exceptions import (
    InvalidBookingRequest,
    InvalidScheduleError,
    InvalidStatusTransition,
)
from bookingslots.domain.models import (
    BookingOutcome,
    BookingRequest,
    DayAvailability,
    RejectionReason,
    Reservation,
    ReservationStatus,
    ScheduleConfig,
    TimeRange,
    TimeSlot,
    weekday_index,
)

TZ = "Africa/Cairo"


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2024-11-25 09:00", tz=TZ)
        end = pendulum.parse("2024-11-25 17:00", tz=TZ)

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 480  # 8 hours

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        start = pendulum.parse("2024-11-25 17:00", tz=TZ)
        end = pendulum.parse("2024-11-25 09:00", tz=TZ)

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_touching_ranges_do_not_overlap(self):
        """Back-to-back ranges share a boundary but do not overlap."""
        first = TimeRange(
            start=pendulum.parse("2024-11-25 09:00", tz=TZ),
            end=pendulum.parse("2024-11-25 10:00", tz=TZ)
        )
        second = TimeRange(
            start=pendulum.parse("2024-11-25 10:00", tz=TZ),
            end=pendulum.parse("2024-11-25 11:00", tz=TZ)
        )

        assert not first.overlaps(second)
        assert not second.overlaps(first)


class TestScheduleConfig:
    """Tests for ScheduleConfig value object."""

    def test_grid_step_and_boundaries(self):
        schedule = ScheduleConfig(
            working_days=[1, 2, 3, 4, 5],
            start_time=time(10, 0),
            end_time=time(18, 0),
            session_duration=45,
            break_between_sessions=15,
        )

        assert schedule.grid_step == 60
        assert schedule.start_minute == 600
        assert schedule.end_minute == 1080
        assert schedule.working_days == frozenset({1, 2, 3, 4, 5})
        assert schedule.days_off == frozenset({0, 6})

    def test_midnight_end_means_end_of_day(self):
        schedule = ScheduleConfig(
            working_days=[1],
            start_time=time(20, 0),
            end_time=time(0, 0),
            session_duration=60,
        )

        assert schedule.end_minute == 24 * 60
        assert schedule.has_open_window

    def test_end_before_start_has_no_window(self):
        schedule = ScheduleConfig(
            working_days=[1],
            start_time=time(18, 0),
            end_time=time(10, 0),
            session_duration=60,
        )

        assert not schedule.has_open_window

    def test_working_day_uses_sunday_zero(self):
        """Weekdays are numbered 0=Sunday .. 6=Saturday."""
        schedule = ScheduleConfig(
            working_days=[0],
            start_time=time(10, 0),
            end_time=time(18, 0),
            session_duration=60,
        )

        sunday = pendulum.date(2024, 11, 24)
        monday = pendulum.date(2024, 11, 25)

        assert weekday_index(sunday) == 0
        assert weekday_index(monday) == 1
        assert schedule.is_working_day(sunday)
        assert not schedule.is_working_day(monday)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"session_duration": 0},
            {"session_duration": -30},
            {"break_between_sessions": -5},
            {"working_days": [7]},
        ],
    )
    def test_invalid_schedule_raises(self, kwargs):
        params = {
            "working_days": [1],
            "start_time": time(10, 0),
            "end_time": time(18, 0),
            "session_duration": 60,
        }
        params.update(kwargs)

        with pytest.raises(InvalidScheduleError):
            ScheduleConfig(**params)


class TestReservation:
    """Tests for Reservation lifecycle."""

    def _reservation(self, **kwargs) -> Reservation:
        params = {
            "id": "r1",
            "provider_id": "artist-1",
            "start_utc": pendulum.datetime(2024, 11, 25, 14, tz=TZ),
            "duration_minutes": 60,
        }
        params.update(kwargs)
        return Reservation(**params)

    def test_start_is_normalised_to_utc(self):
        reservation = self._reservation()

        assert reservation.start_utc.timezone_name == "UTC"
        assert reservation.start_utc.hour == 12
        assert reservation.end_utc.hour == 13

    def test_allowed_transitions(self):
        pending = self._reservation(expires_at=pendulum.datetime(2024, 11, 25, 10, tz="UTC"))

        confirmed = pending.transition_to(ReservationStatus.CONFIRMED)
        completed = confirmed.transition_to(ReservationStatus.COMPLETED)

        assert confirmed.status == ReservationStatus.CONFIRMED
        assert confirmed.expires_at is None
        assert completed.status == ReservationStatus.COMPLETED
        assert pending.status == ReservationStatus.PENDING

    @pytest.mark.parametrize(
        "status, target",
        [
            (ReservationStatus.CANCELLED, ReservationStatus.CONFIRMED),
            (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED),
            (ReservationStatus.PENDING, ReservationStatus.COMPLETED),
            (ReservationStatus.CONFIRMED, ReservationStatus.PENDING),
        ],
    )
    def test_forbidden_transitions(self, status, target):
        reservation = self._reservation(status=status)

        with pytest.raises(InvalidStatusTransition):
            reservation.transition_to(target)

    @pytest.mark.parametrize("status", [ReservationStatus.CANCELLED, ReservationStatus.COMPLETED])
    def test_terminal_status_is_final(self, status):
        reservation = self._reservation(status=status)

        assert status.is_terminal
        with pytest.raises(InvalidStatusTransition, match="is already"):
            reservation.transition_to(ReservationStatus.CANCELLED)

    def test_only_live_holds_and_confirmed_block(self):
        now = pendulum.datetime(2024, 11, 25, 10, tz="UTC")

        live_hold = self._reservation(expires_at=now.add(minutes=5))
        expired_hold = self._reservation(expires_at=now.subtract(minutes=1))

        assert live_hold.is_blocking(now)
        assert not expired_hold.is_blocking(now)
        assert expired_hold.is_blocking()  # without a clock expiry is not applied
        assert self._reservation(status=ReservationStatus.CONFIRMED).is_blocking(now)
        assert not self._reservation(status=ReservationStatus.CANCELLED).is_blocking(now)
        assert not self._reservation(status=ReservationStatus.COMPLETED).is_blocking(now)


class TestBookingRequest:
    """Tests for BookingRequest input validation."""

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InvalidBookingRequest):
            BookingRequest(provider_id="artist-1", service_duration_minutes=0, requested_start="2024-11-25T10:00")

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidBookingRequest):
            BookingRequest(
                provider_id="artist-1",
                service_duration_minutes=60,
                requested_start="2024-11-25T10:00",
                price_amount=-1,
            )


class TestDerivedModels:
    """Tests for TimeSlot, DayAvailability and outcomes."""

    def test_slot_labels(self):
        start = pendulum.datetime(2024, 11, 25, 14, tz=TZ)
        slot = TimeSlot(start_local=start, end_local=start.add(minutes=60))

        assert slot.label == "2:00 PM"
        assert slot.time_of_day == "14:00"

    def test_day_availability_helpers(self):
        start = pendulum.datetime(2024, 11, 25, 10, tz=TZ)
        day = DayAvailability(
            date=pendulum.date(2024, 11, 25),
            slots=[
                TimeSlot(start_local=start, end_local=start.add(minutes=60), is_booked=True),
                TimeSlot(start_local=start.add(hours=1), end_local=start.add(hours=2)),
            ],
        )

        assert day.day_label == "Mon"
        assert day.day_number == "25"
        assert day.month_name == "Nov"
        assert len(day.free_slots) == 1
        assert not day.is_fully_booked

    def test_outcome_requires_exactly_one_side(self):
        assert not BookingOutcome(reason=RejectionReason.DAY_OFF).accepted

        with pytest.raises(ValueError):
            BookingOutcome()

    def test_rejection_reasons_have_messages(self):
        for reason in RejectionReason:
            assert reason.message
