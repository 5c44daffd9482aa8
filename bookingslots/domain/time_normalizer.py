"""
Conversion between the fixed operating timezone and UTC.

All slot math and conflict comparisons happen in local operating time; UTC is
only used at the storage and wire boundaries.
"""

from datetime import date, datetime, timedelta
from typing import Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidTimestamp

DEFAULT_TIMEZONE = "Africa/Cairo"


class TimeNormalizer:
    """
    Parses and converts timestamps for a single IANA operating timezone.

    ISO-8601 strings without an offset are read as local wall-clock time;
    strings carrying ``Z`` or an explicit offset are converted. Both forms of
    the same instant normalise to identical local DateTimes.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        try:
            self.timezone = pendulum.timezone(timezone)
        except (ValueError, KeyError) as exc:
            raise InvalidTimestamp(f"Unknown timezone: {timezone!r}") from exc
        self.timezone_name = timezone

    def parse(self, value: Union[str, datetime]) -> DateTime:
        """Return ``value`` as a DateTime in the operating timezone."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return pendulum.instance(value, tz=self.timezone)
            return pendulum.instance(value).in_timezone(self.timezone)

        if not isinstance(value, str) or not value.strip():
            raise InvalidTimestamp(f"Could not parse timestamp: {value!r}")

        try:
            parsed = pendulum.parse(value.strip(), tz=self.timezone, exact=True)
        except (ValueError, TypeError) as exc:
            raise InvalidTimestamp(f"Could not parse timestamp: {value!r}") from exc

        if not isinstance(parsed, DateTime):
            raise InvalidTimestamp(f"Expected a date and time, got {value!r}")

        return parsed.in_timezone(self.timezone)

    def parse_date(self, value: Union[str, date]) -> Date:
        """Return a calendar date, reading datetimes in the operating timezone."""
        if isinstance(value, datetime):
            return self.parse(value).date()
        if isinstance(value, date):
            return pendulum.date(value.year, value.month, value.day)

        try:
            parsed = pendulum.parse(str(value).strip(), tz=self.timezone, exact=True)
        except (ValueError, TypeError) as exc:
            raise InvalidTimestamp(f"Could not parse date: {value!r}") from exc

        if isinstance(parsed, DateTime):
            return parsed.in_timezone(self.timezone).date()
        if isinstance(parsed, Date):
            return parsed
        raise InvalidTimestamp(f"Expected a calendar date, got {value!r}")

    def to_utc(self, value: Union[str, datetime]) -> DateTime:
        return self.parse(value).in_timezone("UTC")

    def to_local(self, value: datetime) -> DateTime:
        """Convert a stored instant to local time. Naive values are taken as UTC."""
        return pendulum.instance(value).in_timezone(self.timezone)

    def local_datetime(self, day: date, minute_of_day: int) -> DateTime:
        """
        Build the local DateTime ``minute_of_day`` minutes after midnight of
        ``day`` on the wall clock. Minute 1440 is the following midnight.

        A wall-clock time skipped by a daylight-saving jump resolves forward
        by the length of the jump: with clocks moving from 00:00 to 01:00,
        00:00 becomes 01:00 and 00:30 becomes 01:30.
        """
        wall_clock = self._wall_clock(day, minute_of_day)
        offset = self.timezone.utcoffset(wall_clock.replace(fold=0))
        return pendulum.instance(wall_clock - offset, tz="UTC").in_timezone(self.timezone)

    def is_skipped(self, day: date, minute_of_day: int) -> bool:
        """True when the wall-clock time falls in a daylight-saving gap."""
        wall_clock = self._wall_clock(day, minute_of_day)
        before = self.timezone.utcoffset(wall_clock.replace(fold=0))
        after = self.timezone.utcoffset(wall_clock.replace(fold=1))
        return after > before

    @staticmethod
    def _wall_clock(day: date, minute_of_day: int) -> datetime:
        return datetime(day.year, day.month, day.day) + timedelta(minutes=minute_of_day)

    @staticmethod
    def minute_of_day(value: DateTime) -> int:
        return value.hour * 60 + value.minute

    def day_bounds_utc(self, start_day: date, days: int) -> Tuple[DateTime, DateTime]:
        """
        UTC instants where local ``start_day`` and the day ``days`` later
        begin. A day whose midnight is skipped begins at its first real instant.
        """
        first = pendulum.date(start_day.year, start_day.month, start_day.day)
        return (
            self.local_datetime(first, 0).in_timezone("UTC"),
            self.local_datetime(first.add(days=days), 0).in_timezone("UTC"),
        )

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)
