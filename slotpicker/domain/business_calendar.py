"""
Business calendar: per-day work windows and all wall-clock conversions.

Every conversion between absolute instants and local calendar positions
(day keys, minutes of the day, grid columns) goes through this module so
that free-interval construction, grid labelling and selection aggregation
agree on day boundaries.
"""

from typing import Dict, List, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidRangeError
from .models import BusinessHours, TimeRange

MINUTES_PER_DAY = 24 * 60


def validate_query_window(start: DateTime, end: DateTime) -> TimeRange:
    """
    Build the query window, rejecting empty or inverted ranges.

    Raises:
        InvalidRangeError: If end is not later than start
    """
    if end <= start:
        raise InvalidRangeError(f"End {end} must be later than start {start}")
    return TimeRange(start=start, end=end)


class BusinessCalendar:
    """
    Generates business windows for a query range in the configured timezone.

    A business window is the open-hours portion of one working day,
    clipped to the query range. Excluded weekdays contribute nothing.
    """

    def __init__(self, business_hours: BusinessHours):
        self.business_hours = business_hours

    @property
    def timezone(self) -> str:
        return self.business_hours.timezone

    def windows(self, start: DateTime, end: DateTime) -> List[TimeRange]:
        """
        Generate all business windows between two instants.

        Iterates the local days touched by ``[start, end)``, one window
        per working day.

        Raises:
            InvalidRangeError: If end is not later than start
        """
        query = validate_query_window(start, end)
        blocks: List[TimeRange] = []

        for day in self.local_days(query.start, query.end):
            if not self.business_hours.is_working_day(day):
                continue

            day_start = self._local_datetime(day, self.business_hours.start_hour * 60)
            day_end = self._local_datetime(day, self.business_hours.end_hour * 60)

            clipped_start = max(day_start, query.start)
            clipped_end = min(day_end, query.end)

            if clipped_start < clipped_end:
                blocks.append(TimeRange(start=clipped_start, end=clipped_end))

        return blocks

    def business_days(self, start: DateTime, end: DateTime) -> List[Date]:
        """Return the local working days between two instants, inclusive."""
        return [
            day for day in self.local_days(start, end)
            if self.business_hours.is_working_day(day)
        ]

    def grid_minutes(self, slot_minutes: int) -> List[int]:
        """
        Return the start minutes of the grid columns for a slot size.

        Columns start at the opening hour and step by ``slot_minutes`` as
        long as a whole slot fits before the closing hour.
        """
        first = self.business_hours.start_hour * 60
        last = self.business_hours.end_hour * 60
        return list(range(first, last - slot_minutes + 1, slot_minutes))

    def query_window(self, start_date: str | Date, end_date: str | Date) -> TimeRange:
        """
        Build the query window covering two local dates completely.

        The window ends at local midnight after ``end_date``, exclusive.

        Raises:
            InvalidRangeError: If end_date lies before start_date
        """
        start = self._as_date(start_date)
        end = self._as_date(end_date)

        start_dt = pendulum.datetime(start.year, start.month, start.day, tz=self.timezone)
        end_dt = pendulum.datetime(end.year, end.month, end.day, tz=self.timezone).add(days=1)

        return validate_query_window(start_dt, end_dt)

    def day_key(self, instant: DateTime) -> str:
        """Return the local calendar day of an instant as YYYY-MM-DD."""
        return instant.in_timezone(self.timezone).to_date_string()

    def minute_of_day(self, instant: DateTime, day_key: str) -> int:
        """
        Return the local minute of the day for an instant on ``day_key``.

        Instants on a later local day (an interval ending at midnight) map
        to the end of ``day_key``.
        """
        local = instant.in_timezone(self.timezone)
        if local.to_date_string() > day_key:
            return MINUTES_PER_DAY
        return local.hour * 60 + local.minute

    def instant_at(self, day_key: str, minute: int) -> DateTime:
        """Return the instant of a local day key and minute of the day."""
        return self._local_datetime(self._as_date(day_key), minute)

    def minutes_by_day(
        self,
        intervals: List[TimeRange]
    ) -> Dict[str, List[Tuple[int, int]]]:
        """
        Group intervals by local day as sorted ``(start_minute, end_minute)``.

        Intervals are expected not to span local days, which holds for
        anything derived from business windows. Wall-clock minutes skipped
        by a daylight-saving jump are cut out.
        """
        by_day: Dict[str, List[Tuple[int, int]]] = {}

        for interval in intervals:
            key = self.day_key(interval.start)
            by_day.setdefault(key, []).append(
                (
                    self.minute_of_day(interval.start, key),
                    self.minute_of_day(interval.end, key)
                )
            )

        for key, ranges in by_day.items():
            skipped = self.skipped_minutes(key)
            if skipped is not None:
                ranges[:] = _cut(ranges, skipped)
            ranges.sort()

        return by_day

    def skipped_minutes(self, day_key: str) -> Tuple[int, int] | None:
        """
        Return the ``[start, end)`` local minutes that do not exist on a day.

        Only a spring-forward day has such a gap; otherwise None.
        """
        day = self._as_date(day_key)
        start = self._local_datetime(day, 0).int_timestamp
        end = self._local_datetime(day, MINUTES_PER_DAY).int_timestamp
        missing = MINUTES_PER_DAY - (end - start) // 60
        if missing <= 0:
            return None

        for minute in range(0, MINUTES_PER_DAY, 15):
            local = self._local_datetime(day, minute)
            if local.hour * 60 + local.minute != minute:
                return minute, minute + missing

        return None

    def local_days(self, start: DateTime, end: DateTime) -> List[Date]:
        """
        Return the local calendar days touched by ``[start, end)``.

        An end at local midnight does not touch the day it opens.
        """
        current = start.in_timezone(self.timezone).date()
        local_end = end.in_timezone(self.timezone)
        last = local_end.date()
        if local_end == local_end.start_of("day") and last > current:
            last = last.subtract(days=1)

        days: List[Date] = []
        while current <= last:
            days.append(current)
            current = current.add(days=1)

        return days

    def _local_datetime(self, day: Date, minute: int) -> DateTime:
        if minute >= MINUTES_PER_DAY:
            day = day.add(days=minute // MINUTES_PER_DAY)
            minute = minute % MINUTES_PER_DAY

        return pendulum.datetime(
            day.year, day.month, day.day,
            minute // 60, minute % 60,
            tz=self.timezone
        )

    @staticmethod
    def _as_date(value: str | Date) -> Date:
        if isinstance(value, str):
            return pendulum.from_format(value, "YYYY-MM-DD").date()
        return value


def _cut(ranges: List[Tuple[int, int]], gap: Tuple[int, int]) -> List[Tuple[int, int]]:
    """Remove the minutes of ``gap`` from each ``(start, end)`` range."""
    result: List[Tuple[int, int]] = []
    for start, end in ranges:
        if start < gap[0]:
            result.append((start, min(end, gap[0])))
        if end > gap[1]:
            result.append((max(start, gap[1]), end))
    return result
