"""
Core business logic for calculating free intervals and bookable slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from typing import Iterable, List

from pendulum import DateTime

from .business_calendar import BusinessCalendar
from .intervals import clip, merge_overlapping, subtract
from .models import TimeRange


class SlotCalculator:
    """
    Calculates free intervals and fixed-size slots from busy times.

    Algorithm:
    1. Get the business windows for the date range
    2. For each window, clip and merge the busy ranges overlapping it
    3. Subtract the merged busy ranges from the window
    4. Optionally walk the free intervals in fixed-size steps
    """

    def __init__(self, calendar: BusinessCalendar):
        self.calendar = calendar

    def build_free_intervals(
        self,
        start_date: DateTime,
        end_date: DateTime,
        busy_ranges: Iterable[TimeRange]
    ) -> List[TimeRange]:
        """
        Compute the maximal free intervals inside business hours.

        Args:
            start_date: Start of the search period
            end_date: End of the search period
            busy_ranges: Busy ranges in any order, possibly overlapping

        Returns:
            Free intervals in chronological order, never crossing a
            business window boundary

        Raises:
            InvalidRangeError: If end_date is not later than start_date
        """
        windows = self.calendar.windows(start_date, end_date)
        busy = list(busy_ranges)
        free_intervals: List[TimeRange] = []

        for window in windows:
            clipped = [
                clipped_range for clipped_range in (clip(b, window) for b in busy)
                if clipped_range is not None
            ]

            if not clipped:
                # Entire window is free
                free_intervals.append(window)
                continue

            free_intervals.extend(subtract(window, merge_overlapping(clipped)))

        return free_intervals

    @staticmethod
    def discretize(
        free_intervals: Iterable[TimeRange],
        slot_minutes: int
    ) -> List[TimeRange]:
        """
        Split free intervals into consecutive slots of ``slot_minutes``.

        Each interval is walked from its start; the tail shorter than one
        slot is dropped. The caller validates ``slot_minutes``.

        Example:
        Free: 09:00 - 10:30, slot_minutes=45
        Result: [09:00-09:45, 09:45-10:30]
        """
        slots: List[TimeRange] = []

        for interval in free_intervals:
            slot_start = interval.start
            slot_end = slot_start.add(minutes=slot_minutes)

            while slot_end <= interval.end:
                slots.append(TimeRange(start=slot_start, end=slot_end))
                slot_start = slot_end
                slot_end = slot_start.add(minutes=slot_minutes)

        return slots

    def find_slots(
        self,
        start_date: DateTime,
        end_date: DateTime,
        busy_ranges: Iterable[TimeRange],
        slot_minutes: int
    ) -> List[TimeRange]:
        """Compute free intervals and discretize them in one step."""
        free_intervals = self.build_free_intervals(start_date, end_date, busy_ranges)
        return self.discretize(free_intervals, slot_minutes)
