"""
Selection aggregation: guest grid picks back to proposed intervals.

Cells are ``(day_key, start_minute)`` positions on a grid whose column
width is the current slot size. Aggregation joins runs of adjacent cells
on the same day into one proposed interval.
"""

import uuid
from typing import Callable, Dict, FrozenSet, Iterable, List, Sequence, Tuple

from .business_calendar import BusinessCalendar
from .models import ProposedInterval, SelectedCell, TimeRange

MinutesByDay = Dict[str, List[Tuple[int, int]]]


def _new_id() -> str:
    return uuid.uuid4().hex


def is_cell_available(
    cell: SelectedCell,
    slot_minutes: int,
    minutes_by_day: MinutesByDay
) -> bool:
    """Check if a whole slot starting at the cell fits in a free interval."""
    end_minute = cell.start_minute + slot_minutes
    return any(
        cell.start_minute >= start and end_minute <= end
        for start, end in minutes_by_day.get(cell.day_key, [])
    )


def prune_cells(
    cells: Iterable[SelectedCell],
    slot_minutes: int,
    minutes_by_day: MinutesByDay
) -> FrozenSet[SelectedCell]:
    """
    Drop every cell that no longer maps to an available slot.

    Cells are never moved to another position; they either survive as-is
    or disappear.
    """
    return frozenset(
        cell for cell in cells
        if is_cell_available(cell, slot_minutes, minutes_by_day)
    )


class SelectionAggregator:
    """
    Converts selected cells into minimal contiguous proposed intervals.

    Uses the business calendar for every wall-clock conversion so cell
    positions and interval instants agree with the free-interval builder.
    """

    def __init__(
        self,
        calendar: BusinessCalendar,
        id_factory: Callable[[], str] = _new_id
    ):
        self.calendar = calendar
        self._id_factory = id_factory

    def cell_for(self, slot: TimeRange) -> SelectedCell:
        """Return the grid cell whose column starts at the slot's start."""
        key = self.calendar.day_key(slot.start)
        return SelectedCell(day_key=key, start_minute=self.calendar.minute_of_day(slot.start, key))

    def cells_for(self, slots: Sequence[TimeRange]) -> FrozenSet[SelectedCell]:
        return frozenset(self.cell_for(slot) for slot in slots)

    def aggregate(
        self,
        cells: Iterable[SelectedCell],
        slot_minutes: int
    ) -> List[ProposedInterval]:
        """
        Merge runs of adjacent cells per day into proposed intervals.

        Example (30-minute grid):
        Cells: 09:00, 09:30, 10:30
        Result: [09:00-10:00, 10:30-11:00]

        Returns:
            Proposed intervals sorted by start instant across all days
        """
        grouped: Dict[str, List[int]] = {}
        for cell in cells:
            grouped.setdefault(cell.day_key, []).append(cell.start_minute)

        result: List[ProposedInterval] = []

        for day_key, starts in grouped.items():
            starts.sort()
            run_start = starts[0]
            run_end = run_start + slot_minutes

            gap = self.calendar.skipped_minutes(day_key)

            for start in starts[1:]:
                if start == run_end or (gap is not None and (run_end, start) == gap):
                    run_end = start + slot_minutes
                    continue

                result.append(self._build_interval(day_key, run_start, run_end))
                run_start = start
                run_end = start + slot_minutes

            result.append(self._build_interval(day_key, run_start, run_end))

        result.sort(key=lambda interval: interval.start)
        return result

    def _build_interval(self, day_key: str, start_minute: int, end_minute: int) -> ProposedInterval:
        return ProposedInterval(
            id=self._id_factory(),
            time_range=TimeRange(
                start=self.calendar.instant_at(day_key, start_minute),
                end=self.calendar.instant_at(day_key, end_minute)
            )
        )
