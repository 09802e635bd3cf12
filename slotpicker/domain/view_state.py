"""
Scheduler view state for the guest-facing selection grid.

The state is an immutable value. Every transition returns a new state;
input changes (query window, slot size, fetched availability) re-derive
cell availability and prune selections that no longer fit.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from pendulum import Date

from .business_calendar import BusinessCalendar
from .intervals import clip
from .models import SelectedCell, TimeRange
from .selection import MinutesByDay, is_cell_available, prune_cells


class DragMode(str, Enum):
    SELECT = "select"
    UNSELECT = "unselect"


class CellState(str, Enum):
    UNAVAILABLE = "unavailable"
    AVAILABLE = "available"
    SELECTED = "selected"


@dataclass(frozen=True)
class GridRow:
    """One rendered grid row: a business day and its cells."""
    day: Date
    cells: Tuple[Tuple[SelectedCell, CellState], ...]


@dataclass(frozen=True)
class SchedulerViewState:
    """
    Everything the selection grid depends on.

    ``availability`` is derived from ``free_intervals`` and ``query`` by
    ``recompute``; it is not part of equality.
    """
    query: TimeRange
    slot_minutes: int
    free_intervals: Tuple[TimeRange, ...] = ()
    selected_cells: FrozenSet[SelectedCell] = frozenset()
    drag_mode: Optional[DragMode] = None
    availability: MinutesByDay = field(default_factory=dict, compare=False, repr=False)

    def recompute(
        self,
        calendar: BusinessCalendar,
        *,
        query: Optional[TimeRange] = None,
        slot_minutes: Optional[int] = None,
        free_intervals: Optional[Iterable[TimeRange]] = None
    ) -> "SchedulerViewState":
        """
        Apply changed inputs, re-derive availability and prune selections.

        Only free intervals inside the query window count as available.
        """
        new_query = query if query is not None else self.query
        new_slot_minutes = slot_minutes if slot_minutes is not None else self.slot_minutes
        new_intervals = (
            tuple(free_intervals) if free_intervals is not None else self.free_intervals
        )

        visible = [
            clipped for clipped in (clip(interval, new_query) for interval in new_intervals)
            if clipped is not None
        ]
        availability = calendar.minutes_by_day(visible)

        return replace(
            self,
            query=new_query,
            slot_minutes=new_slot_minutes,
            free_intervals=new_intervals,
            selected_cells=prune_cells(self.selected_cells, new_slot_minutes, availability),
            availability=availability
        )

    def with_query(self, calendar: BusinessCalendar, query: TimeRange) -> "SchedulerViewState":
        return self.recompute(calendar, query=query)

    def with_slot_minutes(self, calendar: BusinessCalendar, slot_minutes: int) -> "SchedulerViewState":
        return self.recompute(calendar, slot_minutes=slot_minutes)

    def with_free_intervals(
        self,
        calendar: BusinessCalendar,
        free_intervals: Iterable[TimeRange]
    ) -> "SchedulerViewState":
        return self.recompute(calendar, free_intervals=free_intervals)

    def is_available(self, cell: SelectedCell) -> bool:
        return is_cell_available(cell, self.slot_minutes, self.availability)

    def cell_state(self, cell: SelectedCell) -> CellState:
        if not self.is_available(cell):
            return CellState.UNAVAILABLE
        if cell in self.selected_cells:
            return CellState.SELECTED
        return CellState.AVAILABLE

    def pointer_down(self, cell: SelectedCell) -> "SchedulerViewState":
        """
        Start a drag gesture on a cell.

        The drag mode is chosen from the cell's current state: pressing a
        selected cell unselects, anything else selects. Unavailable cells
        are not interactive.
        """
        if not self.is_available(cell):
            return self

        mode = DragMode.UNSELECT if cell in self.selected_cells else DragMode.SELECT
        return replace(self, drag_mode=mode)._apply(cell)

    def pointer_enter(self, cell: SelectedCell) -> "SchedulerViewState":
        """Replay the active drag mode on a cell the pointer moves over."""
        if self.drag_mode is None or not self.is_available(cell):
            return self
        return self._apply(cell)

    def pointer_up(self) -> "SchedulerViewState":
        """End the drag gesture, wherever the pointer is released."""
        if self.drag_mode is None:
            return self
        return replace(self, drag_mode=None)

    def toggle(self, cell: SelectedCell) -> "SchedulerViewState":
        """A click: pointer-down immediately followed by pointer-up."""
        return self.pointer_down(cell).pointer_up()

    def clear_selection(self) -> "SchedulerViewState":
        return replace(self, selected_cells=frozenset(), drag_mode=None)

    def grid(self, calendar: BusinessCalendar) -> List[GridRow]:
        """Build the grid rows (business days) and columns (slot starts)."""
        columns = calendar.grid_minutes(self.slot_minutes)
        rows: List[GridRow] = []

        for day in calendar.business_days(self.query.start, self.query.end):
            day_key = day.to_date_string()
            cells = tuple(
                (cell, self.cell_state(cell))
                for cell in (SelectedCell(day_key=day_key, start_minute=m) for m in columns)
            )
            rows.append(GridRow(day=day, cells=cells))

        return rows

    def _apply(self, cell: SelectedCell) -> "SchedulerViewState":
        if self.drag_mode is DragMode.UNSELECT:
            return replace(self, selected_cells=self.selected_cells - {cell})
        return replace(self, selected_cells=self.selected_cells | {cell})
