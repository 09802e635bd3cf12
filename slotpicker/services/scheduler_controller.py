"""
Controller driving the guest selection grid.

Owns the single ``SchedulerViewState`` value of a session. Pointer events
update it synchronously; query and slot-size edits schedule a debounced
reload of the free intervals.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from pendulum import DateTime

from ..domain.business_calendar import BusinessCalendar
from ..domain.exceptions import SlotPickerError
from ..domain.models import ProposedInterval, SelectedCell, TimeRange
from ..domain.selection import SelectionAggregator
from ..domain.view_state import SchedulerViewState

logger = logging.getLogger(__name__)

FetchFreeIntervals = Callable[[DateTime, DateTime], Awaitable[List[TimeRange]]]

DEFAULT_DEBOUNCE_SECONDS = 0.2


class SchedulerController:
    """
    Single owner of the grid state for one guest session.

    Reloads are single-flight: a new debounce timer cancels the pending
    one. Each fetch carries a sequence number and only the response of the
    latest issued fetch is applied, so a slow earlier response never
    overwrites a newer one.
    """

    def __init__(
        self,
        calendar: BusinessCalendar,
        fetch_free_intervals: FetchFreeIntervals,
        initial_state: SchedulerViewState,
        aggregator: Optional[SelectionAggregator] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_change: Optional[Callable[[SchedulerViewState], None]] = None,
    ) -> None:
        self._calendar = calendar
        self._fetch_free_intervals = fetch_free_intervals
        self._state = initial_state.recompute(calendar)
        self._aggregator = aggregator or SelectionAggregator(calendar)
        self._debounce_seconds = debounce_seconds
        self._on_change = on_change

        self._sequence = 0
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self.last_error: Optional[SlotPickerError] = None

    @property
    def state(self) -> SchedulerViewState:
        return self._state

    @property
    def sequence(self) -> int:
        """Sequence number of the latest issued or scheduled fetch."""
        return self._sequence

    # Input changes

    def set_query(self, query: TimeRange) -> None:
        self._update(self._state.with_query(self._calendar, query))
        self.schedule_reload()

    def set_slot_minutes(self, slot_minutes: int) -> None:
        self._update(self._state.with_slot_minutes(self._calendar, slot_minutes))
        self.schedule_reload()

    # Pointer events

    def pointer_down(self, cell: SelectedCell) -> None:
        self._update(self._state.pointer_down(cell))

    def pointer_enter(self, cell: SelectedCell) -> None:
        self._update(self._state.pointer_enter(cell))

    def pointer_up(self) -> None:
        self._update(self._state.pointer_up())

    def toggle(self, cell: SelectedCell) -> None:
        self._update(self._state.toggle(cell))

    def clear_selection(self) -> None:
        self._update(self._state.clear_selection())

    def proposed_intervals(self) -> List[ProposedInterval]:
        """Aggregate the current selection into proposed intervals."""
        return self._aggregator.aggregate(self._state.selected_cells, self._state.slot_minutes)

    # Reloading

    def schedule_reload(self) -> None:
        """Schedule a reload after the debounce delay, replacing any pending one."""
        if self._pending is not None:
            self._pending.cancel()
        self._sequence += 1

        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self._debounce_seconds, self._start_reload)

    async def reload(self) -> bool:
        """
        Fetch free intervals for the current query and apply them.

        Returns:
            True if the response was applied, False if a newer fetch was
            issued or scheduled meanwhile and this response was dropped
        """
        self._sequence += 1
        sequence = self._sequence
        query = self._state.query

        try:
            free_intervals = await self._fetch_free_intervals(query.start, query.end)
        except SlotPickerError:
            if sequence != self._sequence:
                logger.debug("Ignoring failure of stale availability request #%d", sequence)
                return False
            raise

        if sequence != self._sequence:
            logger.debug("Dropping stale availability response #%d (latest #%d)", sequence, self._sequence)
            return False

        self.last_error = None
        self._update(self._state.with_free_intervals(self._calendar, free_intervals))
        return True

    async def drain(self) -> None:
        """Wait until no reload is pending or running."""
        while self._pending is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
            else:
                await asyncio.sleep(self._debounce_seconds)

    def _start_reload(self) -> None:
        self._pending = None
        task = asyncio.ensure_future(self._reload_in_background())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reload_in_background(self) -> None:
        try:
            await self.reload()
        except SlotPickerError as exc:
            logger.warning("Availability reload failed: %s", exc)
            self.last_error = exc

    def _update(self, state: SchedulerViewState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_change is not None:
            self._on_change(state)
