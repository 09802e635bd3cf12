"""
Application service for computing the calendar owner's availability.

The service coordinates fetching busy ranges via a calendar client adapter
and delegates the actual interval algebra to the domain-level
``SlotCalculator``. This keeps the CLI thin and improves testability by
allowing the calendar dependency to be mocked via a simple protocol.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

from pendulum import DateTime

from ..domain.business_calendar import validate_query_window
from ..domain.exceptions import SlotSizeError
from ..domain.intervals import parse_busy_ranges
from ..domain.models import TimeRange
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

MIN_SLOT_MINUTES = 15
MAX_SLOT_MINUTES = 180


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    async def get_busy_ranges(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str,
    ) -> List[Dict[str, Any]]:
        """Return raw ``{"start": iso, "end": iso}`` busy entries."""


def validate_slot_minutes(slot_minutes: int) -> int:
    """
    Ensure a slot size is within the supported range.

    Raises:
        SlotSizeError: If slot_minutes lies outside [15, 180]
    """
    if not MIN_SLOT_MINUTES <= slot_minutes <= MAX_SLOT_MINUTES:
        raise SlotSizeError(
            f"slot_minutes must be between {MIN_SLOT_MINUTES} and {MAX_SLOT_MINUTES}, "
            f"got {slot_minutes}"
        )
    return slot_minutes


class AvailabilityService:
    """
    Orchestrates busy-range retrieval and free-interval calculation.

    Every request fetches its own busy data; nothing is cached between
    calls.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        slot_calculator: SlotCalculator,
        calendar_id: str,
    ) -> None:
        self._calendar_client = calendar_client
        self._slot_calculator = slot_calculator
        self._calendar_id = calendar_id

    @property
    def timezone(self) -> str:
        return self._slot_calculator.calendar.timezone

    async def list_events(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
    ) -> List[Dict[str, Any]]:
        """Return the provider's busy entries as delivered."""
        validate_query_window(start_date, end_date)

        return await self._calendar_client.get_busy_ranges(
            calendar_id=self._calendar_id,
            start_time=start_date,
            end_time=end_date,
            timezone=self.timezone,
        )

    async def fetch_busy_ranges(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
    ) -> List[TimeRange]:
        """Fetch busy ranges, dropping malformed entries."""
        entries = await self.list_events(start_date=start_date, end_date=end_date)
        busy_ranges = parse_busy_ranges(entries, self.timezone)

        dropped = len(entries) - len(busy_ranges)
        if dropped:
            logger.info("Dropped %d malformed busy entries for %s", dropped, self._calendar_id)

        return busy_ranges

    async def find_free_intervals(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
    ) -> List[TimeRange]:
        """
        Retrieve busy data and compute the free intervals.

        Raises:
            InvalidRangeError: If end_date is not later than start_date
        """
        validate_query_window(start_date, end_date)

        busy_ranges = await self.fetch_busy_ranges(start_date=start_date, end_date=end_date)

        return self._slot_calculator.build_free_intervals(
            start_date=start_date,
            end_date=end_date,
            busy_ranges=busy_ranges,
        )

    async def find_slots(
        self,
        *,
        start_date: DateTime,
        end_date: DateTime,
        slot_minutes: int,
    ) -> List[TimeRange]:
        """
        Retrieve busy data and compute discrete slots.

        Raises:
            InvalidRangeError: If end_date is not later than start_date
            SlotSizeError: If slot_minutes lies outside [15, 180]
        """
        validate_query_window(start_date, end_date)
        validate_slot_minutes(slot_minutes)

        free_intervals = await self.find_free_intervals(start_date=start_date, end_date=end_date)

        return self._slot_calculator.discretize(free_intervals, slot_minutes)
