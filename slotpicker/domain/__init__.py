"""
Domain layer - Pure business logic without external dependencies.
"""

from .business_calendar import BusinessCalendar
from .models import BusinessHours, ProposedInterval, SelectedCell, TimeRange
from .selection import SelectionAggregator
from .slot_calculator import SlotCalculator
from .view_state import SchedulerViewState

__all__ = [
    "BusinessCalendar",
    "BusinessHours",
    "ProposedInterval",
    "SchedulerViewState",
    "SelectedCell",
    "SelectionAggregator",
    "SlotCalculator",
    "TimeRange",
]
