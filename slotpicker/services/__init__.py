"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, CalendarClientProtocol
from .proposals import ProposalRecord, ProposalService
from .scheduler_controller import SchedulerController

__all__ = [
    "AvailabilityService",
    "CalendarClientProtocol",
    "ProposalRecord",
    "ProposalService",
    "SchedulerController",
]
