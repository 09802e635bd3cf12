"""
Application service for submitting a guest's proposed meeting times.

A submission is validated, capped, stamped with an id and timestamp, then
handed to the notifier (owner notification and guest acknowledgement)
and finally persisted.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import List, Protocol, Sequence

import pendulum
from pydantic import BaseModel, Field

from ..domain.exceptions import EmptySelectionError, InvalidProposalError
from ..domain.models import TimeRange, to_utc_iso

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROPOSALS = 10


class SlotSuggestion(BaseModel):
    """One proposed interval as stored and mailed: UTC ISO instants."""
    start: str
    end: str

    def to_time_range(self) -> TimeRange:
        return TimeRange(start=pendulum.parse(self.start), end=pendulum.parse(self.end))


class ProposalRecord(BaseModel):
    """A submitted proposal."""
    id: str
    submitted_at: str
    name: str
    email: str
    note: str = ""
    slot_suggestions: List[SlotSuggestion] = Field(default_factory=list)


class NotifierProtocol(Protocol):
    """Sends the mails belonging to a proposal."""

    def send_notification(self, record: ProposalRecord) -> None:
        """Tell the calendar owner about a new proposal."""

    def send_acknowledgement(self, record: ProposalRecord) -> None:
        """Confirm receipt to the guest."""


class ProposalStoreProtocol(Protocol):
    """Persists submitted proposals."""

    def check(self) -> None:
        """Raise if stored proposals could not be appended to."""

    def append(self, record: ProposalRecord) -> None:
        """Store one more proposal."""

    def list(self) -> List[ProposalRecord]:
        """Return all stored proposals in submission order."""


class ProposalService:
    """Validates, notifies and persists guest proposals."""

    def __init__(
        self,
        notifier: NotifierProtocol,
        store: ProposalStoreProtocol,
        max_proposals: int = DEFAULT_MAX_PROPOSALS,
    ) -> None:
        self._notifier = notifier
        self._store = store
        self._max_proposals = max_proposals

    def build_record(
        self,
        *,
        name: str,
        email: str,
        note: str,
        intervals: Sequence[TimeRange],
    ) -> ProposalRecord:
        """
        Validate a submission and turn it into a record.

        Raises:
            InvalidProposalError: If name or email is missing
            EmptySelectionError: If no interval was selected
        """
        name = (name or "").strip()
        email = (email or "").strip()

        if not name or not email:
            raise InvalidProposalError("Name und E-Mail sind erforderlich.")

        if not intervals:
            raise EmptySelectionError("Bitte mindestens einen Zeitraum auswählen.")

        ordered = sorted(intervals, key=lambda r: r.start)
        if len(ordered) > self._max_proposals:
            logger.info(
                "Proposal from %s has %d intervals, keeping the first %d",
                email, len(ordered), self._max_proposals,
            )

        return ProposalRecord(
            id=str(uuid.uuid4()),
            submitted_at=to_utc_iso(pendulum.now("UTC")),
            name=name,
            email=email,
            note=(note or "").strip(),
            slot_suggestions=[
                SlotSuggestion(**interval.to_dict())
                for interval in ordered[: self._max_proposals]
            ],
        )

    async def submit(
        self,
        *,
        name: str,
        email: str,
        note: str = "",
        intervals: Sequence[TimeRange],
    ) -> ProposalRecord:
        """Validate, notify owner and guest, then persist the proposal."""
        record = self.build_record(name=name, email=email, note=note, intervals=intervals)

        await asyncio.to_thread(self._store.check)
        await asyncio.to_thread(self._notifier.send_notification, record)
        await asyncio.to_thread(self._notifier.send_acknowledgement, record)
        await asyncio.to_thread(self._store.append, record)

        logger.info("Stored proposal %s with %d suggestions", record.id, len(record.slot_suggestions))
        return record

    async def list_proposals(self) -> List[ProposalRecord]:
        return await asyncio.to_thread(self._store.list)
