"""
Mock calendar client for running without Microsoft authentication.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pendulum
from pendulum import DateTime

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_busy_ranges.json"


class MockCalendarClient:
    """
    Client that serves busy entries from a JSON file.

    The file holds a list of ``{"calendarId", "start", "end"}`` events.
    Entries are returned unmodified - including malformed ones - so the
    domain layer's input handling is exercised like with real data.
    """

    def __init__(self, data_file: Path | None = None):
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.calendar_events = self._load_calendar_data()

    def _load_calendar_data(self) -> List[Dict[str, Any]]:
        if not self.data_file.exists():
            logger.warning("Mock calendar data %s not found; calendar is empty", self.data_file)
            return []

        with open(self.data_file, "r", encoding="utf-8") as f:
            return json.load(f)

    async def get_busy_ranges(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str = "Europe/Berlin"
    ) -> List[Dict[str, Any]]:
        """
        Return the events of ``calendar_id`` that may touch the window.

        Events whose times cannot be read are passed through as-is.
        """
        busy_entries: List[Dict[str, Any]] = []

        for event in self.calendar_events:
            if event.get("calendarId") != calendar_id:
                continue

            entry = {"start": event.get("start"), "end": event.get("end")}

            try:
                event_start = pendulum.parse(entry["start"], tz=timezone)
                event_end = pendulum.parse(entry["end"], tz=timezone)
            except (TypeError, ValueError):
                busy_entries.append(entry)
                continue

            if event_start < end_time and event_end > start_time:
                busy_entries.append(entry)

        return busy_entries
