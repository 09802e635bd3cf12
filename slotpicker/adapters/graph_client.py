"""
Microsoft Graph API client for fetching the owner's busy times.
"""

import asyncio
import logging
from typing import Any, Dict, List

import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError

logger = logging.getLogger(__name__)

# getSchedule statuses that block a slot
BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}


class GraphClient:
    """
    Client for Microsoft Graph API calendar operations.

    Uses the /calendar/getSchedule endpoint to fetch free/busy information.
    The blocking HTTP call runs in a worker thread.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(self, access_token: str, timeout: float = 30):
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    async def get_busy_ranges(
        self,
        calendar_id: str,
        start_time: DateTime,
        end_time: DateTime,
        timezone: str = "Europe/Berlin"
    ) -> List[Dict[str, Any]]:
        """
        Get busy entries for one calendar.

        Args:
            calendar_id: Mailbox address of the calendar owner
            start_time: Start of the time window
            end_time: End of the time window
            timezone: IANA timezone the response times are expressed in

        Returns:
            List of ``{"start": str, "end": str}`` entries; naive times are
            in ``timezone``

        Raises:
            CalendarAPIError: If the API call fails
        """
        payload = {
            "schedules": [calendar_id],
            "startTime": {
                "dateTime": start_time.in_timezone(timezone).to_datetime_string(),
                "timeZone": timezone
            },
            "endTime": {
                "dateTime": end_time.in_timezone(timezone).to_datetime_string(),
                "timeZone": timezone
            },
            "availabilityViewInterval": 15
        }

        data = await asyncio.to_thread(self._post, "/me/calendar/getSchedule", payload)

        return self._parse_schedule_response(data, calendar_id)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.GRAPH_API_ENDPOINT}{path}",
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Failed to fetch schedule from Microsoft Graph: {e}") from e

    def _parse_schedule_response(
        self,
        response_data: Dict[str, Any],
        calendar_id: str
    ) -> List[Dict[str, Any]]:
        """
        Extract busy entries for ``calendar_id`` from a getSchedule response.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "owner@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "..."},
                            "end": {"dateTime": "...", "timeZone": "..."}
                        }
                    ]
                }
            ]
        }

        Entries are passed on without parsing the timestamps; the domain
        layer drops malformed ones.
        """
        busy_entries: List[Dict[str, Any]] = []

        for schedule in response_data.get("value", []):
            if schedule.get("scheduleId", "").lower() != calendar_id.lower():
                continue

            if "error" in schedule:
                raise CalendarAPIError(
                    f"Schedule for {calendar_id} unavailable: "
                    f"{schedule['error'].get('message', 'unknown error')}"
                )

            for item in schedule.get("scheduleItems", []):
                status = str(item.get("status", "")).lower()
                if status not in BUSY_STATUSES:
                    continue

                busy_entries.append({
                    "start": (item.get("start") or {}).get("dateTime"),
                    "end": (item.get("end") or {}).get("dateTime"),
                })

        logger.debug("Graph returned %d busy entries for %s", len(busy_entries), calendar_id)
        return busy_entries

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Raises:
            CalendarAPIError: If connection test fails
        """
        try:
            response = requests.get(f"{self.GRAPH_API_ENDPOINT}/me", headers=self.headers, timeout=10)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Connection test failed: {e}") from e
