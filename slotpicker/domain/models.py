"""
Domain models for time ranges, business hours and guest selections.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import pendulum
from pendulum import DateTime


WEEKDAY_NAMES = {
    0: "Montag",
    1: "Dienstag",
    2: "Mittwoch",
    3: "Donnerstag",
    4: "Freitag",
    5: "Samstag",
    6: "Sonntag"
}

WEEKDAY_SHORT_NAMES = {
    0: "Mo",
    1: "Di",
    2: "Mi",
    3: "Do",
    4: "Fr",
    5: "Sa",
    6: "So"
}


def to_utc_iso(dt: DateTime) -> str:
    """Serialize an instant as an ISO-8601 string in UTC."""
    return dt.in_timezone("UTC").to_iso8601_string()


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable range between two absolute instants.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in whole minutes."""
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def in_timezone(self, timezone: str) -> "TimeRange":
        """Return the same instants expressed in another timezone."""
        return TimeRange(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone)
        )

    def to_dict(self) -> Dict[str, str]:
        """Wire representation: ``{"start": iso, "end": iso}`` in UTC."""
        return {"start": to_utc_iso(self.start), "end": to_utc_iso(self.end)}

    def format_display(self, timezone: str | None = None) -> str:
        """
        Format the range for display.
        Format: Wochentag, DD.MM.YYYY | HH:MM – HH:MM Uhr (N Min.)
        """
        local = self.in_timezone(timezone) if timezone else self
        weekday = WEEKDAY_NAMES[local.start.day_of_week]
        date_str = local.start.format("DD.MM.YYYY")
        time_str = f"{local.start.format('HH:mm')} – {local.end.format('HH:mm')} Uhr"

        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} Min.)"

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusinessHours:
    """
    Business-calendar definition: open hours per day in a timezone.

    Hours are whole hours of the local day; an end hour of 24 means the
    following local midnight.
    """
    start_hour: int
    end_hour: int
    timezone: str = "Europe/Berlin"
    exclude_weekdays: Tuple[int, ...] = (5, 6)  # 0=Monday, 6=Sunday

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"Business hours must satisfy 0 <= start < end <= 24, "
                f"got {self.start_hour}-{self.end_hour}"
            )

    def is_working_day(self, dt: DateTime) -> bool:
        """Check if a given datetime falls on a working day."""
        return dt.day_of_week not in self.exclude_weekdays


@dataclass(frozen=True, order=True)
class SelectedCell:
    """One grid position the guest toggled on: local day and start minute."""
    day_key: str  # YYYY-MM-DD in the calendar timezone
    start_minute: int  # minutes since local midnight


@dataclass(frozen=True)
class ProposedInterval:
    """
    A contiguous run of selected cells, proposed as a meeting candidate.

    The id is an opaque client token, not derived from the range.
    """
    id: str
    time_range: TimeRange

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, **self.time_range.to_dict()}


def parse_instant(value: str, timezone: str = "UTC") -> DateTime:
    """
    Parse an ISO-8601 string into an instant.

    Naive values are interpreted in ``timezone``.

    Raises:
        ValueError: If the value is not a date-time
    """
    parsed = pendulum.parse(value, tz=timezone)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed
