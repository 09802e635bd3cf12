"""
Interval primitives: merge, clip and subtract time ranges.

All functions are pure and return new lists; inputs are never mutated.
"""

import logging
from typing import Any, Iterable, List, Mapping

from .models import TimeRange, parse_instant

logger = logging.getLogger(__name__)


def merge_overlapping(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or touching time ranges.

    Example: [09:00-10:00, 10:00-11:00, 10:30-12:00] -> [09:00-12:00]

    The result is sorted, disjoint and minimal: no two ranges touch.
    """
    sorted_ranges = sorted(ranges, key=lambda r: r.start)
    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(start=last.start, end=current.end)
        else:
            merged.append(current)

    return merged


def clip(time_range: TimeRange, window: TimeRange) -> TimeRange | None:
    """
    Clip a time range to fit within a window.
    Returns None if the range is completely outside the window.
    """
    return time_range.intersect(window)


def subtract(window: TimeRange, busy_merged: List[TimeRange]) -> List[TimeRange]:
    """
    Subtract busy ranges from a window, yielding the free gaps.

    ``busy_merged`` must already be sorted, disjoint and clipped to the
    window (the output of ``merge_overlapping`` over clipped ranges).

    Example:
    Window: 09:00 - 17:00
    Busy: [10:00-11:00, 14:00-15:00]
    Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
    """
    free_ranges: List[TimeRange] = []
    cursor = window.start

    for busy in busy_merged:
        if busy.start > cursor:
            free_ranges.append(TimeRange(start=cursor, end=busy.start))

        cursor = max(cursor, busy.end)

    if cursor < window.end:
        free_ranges.append(TimeRange(start=cursor, end=window.end))

    return free_ranges


def parse_busy_ranges(
    entries: Iterable[Mapping[str, Any]],
    timezone: str = "UTC"
) -> List[TimeRange]:
    """
    Convert provider busy entries (``{"start": iso, "end": iso}``) to ranges.

    The provider feed is untrusted: entries that are not mappings, lack a
    boundary, fail to parse or end before they start are skipped.
    Naive timestamps are read in ``timezone``.
    """
    ranges: List[TimeRange] = []

    for entry in entries:
        if not isinstance(entry, Mapping):
            logger.debug("Skipping busy entry that is not a mapping: %r", entry)
            continue

        start_raw = entry.get("start")
        end_raw = entry.get("end")
        if not isinstance(start_raw, str) or not isinstance(end_raw, str):
            logger.debug("Skipping busy entry without start/end: %r", entry)
            continue

        try:
            start = parse_instant(start_raw, timezone)
            end = parse_instant(end_raw, timezone)
        except ValueError as exc:
            logger.debug("Skipping unparseable busy entry %r: %s", entry, exc)
            continue

        if end <= start:
            logger.debug("Skipping inverted busy entry %r", entry)
            continue

        ranges.append(TimeRange(start=start, end=end))

    return ranges
