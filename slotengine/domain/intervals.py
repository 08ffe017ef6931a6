"""
Primitive time-range arithmetic over minute-of-day ranges.

All functions are pure and total: they never raise for well-formed
``TimeRange`` values and always return ranges in ascending order.
"""

from typing import Iterable, List, Optional

from .clock import MINUTES_PER_DAY
from .models import TimeRange


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Half-open overlap test: touching ranges do not overlap."""
    return a.start < b.end and b.start < a.end


def subtract(window: TimeRange, occupied: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Remove every occupied range from ``window``.

    The window may be split into several fragments. Occupied ranges may
    overlap each other or stick out of the window.

    Example:
    Window: 09:00 - 17:00
    Occupied: [10:00-11:00, 14:00-15:00]
    Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
    """
    fragments: List[TimeRange] = []
    current_start = window.start

    for busy in sorted(r for r in occupied if overlaps(window, r)):
        # Clip busy range to the window
        clipped_busy_start = max(busy.start, window.start)
        clipped_busy_end = min(busy.end, window.end)

        if current_start < clipped_busy_start:
            fragments.append(TimeRange(start=current_start, end=clipped_busy_start))

        current_start = max(current_start, clipped_busy_end)

    if current_start < window.end:
        fragments.append(TimeRange(start=current_start, end=window.end))

    return fragments


def subtract_all(windows: Iterable[TimeRange], occupied: Iterable[TimeRange]) -> List[TimeRange]:
    """Subtract ``occupied`` from each window and concatenate the fragments."""
    occupied = list(occupied)
    result: List[TimeRange] = []
    for window in sorted(windows):
        result.extend(subtract(window, occupied))
    return result


def merge(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or adjacent time ranges.

    Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
    """
    sorted_ranges = sorted(ranges)
    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]
    for current in sorted_ranges[1:]:
        last = merged[-1]
        if current.start <= last.end:
            merged[-1] = TimeRange(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)

    return merged


def clamp_to_day(time_range: TimeRange) -> Optional[TimeRange]:
    """
    Clip a range to ``[00:00, 24:00)``.
    Returns None if the range is completely outside the day.
    """
    start = max(time_range.start, 0)
    end = min(time_range.end, MINUTES_PER_DAY)
    if start >= end:
        return None
    return TimeRange(start=start, end=end)
