"""
Core business logic for turning open windows into bookable slots.

This is the heart of the engine - pure domain logic without any
external dependencies (no store access, no I/O).
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from pendulum import DateTime

from .clock import DEFAULT_TIMEZONE, minute_of_day, wall_clock
from .exceptions import InvalidInputError
from .models import Booking, Slot, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_SLOT_INTERVAL = 15


class SlotGenerator:
    """
    Generates the bookable slots of one member on one date.

    Algorithm:
    1. Walk every open window from its start in ``interval_minutes`` steps
    2. Keep a candidate only if ``start + duration`` fits in the window
    3. Reserve ``[start, start + duration + buffer)`` for the candidate and
       reject it if it overlaps an active booking, whose own buffer is
       reserved after its end the same way
    4. Drop candidates starting before ``now``
    5. Return the survivors in ascending order

    With ``interval_minutes=None`` candidates are packed back to back, the
    next one starting ``duration + buffer`` minutes after the previous.
    """

    def __init__(
        self,
        interval_minutes: Optional[int] = DEFAULT_SLOT_INTERVAL,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        if interval_minutes is not None and interval_minutes <= 0:
            raise InvalidInputError(f"Slot interval must be positive, got {interval_minutes}")
        self.interval_minutes = interval_minutes
        self.timezone = timezone

    def generate(
        self,
        open_windows: Sequence[TimeRange],
        bookings: Iterable[Booking],
        duration: int,
        buffer_time: int,
        day: date,
        now: Optional[DateTime] = None,
    ) -> List[Slot]:
        """
        Find all bookable slots within ``open_windows`` on ``day``.

        Args:
            open_windows: Open windows of the member (minute-of-day)
            bookings: Existing bookings of the member; inactive ones are ignored
            duration: Service duration in minutes
            buffer_time: Idle minutes reserved after the service
            day: The calendar date the windows belong to
            now: Current instant; earlier starts are never offered

        Returns:
            List of Slot objects sorted by start time
        """
        self._validate(duration, buffer_time)

        occupied = self.reserved_ranges(bookings, day)
        step = self.interval_minutes or duration + buffer_time
        slots: List[Slot] = []

        for window in sorted(open_windows):
            generated = 0
            kept_before = len(slots)
            start = window.start

            while start + duration <= window.end:
                generated += 1
                reserved = TimeRange(start=start, end=start + duration + buffer_time)

                if not any(reserved.overlaps(busy) for busy in occupied):
                    slot_start = wall_clock(day, start, self.timezone)
                    if now is None or slot_start >= now:
                        slots.append(
                            Slot(start=slot_start, end=wall_clock(day, start + duration, self.timezone))
                        )

                start += step

            logger.debug(
                "Window %s on %s: %d generated, %d filtered out",
                window,
                day,
                generated,
                generated - (len(slots) - kept_before),
            )

        slots.sort()
        return slots

    def is_bookable(
        self,
        open_windows: Sequence[TimeRange],
        bookings: Iterable[Booking],
        duration: int,
        buffer_time: int,
        day: date,
        start_minute: int,
    ) -> bool:
        """
        Check one exact start time, ignoring the stepping grid.

        The service must fit entirely in one open window and its reserved
        range must not overlap any active booking.
        """
        self._validate(duration, buffer_time)

        end_minute = start_minute + duration
        if not any(w.start <= start_minute and end_minute <= w.end for w in open_windows):
            return False

        reserved = TimeRange(start=start_minute, end=end_minute + buffer_time)
        return not any(reserved.overlaps(busy) for busy in self.reserved_ranges(bookings, day))

    def reserved_ranges(self, bookings: Iterable[Booking], day: date) -> List[TimeRange]:
        """
        Convert active bookings to ranges relative to ``day``, buffers included.
        """
        reserved: List[TimeRange] = []
        for booking in bookings:
            if not booking.is_active:
                continue
            start = minute_of_day(booking.start, day, self.timezone)
            end = minute_of_day(booking.end, day, self.timezone, round_up=True)
            # Wall-clock end can fall before the start across a DST fall-back.
            end = max(end, start + 1)
            reserved.append(TimeRange(start=start, end=end + booking.buffer_time))
        return sorted(reserved)

    @staticmethod
    def _validate(duration: int, buffer_time: int) -> None:
        if duration <= 0:
            raise InvalidInputError(f"Service duration must be positive, got {duration}")
        if buffer_time < 0:
            raise InvalidInputError(f"Buffer time cannot be negative, got {buffer_time}")
