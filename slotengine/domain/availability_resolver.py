"""
Resolution of a member's open windows on a calendar date.

Combines the recurring weekly opening hours with the blocked periods that
cover the date. Pure domain logic: callers pass in already-fetched
snapshots.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .clock import day_of_week
from .intervals import subtract_all
from .models import BlockedPeriod, TimeRange, WeeklyDaySchedule

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """
    Computes open windows for one member on one date.

    Algorithm:
    1. Pick the weekly schedule entry for the date's day of week
    2. Closed or missing entry -> no availability
    3. Collect the member's blocked periods that cover the date
    4. Any all-day block closes the day
    5. Subtract every partial-day block from the opening ranges
    """

    @staticmethod
    def schedule_for_day(
        week_schedule: Iterable[WeeklyDaySchedule],
        day: date,
    ) -> Optional[WeeklyDaySchedule]:
        """Return the entry matching the weekday of ``day``, if any."""
        weekday = day_of_week(day)
        for entry in week_schedule:
            if entry.day_of_week == weekday:
                return entry
        return None

    def resolve(
        self,
        week_schedule: Sequence[WeeklyDaySchedule],
        blocked_periods: Iterable[BlockedPeriod],
        member_id: str,
        day: date,
    ) -> List[TimeRange]:
        """
        Return the open windows of ``member_id`` on ``day`` in ascending order.

        Blocked periods of other members, or without a member, are ignored.
        """
        entry = self.schedule_for_day(week_schedule, day)
        if entry is None or not entry.is_open:
            return []

        partial_blocks: List[TimeRange] = []
        for period in blocked_periods:
            if not period.applies_to(member_id) or not period.covers(day):
                continue
            if period.all_day:
                logger.debug("Member %s blocked all day on %s", member_id, day)
                return []
            partial_blocks.append(period.time_range())

        return subtract_all(entry.ranges, partial_blocks)
