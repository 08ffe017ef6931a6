"""
Tests for AvailabilityResolver.
"""

from slotengine.domain.availability_resolver import AvailabilityResolver
from slotengine.domain.models import BlockedPeriod, TimeRange

from builders import MONDAY, week


def r(start: str, end: str) -> TimeRange:
    return TimeRange.from_strings(start, end)


WEEK = week({1: [("09:00", "12:00"), ("14:00", "18:00")], 2: [("10:00", "19:00")]})


def partial_block(member_id, start, end, day=MONDAY):
    return BlockedPeriod(
        start_date=day,
        end_date=day,
        member_id=member_id,
        all_day=False,
        start_time=r(start, end).start,
        end_time=r(start, end).end,
    )


class TestAvailabilityResolver:
    """Tests for resolve()."""

    def test_open_day_without_blocks(self):
        windows = AvailabilityResolver().resolve(WEEK, [], "alice", MONDAY)

        assert windows == [r("09:00", "12:00"), r("14:00", "18:00")]

    def test_weekday_lookup(self):
        windows = AvailabilityResolver().resolve(WEEK, [], "alice", MONDAY.add(days=1))

        assert windows == [r("10:00", "19:00")]

    def test_closed_day(self):
        """Sunday is closed in the schedule."""
        assert AvailabilityResolver().resolve(WEEK, [], "alice", MONDAY.subtract(days=1)) == []

    def test_missing_entry_is_closed(self):
        assert AvailabilityResolver().resolve([], [], "alice", MONDAY) == []

    def test_all_day_block_closes_the_day(self):
        vacation = BlockedPeriod(
            start_date=MONDAY.subtract(days=3), end_date=MONDAY, member_id="alice"
        )

        assert AvailabilityResolver().resolve(WEEK, [vacation], "alice", MONDAY) == []

    def test_all_day_block_outside_the_date(self):
        vacation = BlockedPeriod(
            start_date=MONDAY.add(days=1), end_date=MONDAY.add(days=5), member_id="alice"
        )

        assert len(AvailabilityResolver().resolve(WEEK, [vacation], "alice", MONDAY)) == 2

    def test_partial_block_is_subtracted(self):
        blocks = [partial_block("alice", "10:00", "11:00"), partial_block("alice", "13:00", "15:00")]

        windows = AvailabilityResolver().resolve(WEEK, blocks, "alice", MONDAY)

        assert windows == [r("09:00", "10:00"), r("11:00", "12:00"), r("15:00", "18:00")]

    def test_blocks_of_other_members_are_ignored(self):
        blocks = [
            partial_block("bob", "10:00", "11:00"),
            BlockedPeriod(start_date=MONDAY, end_date=MONDAY, member_id=None),
        ]

        windows = AvailabilityResolver().resolve(WEEK, blocks, "alice", MONDAY)

        assert windows == [r("09:00", "12:00"), r("14:00", "18:00")]

    def test_schedule_for_day(self):
        entry = AvailabilityResolver.schedule_for_day(WEEK, MONDAY)

        assert entry.day_of_week == 1
        assert entry.is_open
