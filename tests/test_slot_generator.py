"""
Tests for slot generator.
"""

import pytest

from slotengine.domain.exceptions import InvalidInputError
from slotengine.domain.models import BookingStatus, TimeRange
from slotengine.domain.slot_generator import SlotGenerator

from builders import MONDAY, TZ, at, booking

MORNING = TimeRange.from_strings("09:00", "12:00")
AFTERNOON = TimeRange.from_strings("14:00", "18:00")
MIDNIGHT = at("2024-11-25 00:00")


def starts(slots):
    return [slot.start.format("HH:mm") for slot in slots]


class TestBackToBackSlots:
    """Slots packed back to back, each followed by the service buffer."""

    def test_morning_window(self):
        generator = SlotGenerator(interval_minutes=None, timezone=TZ)

        slots = generator.generate([MORNING], [], duration=30, buffer_time=5, day=MONDAY, now=MIDNIGHT)

        assert starts(slots) == ["09:00", "09:35", "10:10", "10:45", "11:20"]
        assert all(slot.duration_minutes() == 30 for slot in slots)

    def test_full_day(self):
        generator = SlotGenerator(interval_minutes=None, timezone=TZ)

        slots = generator.generate(
            [MORNING, AFTERNOON], [], duration=30, buffer_time=5, day=MONDAY, now=MIDNIGHT
        )

        assert len(slots) == 12
        assert starts(slots)[5:] == ["14:00", "14:35", "15:10", "15:45", "16:20", "16:55", "17:30"]
        assert slots[-1].end == at("2024-11-25 18:00")

    def test_booking_removes_overlapping_candidates(self):
        """A 10:00-10:30 booking with 5 minutes buffer blocks [10:00, 10:35)."""
        generator = SlotGenerator(interval_minutes=None, timezone=TZ)
        bookings = [booking("alice", "2024-11-25 10:00", "2024-11-25 10:30", buffer_time=5)]

        slots = generator.generate([MORNING], bookings, duration=30, buffer_time=5, day=MONDAY, now=MIDNIGHT)

        assert starts(slots) == ["09:00", "10:45", "11:20"]


class TestGridSlots:
    """Slots aligned on a fixed interval."""

    def test_default_interval(self):
        generator = SlotGenerator(timezone=TZ)

        slots = generator.generate([MORNING], [], duration=30, buffer_time=5, day=MONDAY, now=MIDNIGHT)

        assert generator.interval_minutes == 15
        assert starts(slots)[:3] == ["09:00", "09:15", "09:30"]
        # The service must end by 12:00, the buffer may spill over.
        assert starts(slots)[-1] == "11:30"
        assert len(slots) == 11

    def test_booking_conflict(self):
        generator = SlotGenerator(timezone=TZ)
        bookings = [booking("alice", "2024-11-25 10:00", "2024-11-25 10:30", buffer_time=5)]

        slots = generator.generate([MORNING], bookings, duration=30, buffer_time=5, day=MONDAY, now=MIDNIGHT)

        assert starts(slots) == ["09:00", "09:15", "10:45", "11:00", "11:15", "11:30"]

    def test_existing_booking_buffer_is_reserved(self):
        generator = SlotGenerator(timezone=TZ)
        with_buffer = [booking("alice", "2024-11-25 09:00", "2024-11-25 09:30", buffer_time=15)]
        without_buffer = [booking("alice", "2024-11-25 09:00", "2024-11-25 09:30")]

        blocked = generator.generate([MORNING], with_buffer, duration=30, buffer_time=0, day=MONDAY, now=MIDNIGHT)
        free = generator.generate([MORNING], without_buffer, duration=30, buffer_time=0, day=MONDAY, now=MIDNIGHT)

        assert starts(blocked)[0] == "09:45"
        assert starts(free)[0] == "09:30"

    def test_inactive_bookings_are_ignored(self):
        generator = SlotGenerator(timezone=TZ)
        bookings = [
            booking("alice", "2024-11-25 09:00", "2024-11-25 12:00", status=BookingStatus.CANCELLED),
            booking("alice", "2024-11-25 09:00", "2024-11-25 12:00", status=BookingStatus.NOSHOW),
        ]

        slots = generator.generate([MORNING], bookings, duration=30, buffer_time=0, day=MONDAY, now=MIDNIGHT)

        assert len(slots) == 11

    def test_no_slot_overlaps_an_active_booking(self):
        generator = SlotGenerator(interval_minutes=5, timezone=TZ)
        bookings = [
            booking("alice", "2024-11-25 09:20", "2024-11-25 09:50", buffer_time=10),
            booking("alice", "2024-11-25 11:00", "2024-11-25 11:15", status=BookingStatus.PENDING),
        ]

        slots = generator.generate([MORNING], bookings, duration=20, buffer_time=10, day=MONDAY, now=MIDNIGHT)

        assert slots
        for slot in slots:
            reserved_end = slot.end.add(minutes=10)
            for existing in bookings:
                assert not (slot.start < existing.end.add(minutes=existing.buffer_time) and existing.start < reserved_end)

    def test_booking_from_previous_day_spilling_over(self):
        generator = SlotGenerator(timezone=TZ)
        bookings = [booking("alice", "2024-11-24 23:00", "2024-11-25 09:30")]

        slots = generator.generate([MORNING], bookings, duration=30, buffer_time=0, day=MONDAY, now=MIDNIGHT)

        assert starts(slots)[0] == "09:30"

    def test_service_longer_than_window(self):
        generator = SlotGenerator(timezone=TZ)

        assert generator.generate([MORNING], [], duration=240, buffer_time=0, day=MONDAY, now=MIDNIGHT) == []


class TestNow:
    """Slots before the current instant are never offered."""

    def test_same_day(self):
        generator = SlotGenerator(timezone=TZ)
        now = at("2024-11-25 10:50")

        slots = generator.generate([MORNING, AFTERNOON], [], duration=30, buffer_time=0, day=MONDAY, now=now)

        assert starts(slots)[0] == "11:00"
        assert all(slot.start >= now for slot in slots)

    def test_slot_starting_now_is_kept(self):
        generator = SlotGenerator(timezone=TZ)

        slots = generator.generate([MORNING], [], duration=30, buffer_time=0, day=MONDAY, now=at("2024-11-25 11:30"))

        assert starts(slots) == ["11:30"]

    def test_past_day(self):
        generator = SlotGenerator(timezone=TZ)

        slots = generator.generate([MORNING], [], duration=30, buffer_time=0, day=MONDAY, now=at("2024-11-26 08:00"))

        assert slots == []

    def test_future_day(self):
        generator = SlotGenerator(timezone=TZ)

        slots = generator.generate(
            [MORNING], [], duration=30, buffer_time=0, day=MONDAY, now=at("2024-11-24 23:00")
        )

        assert starts(slots)[0] == "09:00"


def test_generate_is_deterministic():
    generator = SlotGenerator(timezone=TZ)
    bookings = [booking("alice", "2024-11-25 10:00", "2024-11-25 10:30", buffer_time=5)]

    first = generator.generate([AFTERNOON, MORNING], bookings, duration=45, buffer_time=10, day=MONDAY, now=MIDNIGHT)
    second = generator.generate([AFTERNOON, MORNING], bookings, duration=45, buffer_time=10, day=MONDAY, now=MIDNIGHT)

    assert first == second
    assert first == sorted(first)


def test_no_open_windows():
    assert SlotGenerator(timezone=TZ).generate([], [], duration=30, buffer_time=0, day=MONDAY) == []


class TestIsBookable:
    """Tests for is_bookable()."""

    def test_off_grid_start(self):
        generator = SlotGenerator(timezone=TZ)

        assert generator.is_bookable([MORNING], [], duration=30, buffer_time=5, day=MONDAY, start_minute=547)

    def test_must_fit_in_one_window(self):
        generator = SlotGenerator(timezone=TZ)

        assert not generator.is_bookable([MORNING], [], duration=30, buffer_time=0, day=MONDAY, start_minute=700)

    def test_conflict_with_booking(self):
        generator = SlotGenerator(timezone=TZ)
        bookings = [booking("alice", "2024-11-25 10:00", "2024-11-25 10:30")]

        assert not generator.is_bookable([MORNING], bookings, duration=30, buffer_time=0, day=MONDAY, start_minute=585)
        assert generator.is_bookable([MORNING], bookings, duration=30, buffer_time=0, day=MONDAY, start_minute=570)


class TestValidation:
    """Invalid parameters are rejected."""

    def test_invalid_duration(self):
        with pytest.raises(InvalidInputError):
            SlotGenerator(timezone=TZ).generate([MORNING], [], duration=0, buffer_time=0, day=MONDAY)

    def test_negative_buffer(self):
        with pytest.raises(InvalidInputError):
            SlotGenerator(timezone=TZ).generate([MORNING], [], duration=30, buffer_time=-1, day=MONDAY)

    def test_invalid_interval(self):
        with pytest.raises(InvalidInputError):
            SlotGenerator(interval_minutes=0)
