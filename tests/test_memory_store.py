"""
Tests for the in-memory store adapter.
"""

import asyncio
import json
from pathlib import Path

import pendulum
import pytest

from slotengine.adapters.memory_store import InMemoryStore
from slotengine.domain.exceptions import InvalidInputError, NotFoundError
from slotengine.domain.models import BlockedPeriod, BookingStatus, WeeklyDaySchedule

from builders import MONDAY, TZ, at, booking, build_store, week

EXAMPLE_DATA = Path(__file__).parent.parent / "data.example.json"


class TestScheduleWrites:
    """Weekly schedules and blocked periods."""

    def test_set_weekly_schedule(self):
        store = build_store()
        schedule = week({2: [("10:00", "19:00")]})

        asyncio.run(store.set_weekly_schedule("p1", "alice", "loc-2", schedule))

        stored = asyncio.run(store.get_weekly_schedule("p1", "alice"))
        assert [entry.is_open for entry in stored] == [False, False, True, False, False, False, False]

    def test_weekly_schedule_needs_seven_days(self):
        store = build_store()

        with pytest.raises(InvalidInputError, match="one entry per day"):
            asyncio.run(store.set_weekly_schedule("p1", "alice", "loc-1", week({})[:6]))

    def test_weekly_schedule_rejects_duplicate_days(self):
        store = build_store()
        schedule = week({})[:6] + [WeeklyDaySchedule.closed(0)]

        with pytest.raises(InvalidInputError):
            asyncio.run(store.set_weekly_schedule("p1", "alice", "loc-1", schedule))

    def test_unknown_member_schedule_is_closed(self):
        stored = asyncio.run(build_store().get_weekly_schedule("p1", "nobody"))

        assert len(stored) == 7
        assert not any(entry.is_open for entry in stored)

    def test_block_and_unblock(self):
        store = build_store()
        period = BlockedPeriod(start_date=MONDAY, end_date=MONDAY.add(days=2), member_id="alice")

        period_id = asyncio.run(store.block_period("p1", period))
        found = asyncio.run(store.get_blocked_periods("p1", "alice", MONDAY.add(days=2), MONDAY.add(days=9)))
        other = asyncio.run(store.get_blocked_periods("p1", "bob", MONDAY, MONDAY))
        asyncio.run(store.unblock_period("p1", period_id))
        after = asyncio.run(store.get_blocked_periods("p1", "alice", MONDAY, MONDAY))

        assert [p.id for p in found] == [period_id]
        assert other == []
        assert after == []

    def test_block_requires_member(self):
        store = build_store()

        with pytest.raises(InvalidInputError):
            asyncio.run(store.block_period("p1", BlockedPeriod(start_date=MONDAY, end_date=MONDAY, member_id=None)))

    def test_unblock_unknown_period(self):
        with pytest.raises(NotFoundError):
            asyncio.run(build_store().unblock_period("p1", "missing"))


class TestBookings:
    """Booking range queries."""

    def test_range_overlap(self):
        store = build_store()
        store.add_booking("p1", booking("alice", "2024-11-25 09:00", "2024-11-25 10:00"))
        store.add_booking("p1", booking("bob", "2024-11-25 10:00", "2024-11-25 11:00"))

        found = asyncio.run(
            store.get_bookings_in_range("p1", at("2024-11-25 09:30"), at("2024-11-25 10:00"))
        )
        for_bob = asyncio.run(
            store.get_bookings_in_range("p1", at("2024-11-25 00:00"), at("2024-11-26 00:00"), member_id="bob")
        )

        assert [b.member_id for b in found] == ["alice"]
        assert [b.member_id for b in for_bob] == ["bob"]

    def test_add_booking_assigns_an_id(self):
        stored = build_store().add_booking("p1", booking("alice", "2024-11-25 09:00", "2024-11-25 10:00"))

        assert stored.id


class TestProviders:
    """Provider reads and writes."""

    def test_set_next_available_date(self):
        store = build_store()

        asyncio.run(store.set_next_available_date("p1", MONDAY))

        assert asyncio.run(store.get_provider("p1")).next_available_date == MONDAY

    def test_set_next_available_date_unknown_provider(self):
        with pytest.raises(NotFoundError):
            asyncio.run(build_store().set_next_available_date("nope", MONDAY))


class TestFromJson:
    """Loading JSON fixtures."""

    def test_example_data(self):
        store = InMemoryStore.from_json(EXAMPLE_DATA, timezone=TZ)

        providers = asyncio.run(store.list_published_providers())
        members = asyncio.run(store.get_members("salon-lumiere"))
        services = asyncio.run(store.get_services("salon-lumiere"))
        alice = asyncio.run(store.get_weekly_schedule("salon-lumiere", "alice"))
        bookings = asyncio.run(
            store.get_bookings_in_range(
                "salon-lumiere", at("2026-10-20 00:00"), at("2026-10-21 00:00"), member_id="alice"
            )
        )

        assert [p.id for p in providers] == ["salon-lumiere", "atelier-vide"]
        assert providers[0].default_buffer_time == 5
        assert providers[0].slot_interval == 15
        assert [m.id for m in members] == ["alice", "bob"]
        assert services[1].member_ids == frozenset({"alice"})
        assert [len(entry.ranges) for entry in alice] == [0, 2, 2, 2, 2, 2, 1]
        assert {b.status for b in bookings} == {BookingStatus.CONFIRMED, BookingStatus.PENDING}

    def test_example_blocked_periods(self):
        store = InMemoryStore.from_json(EXAMPLE_DATA, timezone=TZ)

        vacation = asyncio.run(
            store.get_blocked_periods(
                "salon-lumiere", "alice", pendulum.date(2026, 12, 25), pendulum.date(2026, 12, 25)
            )
        )

        assert [p.id for p in vacation] == ["vacation-alice"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InMemoryStore.from_json(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            InMemoryStore.from_json(data_file)

    def test_root_must_be_a_mapping(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text(json.dumps([1, 2]), encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            InMemoryStore.from_json(data_file)
