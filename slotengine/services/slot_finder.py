"""
Application service for computing a member's bookable slots.

The service fetches schedule, blocked-period and booking snapshots via the
store protocols and delegates the actual computation to the domain-level
``AvailabilityResolver`` and ``SlotGenerator``. Keeping the stores behind
protocols lets tests swap in the in-memory adapter or small stubs.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.availability_resolver import AvailabilityResolver
from ..domain.clock import MINUTES_PER_DAY, as_date, minute_of_day, wall_clock
from ..domain.exceptions import InvalidInputError
from ..domain.models import Booking, Provider, Service, Slot, TimeRange
from ..domain.slot_generator import SlotGenerator
from .stores import BookingStoreProtocol, ScheduleStoreProtocol

logger = logging.getLogger(__name__)


class SlotFinderService:
    """
    Orchestrates snapshot retrieval and slot calculation for one member.

    When a ``provider`` is passed, its settings take precedence: its slot
    interval replaces the configured one and its default buffer applies to
    services without a buffer.
    """

    def __init__(
        self,
        schedule_store: ScheduleStoreProtocol,
        booking_store: BookingStoreProtocol,
        slot_generator: SlotGenerator,
        resolver: Optional[AvailabilityResolver] = None,
    ) -> None:
        self._schedule_store = schedule_store
        self._booking_store = booking_store
        self._slot_generator = slot_generator
        self._resolver = resolver or AvailabilityResolver()

    @property
    def timezone(self) -> str:
        return self._slot_generator.timezone

    def now(self) -> DateTime:
        return pendulum.now(self.timezone)

    async def resolve(self, provider_id: str, member_id: str, day: date) -> List[TimeRange]:
        """Return the open windows of a member on ``day``."""
        day = as_date(day)
        week_schedule = await self._schedule_store.get_weekly_schedule(provider_id, member_id)
        blocked_periods = await self._schedule_store.get_blocked_periods(
            provider_id, member_id, day, day
        )
        return self._resolver.resolve(week_schedule, blocked_periods, member_id, day)

    async def find_member_slots(
        self,
        *,
        provider_id: str,
        member_id: str,
        service: Service,
        day: date,
        now: Optional[DateTime] = None,
        provider: Optional[Provider] = None,
    ) -> List[Slot]:
        """
        Compute the bookable slots of ``member_id`` for ``service`` on ``day``.
        """
        day = as_date(day)
        now = now or self.now()

        open_windows = await self.resolve(provider_id, member_id, day)
        if not open_windows:
            return []

        bookings = await self.fetch_member_bookings(provider_id, member_id, day)
        generator, buffer_time = self._settings(service, provider)

        return generator.generate(
            open_windows=open_windows,
            bookings=bookings,
            duration=service.duration,
            buffer_time=buffer_time,
            day=day,
            now=now,
        )

    async def find_slots(
        self,
        *,
        provider_id: str,
        member_id: str,
        service: Service,
        start_date: date,
        end_date: date,
        now: Optional[DateTime] = None,
        provider: Optional[Provider] = None,
    ) -> List[Slot]:
        """Compute slots for every date of the inclusive range ``[start_date, end_date]``."""
        start_date, end_date = as_date(start_date), as_date(end_date)
        if end_date < start_date:
            raise InvalidInputError(f"End date {end_date} is before start date {start_date}")

        now = now or self.now()
        slots: List[Slot] = []
        current = start_date
        while current <= end_date:
            slots.extend(
                await self.find_member_slots(
                    provider_id=provider_id,
                    member_id=member_id,
                    service=service,
                    day=current,
                    now=now,
                    provider=provider,
                )
            )
            current = current.add(days=1)

        return slots

    async def is_slot_available(
        self,
        *,
        provider_id: str,
        member_id: str,
        service: Service,
        start: DateTime,
        exclude_booking_id: Optional[str] = None,
        provider: Optional[Provider] = None,
    ) -> bool:
        """
        Check whether an exact start time can still be booked.

        ``exclude_booking_id`` leaves one booking out of the conflict check,
        which is what rescheduling that booking needs.
        """
        local_start = start.in_timezone(self.timezone)
        day = as_date(local_start)

        open_windows = await self.resolve(provider_id, member_id, day)
        if not open_windows:
            return False

        bookings = [
            booking
            for booking in await self.fetch_member_bookings(provider_id, member_id, day)
            if exclude_booking_id is None or booking.id != exclude_booking_id
        ]
        generator, buffer_time = self._settings(service, provider)

        return generator.is_bookable(
            open_windows=open_windows,
            bookings=bookings,
            duration=service.duration,
            buffer_time=buffer_time,
            day=day,
            start_minute=minute_of_day(local_start, day, self.timezone),
        )

    async def fetch_member_bookings(
        self,
        provider_id: str,
        member_id: str,
        day: date,
    ) -> List[Booking]:
        """
        Fetch the bookings of ``member_id`` that can reserve time on ``day``.

        The read starts a day early: a booking ending the evening before
        still reserves its buffer past midnight.
        """
        bookings = await self._booking_store.get_bookings_in_range(
            provider_id,
            wall_clock(day, -MINUTES_PER_DAY, self.timezone),
            wall_clock(day, MINUTES_PER_DAY, self.timezone),
            member_id=member_id,
        )
        # Some stores filter by provider only.
        return [booking for booking in bookings if booking.member_id == member_id]

    def _settings(self, service: Service, provider: Optional[Provider]) -> Tuple[SlotGenerator, int]:
        if provider is None:
            return self._slot_generator, service.buffer_time

        generator = self._slot_generator
        if provider.slot_interval is not None and provider.slot_interval != generator.interval_minutes:
            generator = SlotGenerator(interval_minutes=provider.slot_interval, timezone=self.timezone)
        return generator, provider.buffer_for(service)
