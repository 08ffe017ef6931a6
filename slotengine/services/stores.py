"""
Protocols describing the store behaviour the engine relies on.

Implementations raise ``StoreUnavailableError`` when a read cannot be
served; the services treat that as a per-unit failure.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import BlockedPeriod, Booking, Member, Provider, Service, WeeklyDaySchedule


class ScheduleStoreProtocol(Protocol):
    """Weekly opening hours and blocked periods, per member."""

    async def get_weekly_schedule(
        self,
        provider_id: str,
        member_id: str,
    ) -> List[WeeklyDaySchedule]:
        """Return seven entries, one per day of week, closed days included."""

    async def get_blocked_periods(
        self,
        provider_id: str,
        member_id: Optional[str],
        start_date: date,
        end_date: date,
    ) -> List[BlockedPeriod]:
        """Return blocked periods intersecting ``[start_date, end_date]``."""

    async def set_weekly_schedule(
        self,
        provider_id: str,
        member_id: str,
        location_id: str,
        schedule: Sequence[WeeklyDaySchedule],
    ) -> None:
        """Replace the whole weekly schedule of a member."""

    async def block_period(self, provider_id: str, period: BlockedPeriod) -> str:
        """Store a blocked period and return its id."""

    async def unblock_period(self, provider_id: str, period_id: str) -> None:
        """Delete a blocked period."""


class BookingStoreProtocol(Protocol):
    """Appointment records."""

    async def get_bookings_in_range(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        member_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> List[Booking]:
        """Return bookings of any status overlapping ``[start, end)``."""


class ProviderStoreProtocol(Protocol):
    """Providers, their team and catalogue, and the cached next available date."""

    async def list_published_providers(self) -> List[Provider]:
        """Return every published provider."""

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        """Return a provider or None."""

    async def get_members(self, provider_id: str) -> List[Member]:
        """Return the provider's members in display order."""

    async def get_services(self, provider_id: str) -> List[Service]:
        """Return the provider's services in display order."""

    async def set_next_available_date(self, provider_id: str, value: Optional[date]) -> None:
        """Persist the provider's next available date."""
