"""
In-memory implementation of the schedule, booking and provider stores.

Backs the CLI (loaded from a JSON fixture) and the tests, without requiring
access to the production document database.
"""

import json
import logging
import uuid
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pendulum import DateTime

from ..domain.clock import DEFAULT_TIMEZONE
from ..domain.exceptions import InvalidInputError, NotFoundError
from ..domain.models import (
    BlockedPeriod,
    Booking,
    Member,
    Provider,
    Service,
    WeeklyDaySchedule,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Store adapter keeping every record in dictionaries.

    Implements ``ScheduleStoreProtocol``, ``BookingStoreProtocol`` and
    ``ProviderStoreProtocol``. Reads return snapshots: mutating the store
    afterwards never changes a list already handed out.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = timezone
        self._providers: Dict[str, Provider] = {}
        self._members: Dict[str, List[Member]] = {}
        self._services: Dict[str, List[Service]] = {}
        self._schedules: Dict[Tuple[str, str], Dict[int, WeeklyDaySchedule]] = {}
        self._blocked: Dict[str, Dict[str, BlockedPeriod]] = {}
        self._bookings: Dict[str, List[Booking]] = {}

    # ------------------------------------------------------------------
    # Loading

    @classmethod
    def from_json(cls, data_file: Path, timezone: str = DEFAULT_TIMEZONE) -> "InMemoryStore":
        """
        Load a store from a JSON fixture file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON or a record is invalid
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Data file must contain a mapping at the root level.")

        store = cls(timezone=timezone)
        store.load(data)
        return store

    def load(self, data: Mapping[str, Any]) -> None:
        """Load providers (with their team, catalogue and calendars) and bookings."""
        for provider_data in data.get("providers", []):
            provider = Provider.from_dict(provider_data)
            self.add_provider(
                provider,
                members=[Member.from_dict(m) for m in provider_data.get("members", [])],
                services=[Service.from_dict(s) for s in provider_data.get("services", [])],
            )

            schedules: Dict[str, List[WeeklyDaySchedule]] = {}
            for entry in provider_data.get("availability", []):
                member_id = entry.get("memberId")
                if not member_id:
                    logger.warning(
                        "Ignoring availability without member for provider %s", provider.id
                    )
                    continue
                schedules.setdefault(member_id, []).append(WeeklyDaySchedule.from_dict(entry))
            for member_id, days in schedules.items():
                self.add_schedule(provider.id, member_id, days)

            for period_data in provider_data.get("blockedSlots", []):
                self._put_blocked_period(provider.id, BlockedPeriod.from_dict(period_data))

        for booking_data in data.get("bookings", []):
            self.add_booking(
                booking_data["providerId"],
                Booking.from_dict(booking_data, timezone=self.timezone),
            )

    def add_provider(
        self,
        provider: Provider,
        members: Iterable[Member] = (),
        services: Iterable[Service] = (),
    ) -> None:
        self._providers[provider.id] = provider
        self._members[provider.id] = list(members)
        self._services[provider.id] = list(services)

    def add_booking(self, provider_id: str, booking: Booking) -> Booking:
        if booking.id is None:
            booking = replace(booking, id=uuid.uuid4().hex)
        self._bookings.setdefault(provider_id, []).append(booking)
        return booking

    def add_schedule(
        self,
        provider_id: str,
        member_id: str,
        schedule: Iterable[WeeklyDaySchedule],
    ) -> None:
        # A member works at a single location, so the member id is the key.
        self._schedules[(provider_id, member_id)] = {entry.day_of_week: entry for entry in schedule}

    # ------------------------------------------------------------------
    # Schedule store

    async def get_weekly_schedule(self, provider_id: str, member_id: str) -> List[WeeklyDaySchedule]:
        days = self._schedules.get((provider_id, member_id), {})
        return [days.get(day, WeeklyDaySchedule.closed(day)) for day in range(7)]

    async def get_blocked_periods(
        self,
        provider_id: str,
        member_id: Optional[str],
        start_date: date,
        end_date: date,
    ) -> List[BlockedPeriod]:
        return [
            period
            for period in self._blocked.get(provider_id, {}).values()
            if period.start_date <= end_date
            and period.end_date >= start_date
            and (member_id is None or period.member_id == member_id)
        ]

    async def set_weekly_schedule(
        self,
        provider_id: str,
        member_id: str,
        location_id: str,
        schedule: Sequence[WeeklyDaySchedule],
    ) -> None:
        if len(schedule) != 7 or {entry.day_of_week for entry in schedule} != set(range(7)):
            raise InvalidInputError("A weekly schedule must contain exactly one entry per day")
        self.add_schedule(provider_id, member_id, schedule)

    async def block_period(self, provider_id: str, period: BlockedPeriod) -> str:
        if not period.member_id:
            raise InvalidInputError("A blocked period needs a member")
        return self._put_blocked_period(provider_id, period)

    async def unblock_period(self, provider_id: str, period_id: str) -> None:
        try:
            del self._blocked[provider_id][period_id]
        except KeyError:
            raise NotFoundError(f"Blocked period {period_id} not found") from None

    # ------------------------------------------------------------------
    # Booking store

    async def get_bookings_in_range(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        member_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> List[Booking]:
        return [
            booking
            for booking in self._bookings.get(provider_id, [])
            if booking.start < end
            and booking.end > start
            and (member_id is None or booking.member_id == member_id)
            and (location_id is None or booking.location_id == location_id)
        ]

    # ------------------------------------------------------------------
    # Provider store

    async def list_published_providers(self) -> List[Provider]:
        return [provider for provider in self._providers.values() if provider.is_published]

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    async def get_members(self, provider_id: str) -> List[Member]:
        return list(self._members.get(provider_id, []))

    async def get_services(self, provider_id: str) -> List[Service]:
        return list(self._services.get(provider_id, []))

    async def set_next_available_date(self, provider_id: str, value: Optional[date]) -> None:
        provider = self._providers.get(provider_id)
        if provider is None:
            raise NotFoundError(f"Provider {provider_id} not found")
        self._providers[provider_id] = replace(provider, next_available_date=value)

    # ------------------------------------------------------------------

    def _put_blocked_period(self, provider_id: str, period: BlockedPeriod) -> str:
        if period.id is None:
            period = replace(period, id=uuid.uuid4().hex)
        self._blocked.setdefault(provider_id, {})[period.id] = period
        return period.id
