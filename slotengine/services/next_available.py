"""
Search for the earliest date with at least one bookable slot.

Every day of the horizon is checked in order. Partial-day closures and the
booking density of each day make skipping ahead unsafe, so the cost is
bounded by the horizon rather than optimised away.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

import pendulum
from pendulum import Date, DateTime

from ..domain.clock import as_date
from ..domain.exceptions import InvalidInputError, StoreUnavailableError
from ..domain.models import Member, Provider, Service
from .aggregator import MultiMemberAggregator
from .slot_finder import SlotFinderService
from .stores import ProviderStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 60


@dataclass
class NextAvailableResult:
    """Outcome of a search, including whether it was cut short."""
    next_date: Optional[Date]
    truncated: bool = False
    days_checked: int = 0
    failed_days: List[Date] = field(default_factory=list)


def should_stop(
    cancel_event: Optional[asyncio.Event],
    deadline: Optional[DateTime],
) -> bool:
    """Check the external cancellation signal and the deadline."""
    if cancel_event is not None and cancel_event.is_set():
        return True
    return deadline is not None and pendulum.now("UTC") >= deadline


class NextAvailableDateSearch:
    """
    Walks forward day by day until a day with slots is found.

    With a pinned member the member's own slots are used; otherwise the
    multi-member aggregation over every eligible member.
    """

    def __init__(
        self,
        slot_finder: SlotFinderService,
        aggregator: Optional[MultiMemberAggregator] = None,
        provider_store: Optional[ProviderStoreProtocol] = None,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
    ) -> None:
        if horizon_days <= 0:
            raise InvalidInputError(f"horizon_days must be positive, got {horizon_days}")
        self._slot_finder = slot_finder
        self._aggregator = aggregator or MultiMemberAggregator(slot_finder)
        self._provider_store = provider_store
        self.horizon_days = horizon_days

    def now(self) -> DateTime:
        return self._slot_finder.now()

    async def find_next_available(
        self,
        *,
        provider_id: str,
        service: Service,
        starting_from: date,
        member_id: Optional[str] = None,
        horizon_days: Optional[int] = None,
        now: Optional[DateTime] = None,
        provider: Optional[Provider] = None,
    ) -> Optional[Date]:
        """Return the first date in the horizon with a slot, or None."""
        result = await self.search(
            provider_id=provider_id,
            service=service,
            starting_from=starting_from,
            member_id=member_id,
            horizon_days=horizon_days,
            now=now,
            provider=provider,
        )
        return result.next_date

    async def search(
        self,
        *,
        provider_id: str,
        service: Service,
        starting_from: date,
        member_id: Optional[str] = None,
        members: Optional[Sequence[Member]] = None,
        horizon_days: Optional[int] = None,
        now: Optional[DateTime] = None,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[DateTime] = None,
        provider: Optional[Provider] = None,
    ) -> NextAvailableResult:
        """
        Check ``[starting_from, starting_from + horizon_days)`` day by day.

        Args:
            provider_id: Provider whose calendar is searched
            service: Service to fit
            starting_from: First date to check
            member_id: Pinned member; None searches across eligible members
            members: Team to aggregate over when no member is pinned;
                fetched from the provider store when omitted
            horizon_days: Number of days to check
            now: Current instant, slots before it are never offered
            cancel_event: Stops the search once set
            deadline: Stops the search once reached
            provider: Provider whose slot interval and default buffer apply

        Returns:
            NextAvailableResult; ``truncated`` is set when the search was
            stopped before finding a date or exhausting the horizon
        """
        horizon = self.horizon_days if horizon_days is None else horizon_days
        if horizon <= 0:
            raise InvalidInputError(f"horizon_days must be positive, got {horizon}")

        starting_from = as_date(starting_from)
        now = now or self._slot_finder.now()

        if member_id is None and members is None:
            members = await self._load_members(provider_id)

        result = NextAvailableResult(next_date=None)

        for offset in range(horizon):
            if should_stop(cancel_event, deadline):
                logger.info(
                    "Search for provider %s stopped after %d days",
                    provider_id,
                    result.days_checked,
                )
                result.truncated = True
                return result

            day = starting_from.add(days=offset)
            result.days_checked += 1

            try:
                has_slots = await self._has_slots(
                    provider_id, service, day, member_id, members, now, provider
                )
            except StoreUnavailableError as exc:
                logger.warning("Skipping %s for provider %s: %s", day, provider_id, exc)
                result.failed_days.append(day)
                continue

            if has_slots:
                logger.debug("Provider %s: next available date %s", provider_id, day)
                result.next_date = day
                return result

        logger.debug("Provider %s: nothing available in the next %d days", provider_id, horizon)
        return result

    async def _has_slots(
        self,
        provider_id: str,
        service: Service,
        day: Date,
        member_id: Optional[str],
        members: Optional[Sequence[Member]],
        now: DateTime,
        provider: Optional[Provider],
    ) -> bool:
        if member_id is not None:
            slots = await self._slot_finder.find_member_slots(
                provider_id=provider_id,
                member_id=member_id,
                service=service,
                day=day,
                now=now,
                provider=provider,
            )
            return bool(slots)

        aggregated = await self._aggregator.aggregate(
            provider_id=provider_id,
            members=members or [],
            service=service,
            day=day,
            now=now,
            provider=provider,
        )
        return bool(aggregated)

    async def _load_members(self, provider_id: str) -> List[Member]:
        if self._provider_store is None:
            raise InvalidInputError(
                "Either a member, a member list or a provider store is required"
            )
        return await self._provider_store.get_members(provider_id)
