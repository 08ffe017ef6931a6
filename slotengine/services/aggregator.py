"""
Multi-member slot aggregation.

Used when the caller has not pinned a member: every eligible member's slots
are computed concurrently and unioned by start time.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pendulum import DateTime

from ..domain.exceptions import StoreUnavailableError
from ..domain.models import AggregatedSlot, Member, Provider, Service, Slot
from .slot_finder import SlotFinderService

logger = logging.getLogger(__name__)


def eligible_members(
    members: Iterable[Member],
    service: Service,
    location_id: Optional[str] = None,
) -> List[Member]:
    """
    Filter members down to those who may perform ``service``.

    Inactive members are dropped, as are members outside
    ``service.member_ids`` (when set) and, if given, outside ``location_id``.
    """
    return [
        member
        for member in members
        if member.is_active
        and service.allows_member(member.id)
        and (location_id is None or member.location_id == location_id)
    ]


class MultiMemberAggregator:
    """
    Fans slot generation out per member and merges the results.

    A member whose store reads fail is left out of the union; the remaining
    members still produce results. When every member fails the day cannot
    be answered and ``StoreUnavailableError`` is raised.
    """

    def __init__(self, slot_finder: SlotFinderService) -> None:
        self._slot_finder = slot_finder

    async def aggregate(
        self,
        *,
        provider_id: str,
        members: Iterable[Member],
        service: Service,
        day: date,
        now: Optional[DateTime] = None,
        location_id: Optional[str] = None,
        provider: Optional[Provider] = None,
    ) -> List[AggregatedSlot]:
        """
        Return every slot at least one eligible member can serve on ``day``.

        Each entry lists the members able to serve it, sorted by id.

        Raises:
            StoreUnavailableError: If the reads failed for every eligible member
        """
        candidates = eligible_members(members, service, location_id)
        if not candidates:
            return []

        now = now or self._slot_finder.now()

        per_member = await asyncio.gather(
            *(
                self._member_slots(provider_id, member.id, service, day, now, provider)
                for member in candidates
            )
        )

        if all(slots is None for slots in per_member):
            raise StoreUnavailableError(
                f"No member of provider {provider_id} could be read for {day}"
            )

        return self.merge(
            (member.id, slots)
            for member, slots in zip(candidates, per_member)
            if slots is not None
        )

    @staticmethod
    def merge(per_member: Iterable[Tuple[str, List[Slot]]]) -> List[AggregatedSlot]:
        """Union per-member slot lists by exact start time."""
        by_start: Dict[DateTime, Tuple[DateTime, Set[str]]] = {}

        for member_id, slots in per_member:
            for slot in slots:
                _, member_ids = by_start.setdefault(slot.start, (slot.end, set()))
                member_ids.add(member_id)

        return [
            AggregatedSlot(start=start, end=end, member_ids=tuple(sorted(member_ids)))
            for start, (end, member_ids) in sorted(by_start.items())
            if member_ids
        ]

    async def _member_slots(
        self,
        provider_id: str,
        member_id: str,
        service: Service,
        day: date,
        now: DateTime,
        provider: Optional[Provider],
    ) -> Optional[List[Slot]]:
        try:
            return await self._slot_finder.find_member_slots(
                provider_id=provider_id,
                member_id=member_id,
                service=service,
                day=day,
                now=now,
                provider=provider,
            )
        except StoreUnavailableError as exc:
            logger.warning(
                "Excluding member %s of provider %s on %s: %s",
                member_id,
                provider_id,
                day,
                exc,
            )
            return None
