"""
Batch recalculation of every provider's cached next available date.

Providers are processed concurrently under a semaphore. A failure is
recorded on that provider's diff entry and never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pendulum import Date, DateTime

from ..domain.clock import as_date
from ..domain.exceptions import InvalidInputError
from ..domain.models import Member, Provider, Service
from .next_available import NextAvailableDateSearch, should_stop
from .stores import BookingStoreProtocol, ProviderStoreProtocol, ScheduleStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CONCURRENCY = 10

STATUS_UPDATED = "updated"
STATUS_UNCHANGED = "unchanged"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"
STATUS_TRUNCATED = "truncated"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class ProviderDiff:
    """Per-provider outcome of a recalculation."""
    provider_id: str
    business_name: str
    previous: Optional[Date]
    new: Optional[Date] = None
    status: str = STATUS_UNCHANGED
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.status == STATUS_UPDATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "business_name": self.business_name,
            "previous": _iso(self.previous),
            "new": _iso(self.new),
            "changed": self.changed,
            "status": self.status,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass
class RecalculationReport:
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    truncated: bool = False
    per_provider_diff: List[ProviderDiff] = field(default_factory=list)

    def add(self, diff: ProviderDiff) -> None:
        self.per_provider_diff.append(diff)
        if diff.status == STATUS_UPDATED:
            self.updated += 1
        elif diff.status == STATUS_UNCHANGED:
            self.unchanged += 1
        elif diff.status == STATUS_SKIPPED:
            self.skipped += 1
        elif diff.status == STATUS_ERROR:
            self.errors += 1
        elif diff.status == STATUS_TRUNCATED:
            self.truncated = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "errors": self.errors,
            "truncated": self.truncated,
            "per_provider_diff": [diff.to_dict() for diff in self.per_provider_diff],
        }


def pick_default_member(members: Iterable[Member]) -> Optional[Member]:
    """Prefer the active member flagged as default, else the first active one."""
    active = [member for member in members if member.is_active]
    for member in active:
        if member.is_default:
            return member
    return active[0] if active else None


def pick_service(services: Iterable[Service], member: Member) -> Optional[Service]:
    """Return the first active service the member may perform."""
    for service in services:
        if service.is_active and service.allows_member(member.id):
            return service
    return None


def is_stale(provider: Provider, today: date) -> bool:
    """A stored date that is missing or already past needs recalculating."""
    return provider.next_available_date is None or provider.next_available_date < today


class RecalculationJob:
    """
    Recomputes and writes back ``next_available_date`` for many providers.

    Writes only happen when the value changed.
    """

    def __init__(
        self,
        provider_store: ProviderStoreProtocol,
        search: NextAvailableDateSearch,
        schedule_store: Optional[ScheduleStoreProtocol] = None,
        booking_store: Optional[BookingStoreProtocol] = None,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> None:
        if concurrency <= 0:
            raise InvalidInputError(f"concurrency must be positive, got {concurrency}")
        self._provider_store = provider_store
        self._search = search
        self._schedule_store = schedule_store
        self._booking_store = booking_store
        self.concurrency = concurrency

    async def recalculate_all(
        self,
        providers: Optional[Sequence[Provider]] = None,
        *,
        today: Optional[date] = None,
        now: Optional[DateTime] = None,
        only_stale: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[DateTime] = None,
    ) -> RecalculationReport:
        """
        Recalculate every published provider.

        Args:
            providers: Providers to process; all published ones when omitted
            today: First date of each search
            now: Current instant used for same-day slots
            only_stale: Skip providers whose stored date is still valid
            cancel_event: Stops scheduling further providers once set
            deadline: Stops scheduling further providers once reached

        Returns:
            RecalculationReport with counts and one diff per provider reached
        """
        if providers is None:
            providers = await self._provider_store.list_published_providers()

        now = now or self._search.now()
        today = as_date(today or now)
        published = [provider for provider in providers if provider.is_published]
        semaphore = asyncio.Semaphore(self.concurrency)

        logger.info("Recalculating next available date for %d providers", len(published))

        async def process_with_semaphore(provider: Provider) -> Optional[ProviderDiff]:
            async with semaphore:
                if should_stop(cancel_event, deadline):
                    return None
                if only_stale and not is_stale(provider, today):
                    return ProviderDiff(
                        provider_id=provider.id,
                        business_name=provider.business_name,
                        previous=provider.next_available_date,
                        new=provider.next_available_date,
                        status=STATUS_SKIPPED,
                        reason="next available date still valid",
                    )
                return await self._process_provider(
                    provider, today, now, cancel_event, deadline
                )

        diffs = await asyncio.gather(*(process_with_semaphore(p) for p in published))

        report = RecalculationReport()
        for diff in diffs:
            if diff is None:
                report.truncated = True
                continue
            report.add(diff)

        logger.info(
            "Results: %d updated, %d unchanged, %d errors, %d skipped%s",
            report.updated,
            report.unchanged,
            report.errors,
            report.skipped,
            " (truncated)" if report.truncated else "",
        )
        return report

    async def recalculate_provider(
        self,
        provider_id: str,
        *,
        today: Optional[date] = None,
        now: Optional[DateTime] = None,
        debug: bool = False,
    ) -> Dict[str, Any]:
        """
        Recalculate a single provider and describe the outcome.

        Never raises: failures are reported with ``success: False``.
        """
        now = now or self._search.now()
        today = as_date(today or now)

        if not provider_id:
            return self._single_response(False, "", None, "provider_id is required")

        try:
            provider = await self._provider_store.get_provider(provider_id)
            if provider is None:
                return self._single_response(
                    False, provider_id, None, f"Provider {provider_id} not found"
                )

            diff = await self._process_provider(provider, today, now, None, None)
            if diff.status == STATUS_ERROR:
                return self._single_response(False, provider_id, None, f"Error: {diff.error}")

            horizon = self._search.horizon_days
            if diff.new is not None:
                message = f"Next available date: {diff.new.isoformat()}"
            elif diff.status == STATUS_SKIPPED:
                message = f"Skipped: {diff.reason}"
            else:
                message = f"No slot available in the next {horizon} days"

            response = self._single_response(True, provider_id, diff.new, message)
            if debug:
                response["debug"] = await self._debug_counts(provider_id, now, horizon)
            return response

        except Exception as exc:
            logger.exception("Error recalculating provider %s", provider_id)
            return self._single_response(False, provider_id, None, f"Error: {exc}")

    async def _process_provider(
        self,
        provider: Provider,
        today: Date,
        now: DateTime,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[DateTime],
    ) -> ProviderDiff:
        diff = ProviderDiff(
            provider_id=provider.id,
            business_name=provider.business_name,
            previous=provider.next_available_date,
        )

        try:
            members = await self._provider_store.get_members(provider.id)
            member = pick_default_member(members)
            service = None
            if member is not None:
                service = pick_service(await self._provider_store.get_services(provider.id), member)

            if member is None or service is None:
                diff.status = STATUS_SKIPPED
                diff.reason = "no active member" if member is None else "no active service"
                diff.new = provider.next_available_date
                return diff

            result = await self._search.search(
                provider_id=provider.id,
                service=service,
                starting_from=today,
                member_id=member.id,
                now=now,
                cancel_event=cancel_event,
                deadline=deadline,
                provider=provider,
            )

            if result.truncated:
                diff.status = STATUS_TRUNCATED
                diff.new = provider.next_available_date
                return diff

            # An unread day may hold the real next date; keep the stored value.
            if result.next_date is None and result.failed_days:
                failed = result.failed_days
                diff.status = STATUS_ERROR
                diff.new = None
                diff.error = (
                    f"store unavailable for {len(failed)} of {result.days_checked} days "
                    f"({failed[0].isoformat()} to {failed[-1].isoformat()})"
                )
                logger.error("[%s] Error: %s", provider.business_name or provider.id, diff.error)
                return diff

            diff.new = result.next_date
            if diff.new == provider.next_available_date:
                diff.status = STATUS_UNCHANGED
                return diff

            await self._provider_store.set_next_available_date(provider.id, diff.new)
            diff.status = STATUS_UPDATED
            logger.info(
                "[%s] Updated: %s -> %s",
                provider.business_name or provider.id,
                _iso(diff.previous) or "null",
                _iso(diff.new) or "null",
            )
            return diff

        except Exception as exc:
            logger.error("[%s] Error: %s", provider.business_name or provider.id, exc)
            diff.status = STATUS_ERROR
            diff.new = None
            diff.error = str(exc) or exc.__class__.__name__
            return diff

    async def _debug_counts(self, provider_id: str, now: DateTime, horizon: int) -> Dict[str, Any]:
        members = await self._provider_store.get_members(provider_id)
        member = pick_default_member(members)
        counts: Dict[str, Any] = {
            "member_found": member is not None,
            "availability_days": 0,
            "blocked_periods_count": 0,
            "future_bookings_count": 0,
        }
        if member is None:
            return counts

        today = as_date(now)
        if self._schedule_store is not None:
            week = await self._schedule_store.get_weekly_schedule(provider_id, member.id)
            counts["availability_days"] = sum(1 for entry in week if entry.is_open)
            blocked = await self._schedule_store.get_blocked_periods(
                provider_id, member.id, today, today.add(days=horizon)
            )
            counts["blocked_periods_count"] = len(blocked)
        if self._booking_store is not None:
            bookings = await self._booking_store.get_bookings_in_range(
                provider_id, now, now.add(days=horizon), member_id=member.id
            )
            counts["future_bookings_count"] = sum(
                1 for booking in bookings if booking.is_active and booking.start >= now
            )
        return counts

    @staticmethod
    def _single_response(
        success: bool,
        provider_id: str,
        next_date: Optional[date],
        message: str,
    ) -> Dict[str, Any]:
        return {
            "success": success,
            "provider_id": provider_id,
            "next_available_date": _iso(next_date),
            "message": message,
        }
