"""
Service layer helpers that orchestrate store adapters and domain logic.
"""

from .aggregator import MultiMemberAggregator, eligible_members
from .next_available import NextAvailableDateSearch, NextAvailableResult
from .recalculation import ProviderDiff, RecalculationJob, RecalculationReport
from .slot_finder import SlotFinderService
from .stores import BookingStoreProtocol, ProviderStoreProtocol, ScheduleStoreProtocol

__all__ = [
    "BookingStoreProtocol",
    "MultiMemberAggregator",
    "NextAvailableDateSearch",
    "NextAvailableResult",
    "ProviderDiff",
    "ProviderStoreProtocol",
    "RecalculationJob",
    "RecalculationReport",
    "ScheduleStoreProtocol",
    "SlotFinderService",
    "eligible_members",
]
