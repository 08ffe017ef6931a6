"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability_resolver import AvailabilityResolver
from .exceptions import (
    InvalidInputError,
    NotFoundError,
    SlotEngineError,
    StoreUnavailableError,
)
from .models import (
    AggregatedSlot,
    BlockedPeriod,
    Booking,
    BookingStatus,
    Member,
    Provider,
    Service,
    Slot,
    TimeRange,
    WeeklyDaySchedule,
)
from .slot_generator import SlotGenerator

__all__ = [
    "AggregatedSlot",
    "AvailabilityResolver",
    "BlockedPeriod",
    "Booking",
    "BookingStatus",
    "InvalidInputError",
    "Member",
    "NotFoundError",
    "Provider",
    "Service",
    "Slot",
    "SlotEngineError",
    "SlotGenerator",
    "StoreUnavailableError",
    "TimeRange",
    "WeeklyDaySchedule",
]
