"""
Domain models for schedules, closures, bookings and computed slots.

Store documents use the camelCase field names of the booking database; the
``from_dict`` constructors are the single boundary where those documents are
converted into the value types below.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from .clock import (
    DEFAULT_TIMEZONE,
    MINUTES_PER_DAY,
    as_date,
    format_time_of_day,
    parse_time_of_day,
)
from .exceptions import InvalidInputError

MAX_REASON_LENGTH = 200


def _parse_date(value: Any) -> Date:
    if isinstance(value, date):
        return as_date(value)
    try:
        return as_date(pendulum.parse(str(value)))
    except (ValueError, TypeError) as exc:
        raise InvalidInputError(f"Invalid date {value!r}") from exc


def _parse_instant(value: Any, timezone: str) -> DateTime:
    if isinstance(value, DateTime):
        return value
    try:
        parsed = pendulum.parse(str(value), tz=timezone)
    except (ValueError, TypeError) as exc:
        raise InvalidInputError(f"Invalid datetime {value!r}") from exc
    if not isinstance(parsed, DateTime):
        raise InvalidInputError(f"Invalid datetime {value!r}")
    return parsed


def _parse_optional_time(value: Optional[str], allow_end_of_day: bool = False) -> Optional[int]:
    if value is None:
        return None
    return parse_time_of_day(value, allow_end_of_day=allow_end_of_day)


@dataclass(frozen=True, order=True)
class TimeRange:
    """
    Represents an immutable range of minutes within a wall-clock day.

    Invariant: start must be before end. Values outside ``[0, 1440]`` are
    allowed so that bookings spilling over midnight can still be expressed
    relative to a single day; ``clamp_to_day`` brings them back.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(
                f"Start time {format_time_of_day(self.start)} must be before "
                f"end time {format_time_of_day(self.end)}"
            )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (half-open)."""
        return self.start < other.end and other.start < self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None
        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def within_day(self) -> bool:
        return 0 <= self.start and self.end <= MINUTES_PER_DAY

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeRange":
        return cls(
            start=parse_time_of_day(start),
            end=parse_time_of_day(end, allow_end_of_day=True),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimeRange":
        return cls.from_strings(data["start"], data["end"])

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_time_of_day(self.start), "end": format_time_of_day(self.end)}

    def __str__(self) -> str:
        return f"{format_time_of_day(self.start)} - {format_time_of_day(self.end)}"


@dataclass(frozen=True)
class WeeklyDaySchedule:
    """
    Opening hours of one member for one day of the week.

    Invariant: a closed day has no ranges; an open day has at least one,
    sorted ascending, mutually non-overlapping and inside the day.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    is_open: bool
    ranges: Tuple[TimeRange, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "ranges", tuple(self.ranges))

        if not 0 <= self.day_of_week <= 6:
            raise InvalidInputError(
                f"day_of_week must be between 0 (Sunday) and 6 (Saturday), got {self.day_of_week}"
            )
        if not self.is_open:
            if self.ranges:
                raise InvalidInputError("A closed day cannot have opening ranges")
            return
        if not self.ranges:
            raise InvalidInputError("An open day needs at least one opening range")

        for time_range in self.ranges:
            if not time_range.within_day():
                raise InvalidInputError(f"Opening range {time_range} is outside the day")
        for previous, current in zip(self.ranges, self.ranges[1:]):
            if current.start < previous.start:
                raise InvalidInputError("Opening ranges must be sorted by start time")
            if previous.overlaps(current):
                raise InvalidInputError(f"Opening ranges {previous} and {current} overlap")

    @classmethod
    def closed(cls, day_of_week: int) -> "WeeklyDaySchedule":
        return cls(day_of_week=day_of_week, is_open=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WeeklyDaySchedule":
        is_open = bool(data.get("isOpen", True))
        ranges = sorted(TimeRange.from_dict(item) for item in data.get("slots") or [])
        # The dashboard keeps the last ranges of a day it switched off.
        return cls(
            day_of_week=int(data["dayOfWeek"]),
            is_open=is_open and bool(ranges),
            ranges=tuple(ranges) if is_open else (),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dayOfWeek": self.day_of_week,
            "isOpen": self.is_open,
            "slots": [time_range.to_dict() for time_range in self.ranges],
        }


@dataclass(frozen=True)
class BlockedPeriod:
    """
    A vacation, training or partial-day closure for one member.

    Dates are inclusive. A partial-day block needs both ``start_time`` and
    ``end_time`` (minute-of-day) with ``start_time < end_time``.
    """
    start_date: Date
    end_date: Date
    member_id: Optional[str]
    location_id: Optional[str] = None
    all_day: bool = True
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    reason: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise InvalidInputError(
                f"End date {self.end_date} must not be before start date {self.start_date}"
            )
        if self.reason is not None and len(self.reason) > MAX_REASON_LENGTH:
            raise InvalidInputError(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
        if self.all_day:
            object.__setattr__(self, "start_time", None)
            object.__setattr__(self, "end_time", None)
            return
        if self.start_time is None or self.end_time is None:
            raise InvalidInputError("Start and end times are required for a partial-day block")
        if self.start_time >= self.end_time:
            raise InvalidInputError(
                f"Start time {format_time_of_day(self.start_time)} must be before "
                f"end time {format_time_of_day(self.end_time)}"
            )

    def covers(self, day: date) -> bool:
        """Check whether ``day`` falls inside the inclusive date range."""
        return self.start_date <= day <= self.end_date

    def applies_to(self, member_id: str) -> bool:
        # A block without a member applies to nobody.
        return bool(self.member_id) and self.member_id == member_id

    def time_range(self) -> Optional[TimeRange]:
        """The blocked part of the day, or None for an all-day block."""
        if self.all_day:
            return None
        return TimeRange(start=self.start_time, end=self.end_time)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockedPeriod":
        all_day = bool(data.get("allDay", False))
        return cls(
            id=data.get("id"),
            member_id=data.get("memberId"),
            location_id=data.get("locationId"),
            start_date=_parse_date(data["startDate"]),
            end_date=_parse_date(data["endDate"]),
            all_day=all_day,
            start_time=None if all_day else _parse_optional_time(data.get("startTime")),
            end_time=None if all_day else _parse_optional_time(data.get("endTime"), True),
            reason=data.get("reason"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "memberId": self.member_id,
            "locationId": self.location_id,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "allDay": self.all_day,
            "startTime": None if self.start_time is None else format_time_of_day(self.start_time),
            "endTime": None if self.end_time is None else format_time_of_day(self.end_time),
            "reason": self.reason,
        }


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NOSHOW = "noshow"


ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Booking:
    """
    An appointment already taken with a member.

    ``buffer_time`` is the buffer of the booked service at booking time; it
    is reserved after ``end`` just like the buffer of a new slot.
    """
    start: DateTime
    end: DateTime
    member_id: Optional[str]
    location_id: Optional[str] = None
    service_id: Optional[str] = None
    status: BookingStatus = BookingStatus.CONFIRMED
    buffer_time: int = 0
    id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", BookingStatus(self.status))
        if self.end <= self.start:
            raise InvalidInputError(f"Booking end {self.end} must be after start {self.start}")
        if self.buffer_time < 0:
            raise InvalidInputError("buffer_time cannot be negative")

    @property
    def is_active(self) -> bool:
        """Only pending and confirmed bookings block slots."""
        return self.status in ACTIVE_BOOKING_STATUSES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], timezone: str = DEFAULT_TIMEZONE) -> "Booking":
        try:
            status = BookingStatus(data.get("status", BookingStatus.CONFIRMED.value))
        except ValueError as exc:
            raise InvalidInputError(f"Unknown booking status {data.get('status')!r}") from exc
        return cls(
            id=data.get("id"),
            start=_parse_instant(data["datetime"], timezone),
            end=_parse_instant(data["endDatetime"], timezone),
            member_id=data.get("memberId"),
            location_id=data.get("locationId"),
            service_id=data.get("serviceId"),
            status=status,
            buffer_time=int(data.get("bufferTime") or 0),
        )


@dataclass(frozen=True)
class Service:
    """
    A bookable service.

    ``member_ids`` of None means every member of the provider may perform it.
    """
    id: str
    duration: int
    buffer_time: int = 0
    member_ids: Optional[FrozenSet[str]] = None
    name: str = ""
    is_active: bool = True

    def __post_init__(self):
        if self.duration <= 0:
            raise InvalidInputError(f"Service duration must be positive, got {self.duration}")
        if self.buffer_time < 0:
            raise InvalidInputError(f"Buffer time cannot be negative, got {self.buffer_time}")
        if self.member_ids is not None:
            object.__setattr__(self, "member_ids", frozenset(self.member_ids))

    def allows_member(self, member_id: str) -> bool:
        return self.member_ids is None or member_id in self.member_ids

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Service":
        member_ids = data.get("memberIds")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            duration=int(data["duration"]),
            buffer_time=int(data.get("bufferTime") or 0),
            member_ids=frozenset(member_ids) if member_ids is not None else None,
            is_active=bool(data.get("isActive", True)),
        )


@dataclass(frozen=True)
class Member:
    """A team member. Each member works at exactly one location."""
    id: str
    location_id: Optional[str] = None
    name: str = ""
    is_active: bool = True
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Member":
        return cls(
            id=data["id"],
            location_id=data.get("locationId"),
            name=data.get("name", ""),
            is_active=bool(data.get("isActive", True)),
            is_default=bool(data.get("isDefault", False)),
        )


@dataclass(frozen=True)
class Provider:
    """
    A business offering services.

    ``default_buffer_time`` applies to services without a buffer of their
    own. ``slot_interval`` overrides the engine's slot step when set.
    """
    id: str
    business_name: str = ""
    is_published: bool = True
    next_available_date: Optional[Date] = None
    default_buffer_time: int = 0
    slot_interval: Optional[int] = None

    def __post_init__(self):
        if self.default_buffer_time < 0:
            raise InvalidInputError(
                f"Default buffer time cannot be negative, got {self.default_buffer_time}"
            )
        if self.slot_interval is not None and self.slot_interval <= 0:
            raise InvalidInputError(f"Slot interval must be positive, got {self.slot_interval}")

    def buffer_for(self, service: "Service") -> int:
        """The service's own buffer, else the provider default."""
        return service.buffer_time or self.default_buffer_time

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Provider":
        next_available = data.get("nextAvailableDate")
        settings = data.get("settings") or {}
        slot_interval = settings.get("slotInterval")
        return cls(
            id=data["id"],
            business_name=data.get("businessName", ""),
            is_published=bool(data.get("isPublished", True)),
            next_available_date=_parse_date(next_available) if next_available else None,
            default_buffer_time=int(settings.get("defaultBufferTime") or 0),
            slot_interval=int(slot_interval) if slot_interval is not None else None,
        )


WEEKDAY_NAMES = {
    0: "Dimanche",
    1: "Lundi",
    2: "Mardi",
    3: "Mercredi",
    4: "Jeudi",
    5: "Vendredi",
    6: "Samedi",
}


@dataclass(frozen=True, order=True)
class Slot:
    """
    A bookable ``[start, end)`` window sized to the service duration.

    The service buffer is not part of the window.
    """
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday DD.MM.YYYY | HH:MM - HH:MM
        """
        weekday = WEEKDAY_NAMES[self.start.isoweekday() % 7]
        return (
            f"{weekday} {self.start.format('DD.MM.YYYY')} | "
            f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "date": self.start.date().isoformat(),
            "start": self.start.format("HH:mm"),
            "end": self.end.format("HH:mm"),
            "datetime": self.start.isoformat(),
            "endDatetime": self.end.isoformat(),
        }


@dataclass(frozen=True)
class AggregatedSlot:
    """A slot together with every member who can serve it."""
    start: DateTime
    end: DateTime
    member_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def needs_member_choice(self) -> bool:
        """A single candidate is auto-assigned, several require a choice."""
        return len(self.member_ids) > 1

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = Slot(start=self.start, end=self.end).to_dict()
        data["memberIds"] = list(self.member_ids)
        return data
