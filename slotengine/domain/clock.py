"""
Wall-clock helpers.

Every computation in the engine happens in whole minutes of the provider's
local wall-clock day. These helpers are the only place where minute-of-day
integers and pendulum instants are converted into one another.
"""

from datetime import date

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInputError

MINUTES_PER_DAY = 24 * 60

DEFAULT_TIMEZONE = "Europe/Paris"


def parse_time_of_day(value: str, allow_end_of_day: bool = False) -> int:
    """
    Parse an ``HH:MM`` string into a minute-of-day integer.

    ``24:00`` is only accepted when ``allow_end_of_day`` is set, so that a
    range may end at midnight.
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid time of day {value!r}, expected HH:MM") from exc

    if allow_end_of_day and hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise InvalidInputError(f"Invalid time of day {value!r}, expected HH:MM")
    return hours * 60 + minutes


def format_time_of_day(minutes: int) -> str:
    """Format a minute-of-day integer as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(day: date) -> int:
    """Return the weekday with 0=Sunday ... 6=Saturday."""
    return day.isoweekday() % 7


def as_date(value: date) -> Date:
    """Normalise a stdlib or pendulum date (or datetime) to a pendulum Date."""
    return pendulum.date(value.year, value.month, value.day)


def wall_clock(day: date, minute: int, timezone: str = DEFAULT_TIMEZONE) -> DateTime:
    """
    Build the instant for ``minute`` minutes after local midnight of ``day``.

    Minutes beyond the day roll over into the following days, so a range
    ending at ``24:00`` maps onto midnight of the next date.
    """
    target = as_date(day).add(days=minute // MINUTES_PER_DAY)
    minute_in_day = minute % MINUTES_PER_DAY
    return pendulum.datetime(
        target.year,
        target.month,
        target.day,
        minute_in_day // 60,
        minute_in_day % 60,
        tz=timezone,
    )


def minute_of_day(
    instant: DateTime,
    day: date,
    timezone: str = DEFAULT_TIMEZONE,
    round_up: bool = False,
) -> int:
    """
    Express ``instant`` as minutes relative to local midnight of ``day``.

    The result is negative for instants before that day and may exceed
    ``MINUTES_PER_DAY`` for instants after it. Seconds are truncated unless
    ``round_up`` is set, which is what range ends need.
    """
    local = instant.in_timezone(timezone)
    days_apart = local.date().toordinal() - day.toordinal()
    minutes = days_apart * MINUTES_PER_DAY + local.hour * 60 + local.minute
    if round_up and (local.second or local.microsecond):
        minutes += 1
    return minutes
