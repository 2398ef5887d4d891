"""
Timezone-naive date and wall-clock helpers.

Session times arrive either as 12-hour strings ("10:00 AM", "03:00 PM")
or as 24-hour strings ("15:00"). All comparisons go through
``parse_wall_time`` so both spellings identify the same session.
"""

from datetime import date, datetime, time, timedelta
from functools import lru_cache
import re
from typing import Iterator, Union

from .constants import DAY_NAMES
from .enums import DayKey

_WALL_TIME_RE = re.compile(
    r"^\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s*(?P<meridiem>[AaPp][Mm])?\s*$"
)


@lru_cache(maxsize=512)
def parse_wall_time(value: str) -> time:
    """Parse a wall-clock string with or without an AM/PM marker."""
    match = _WALL_TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Unrecognized time value: {value!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    meridiem = match.group("meridiem")

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"Hour out of range for 12-hour time: {value!r}")
        meridiem = meridiem.upper()
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
    elif hour == 24 and minute == 0:
        hour = 0

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return time(hour, minute)


def format_wall_time(value: Union[time, str]) -> str:
    """Return the zero-padded 12-hour form used for generated sessions."""
    if isinstance(value, str):
        value = parse_wall_time(value)
    return value.strftime("%I:%M %p")


def format_24h(value: Union[time, str]) -> str:
    """HH:MM, the form scheduling rules are authored in."""
    if isinstance(value, str):
        value = parse_wall_time(value)
    return value.strftime("%H:%M")


def coerce_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def slot_datetime(slot_date: Union[date, str], slot_time: Union[time, str]) -> datetime:
    """Naive local datetime for a date + wall-clock time."""
    if isinstance(slot_time, str):
        slot_time = parse_wall_time(slot_time)
    return datetime.combine(coerce_date(slot_date), slot_time)


def weekday_index(value: date) -> int:
    """Weekday with 0 = Sunday .. 6 = Saturday."""
    return (value.weekday() + 1) % 7


def day_key_for_index(index: int) -> DayKey:
    if not 0 <= index <= 6:
        raise ValueError(f"Weekday index out of range: {index}")
    return DayKey(DAY_NAMES[index])


def day_key_for(value: date) -> DayKey:
    return day_key_for_index(weekday_index(value))


def iter_dates(start: date, days: int) -> Iterator[date]:
    """Yield ``days`` consecutive dates beginning at ``start``."""
    for offset in range(max(days, 0)):
        yield start + timedelta(days=offset)
