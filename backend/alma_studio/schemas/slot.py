# backend/alma_studio/schemas/slot.py
"""
Slot model: the value types every scheduling component shares.

A TimeSlot is a booked occurrence (date + wall-clock time + instructor).
A SchedulingRule is the weekly template an introductory class expands
from; SessionOverride replaces or cancels one date of that template.
AvailableSlot / DailyScheduleOverride are the class-package equivalents
keyed by DayKey and by date.
"""

from datetime import date, time
from typing import Dict, List, Optional, Tuple

from pydantic import ConfigDict, Field, field_validator, model_validator

from ..core.time_utils import format_24h, parse_wall_time
from ._strict_base import StrictModel


def _validate_wall_time(value: str) -> str:
    cleaned = (value or "").strip()
    parse_wall_time(cleaned)
    return cleaned


class TimeSlot(StrictModel):
    """One reserved session inside a booking."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: date
    time: str
    instructor_id: int

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _validate_wall_time(value)

    @property
    def time_value(self) -> time:
        return parse_wall_time(self.time)

    @property
    def identifier(self) -> str:
        """Attendance key, ``"{date}_{time}"`` with the time as stored."""
        return f"{self.date.isoformat()}_{self.time}"

    @property
    def date_time_key(self) -> Tuple[date, time]:
        """Identity used for per-customer conflicts and intra-booking uniqueness."""
        return (self.date, self.time_value)

    @property
    def session_key(self) -> str:
        """Identity used for capacity: date, time and instructor."""
        return session_key(self.date, self.time_value, self.instructor_id)

    def same_date_time(self, other: "TimeSlot") -> bool:
        return self.date_time_key == other.date_time_key


def session_key(session_date: date, session_time: time, instructor_id: int) -> str:
    return f"{session_date.isoformat()}|{session_time.strftime('%H:%M')}|{instructor_id}"


class SchedulingRule(StrictModel):
    """Weekly recurrence entry for an introductory class."""

    id: Optional[str] = None
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday .. 6 = Saturday")
    time: str = Field(..., description="HH:MM, 24-hour")
    instructor_id: int
    capacity: int = Field(..., ge=1)

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return format_24h(_validate_wall_time(value))

    @model_validator(mode="after")
    def _derive_id(self) -> "SchedulingRule":
        if not self.id:
            # Assign through __dict__ to avoid re-running validate_assignment
            self.__dict__["id"] = (
                f"{self.day_of_week}-{self.time.replace(':', '')}-{self.instructor_id}"
            )
        return self


class OverrideSession(StrictModel):
    time: str
    instructor_id: int
    capacity: Optional[int] = Field(default=None, ge=1)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _validate_wall_time(value)


class SessionOverride(StrictModel):
    """
    Date-keyed exception to the weekly rules.

    ``sessions is None`` cancels the date; a list replaces the generated
    sessions for that date exactly (no merge).
    """

    date: date
    sessions: Optional[List[OverrideSession]] = None

    @property
    def is_cancellation(self) -> bool:
        return self.sessions is None


class AvailableSlot(StrictModel):
    time: str
    instructor_id: int

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return _validate_wall_time(value)


class DailyScheduleOverride(StrictModel):
    """Class-package override for one date; ``slots is None`` cancels the day."""

    slots: Optional[List[AvailableSlot]] = None
    capacity: Optional[int] = Field(default=None, ge=1)


# Weekly template and per-date overrides used for class packages
Availability = Dict[str, List[AvailableSlot]]
ScheduleOverrides = Dict[str, DailyScheduleOverride]
