"""Derived, never-persisted views of sessions with live occupancy counts."""

from datetime import date
from typing import Optional

from pydantic import Field

from ..core.enums import CapacityLevel, CapacitySeverity
from ._strict_base import StrictModel
from .slot import AvailableSlot


class IntroClassSession(StrictModel):
    """A concrete, dated occurrence generated from rules or an override."""

    id: str = Field(..., description="YYYY-MM-DD-HHMM-instructorId, stable across recomputation")
    date: date
    time: str = Field(..., description="12-hour wall-clock time, e.g. '10:00 AM'")
    instructor_id: int
    capacity: int


class EnrichedIntroClassSession(IntroClassSession):
    paid_bookings_count: int = 0
    total_bookings_count: int = 0
    is_override: bool = False

    @property
    def is_full(self) -> bool:
        return self.paid_bookings_count >= self.capacity


class EnrichedAvailableSlot(AvailableSlot):
    paid_bookings_count: int = 0
    total_bookings_count: int = 0
    max_capacity: int


class OccupancyCounts(StrictModel):
    paid_bookings_count: int = 0
    total_bookings_count: int = 0


class CapacityStatus(StrictModel):
    """Threshold classification of an occupancy count."""

    level: CapacityLevel
    severity: CapacitySeverity
    message: str = ""
    percentage: float
    threshold: Optional[int] = None
