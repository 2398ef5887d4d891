# backend/alma_studio/services/capacity.py
"""
Capacity resolution.

Occupancy is always recomputed from the live booking list: there is no
stored counter anywhere, so toggling a booking's payment flag changes
the next read without any explicit recount.

A session is identified by ``(date, time, instructor_id)``; two
instructors teaching at the same hour are independent sessions.
"""

from collections import defaultdict
from datetime import date, time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.enums import CapacityLevel, CapacitySeverity
from ..schemas.booking import BookingRead
from ..schemas.session import CapacityStatus, OccupancyCounts
from ..schemas.settings import CapacityThreshold
from ..schemas.slot import session_key

_SEVERITY_BY_LEVEL = {
    CapacityLevel.LAST: CapacitySeverity.CRITICAL,
    CapacityLevel.FEW: CapacitySeverity.WARNING,
    CapacityLevel.AVAILABLE: CapacitySeverity.NOMINAL,
}


def build_occupancy_index(bookings: Iterable[BookingRead]) -> Dict[str, OccupancyCounts]:
    """Paid and total booking counts keyed by session key, in one pass."""
    paid: Dict[str, int] = defaultdict(int)
    total: Dict[str, int] = defaultdict(int)
    for booking in bookings:
        # A booking counts once per session even if it were malformed
        seen = {slot.session_key for slot in booking.slots}
        for key in seen:
            total[key] += 1
            if booking.is_paid:
                paid[key] += 1
    return {
        key: OccupancyCounts(paid_bookings_count=paid.get(key, 0), total_bookings_count=count)
        for key, count in total.items()
    }


def occupied_seats(counts: OccupancyCounts, counts_pending: Optional[bool] = None) -> int:
    """Seats considered taken for admission decisions."""
    if counts_pending is None:
        counts_pending = settings.capacity_counts_pending_bookings
    return counts.total_bookings_count if counts_pending else counts.paid_bookings_count


def is_full(
    counts: OccupancyCounts, capacity: int, counts_pending: Optional[bool] = None
) -> bool:
    return occupied_seats(counts, counts_pending) >= capacity


def occupancy_percentage(count: int, max_capacity: int) -> float:
    if max_capacity <= 0:
        return 0.0
    return count / max_capacity * 100


def classify(
    count: int, max_capacity: int, thresholds: Sequence[CapacityThreshold]
) -> CapacityStatus:
    """
    Map an occupancy count to a configured capacity level.

    Thresholds are evaluated highest first; the first one at or below the
    occupancy percentage wins, otherwise the lowest threshold applies.
    """
    percentage = occupancy_percentage(count, max_capacity)
    if not thresholds:
        return CapacityStatus(
            level=CapacityLevel.AVAILABLE,
            severity=CapacitySeverity.NOMINAL,
            message="",
            percentage=percentage,
        )

    ordered: List[CapacityThreshold] = sorted(thresholds, key=lambda t: t.threshold, reverse=True)
    active = next((t for t in ordered if t.threshold <= percentage), ordered[-1])
    return CapacityStatus(
        level=active.level,
        severity=_SEVERITY_BY_LEVEL.get(active.level, CapacitySeverity.NOMINAL),
        message=active.message,
        percentage=percentage,
        threshold=active.threshold,
    )


def session_counts(
    index: Dict[str, OccupancyCounts], session_date: date, session_time: time, instructor_id: int
) -> Tuple[int, int]:
    counts = index.get(session_key(session_date, session_time, instructor_id))
    if counts is None:
        return 0, 0
    return counts.paid_bookings_count, counts.total_bookings_count
