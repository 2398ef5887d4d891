# backend/alma_studio/services/recurrence.py
"""
Recurrence generation for bookable sessions.

Two templates exist side by side:

* Introductory classes carry their own ``scheduling_rules`` (weekday +
  time + instructor + capacity) and date-keyed ``overrides``.
* Class packages share the studio-wide weekly ``Availability`` keyed by
  day name, plus ``ScheduleOverrides`` keyed by ISO date.

In both cases an override for a date wins over the template: ``None``
cancels the date, a list replaces it exactly with no merge.
"""

from datetime import date, datetime
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..core.config import settings
from ..core.time_utils import (
    day_key_for,
    format_wall_time,
    iter_dates,
    parse_wall_time,
    slot_datetime,
    weekday_index,
)
from ..schemas.booking import BookingRead
from ..schemas.product import ProductRead
from ..schemas.session import (
    EnrichedAvailableSlot,
    EnrichedIntroClassSession,
    IntroClassSession,
    OccupancyCounts,
)
from ..schemas.settings import ClassCapacity
from ..schemas.slot import (
    Availability,
    AvailableSlot,
    OverrideSession,
    ScheduleOverrides,
    SchedulingRule,
    SessionOverride,
)
from .capacity import build_occupancy_index, is_full, session_counts

logger = logging.getLogger(__name__)

# (time, instructor_id, capacity), the identity used to compare a day's sessions
SessionTuple = Tuple[str, int, int]


def session_id(session_date: date, session_time: str, instructor_id: int) -> str:
    """Stable id ``YYYY-MM-DD-HHMM-instructorId``."""
    return f"{session_date.isoformat()}-{parse_wall_time(session_time).strftime('%H%M')}-{instructor_id}"


def _rule_capacity(
    rules: Sequence[SchedulingRule], day_index: int, session_time: str, instructor_id: int
) -> Optional[int]:
    wanted = parse_wall_time(session_time)
    for rule in rules:
        if (
            rule.day_of_week == day_index
            and rule.instructor_id == instructor_id
            and parse_wall_time(rule.time) == wanted
        ):
            return rule.capacity
    return None


def rule_sessions_for_date(product: ProductRead, session_date: date) -> List[IntroClassSession]:
    """Sessions the weekly rules alone would produce on ``session_date``."""
    day_index = weekday_index(session_date)
    return [
        IntroClassSession(
            id=session_id(session_date, rule.time, rule.instructor_id),
            date=session_date,
            time=format_wall_time(rule.time),
            instructor_id=rule.instructor_id,
            capacity=rule.capacity,
        )
        for rule in product.scheduling_rules
        if rule.day_of_week == day_index
    ]


def sessions_for_date(product: ProductRead, session_date: date) -> Tuple[List[IntroClassSession], bool]:
    """
    Resolve one date: override first, then the weekday rules.

    Returns the sessions and whether they came from an override.
    """
    override = product.override_for(session_date)
    if override is None:
        return rule_sessions_for_date(product, session_date), False
    if override.is_cancellation:
        return [], True

    day_index = weekday_index(session_date)
    sessions: List[IntroClassSession] = []
    for entry in override.sessions or []:
        capacity = entry.capacity
        if capacity is None:
            capacity = _rule_capacity(
                product.scheduling_rules, day_index, entry.time, entry.instructor_id
            )
        if capacity is None:
            capacity = settings.default_class_capacity
        sessions.append(
            IntroClassSession(
                id=session_id(session_date, entry.time, entry.instructor_id),
                date=session_date,
                time=format_wall_time(entry.time),
                instructor_id=entry.instructor_id,
                capacity=capacity,
            )
        )
    return sessions, True


def generate_intro_sessions(
    product: ProductRead,
    bookings: Sequence[BookingRead],
    *,
    start: Optional[date] = None,
    now: Optional[datetime] = None,
    limit_days: Optional[int] = None,
    include_full: bool = False,
    include_past: bool = False,
) -> List[EnrichedIntroClassSession]:
    """
    Expand an introductory class into dated sessions with live occupancy.

    Args:
        product: Product carrying scheduling rules and overrides
        bookings: Full booking list; counts are derived from it on every call
        start: First date to generate (defaults to today)
        now: Reference instant for excluding past sessions
        limit_days: Horizon in days (defaults to ``session_generation_limit_days``)
        include_full: Keep sessions whose capacity is exhausted
        include_past: Keep sessions that already started (admin calendar)
    """
    now = now or datetime.now()
    start = start or now.date()
    horizon = limit_days if limit_days is not None else settings.session_generation_limit_days
    index = build_occupancy_index(bookings)

    result: List[EnrichedIntroClassSession] = []
    for session_date in iter_dates(start, horizon):
        sessions, from_override = sessions_for_date(product, session_date)
        seen: Set[str] = set()
        for session in sessions:
            if session.id in seen:
                logger.debug("Skipping repeated session %s for product %s", session.id, product.id)
                continue
            seen.add(session.id)

            if not include_past and slot_datetime(session.date, session.time) < now:
                continue

            paid, total = session_counts(
                index, session.date, parse_wall_time(session.time), session.instructor_id
            )
            counts = OccupancyCounts(paid_bookings_count=paid, total_bookings_count=total)
            if not include_full and is_full(counts, session.capacity):
                continue

            result.append(
                EnrichedIntroClassSession(
                    **session.model_dump(),
                    paid_bookings_count=paid,
                    total_bookings_count=total,
                    is_override=from_override,
                )
            )

    result.sort(key=lambda s: (s.date, parse_wall_time(s.time), s.instructor_id))
    return result


def _as_tuple(session_time: str, instructor_id: int, capacity: int) -> SessionTuple:
    return (parse_wall_time(session_time).strftime("%H:%M"), instructor_id, capacity)


def resolve_override_update(
    product: ProductRead,
    override_date: date,
    sessions: Optional[List[OverrideSession]],
) -> List[SessionOverride]:
    """
    Compute a product's override list after editing one date.

    Any existing override for the date is dropped. The new one is only
    kept when it differs from what the weekly rules generate, compared on
    ``(time, instructor_id, capacity)`` as an unordered collection.
    """
    remaining = [o for o in product.overrides if o.date != override_date]
    if sessions is None:
        remaining.append(SessionOverride(date=override_date, sessions=None))
        return remaining

    day_index = weekday_index(override_date)
    candidate = sorted(
        _as_tuple(
            s.time,
            s.instructor_id,
            s.capacity
            if s.capacity is not None
            else (
                _rule_capacity(product.scheduling_rules, day_index, s.time, s.instructor_id)
                or settings.default_class_capacity
            ),
        )
        for s in sessions
    )
    generated = sorted(
        _as_tuple(s.time, s.instructor_id, s.capacity)
        for s in rule_sessions_for_date(product, override_date)
    )
    if candidate != generated:
        remaining.append(SessionOverride(date=override_date, sessions=list(sessions)))
    else:
        logger.debug(
            "Override for %s matches the weekly rules of product %s; not stored",
            override_date.isoformat(),
            product.id,
        )
    return remaining


# Class packages


def package_slots_for_date(
    session_date: date,
    availability: Availability,
    overrides: ScheduleOverrides,
    class_capacity: ClassCapacity,
) -> Tuple[List[AvailableSlot], int]:
    override = overrides.get(session_date.isoformat())
    if override is not None:
        capacity = override.capacity or class_capacity.max
        return list(override.slots or []), capacity
    return list(availability.get(day_key_for(session_date).value, [])), class_capacity.max


def available_times_for_date(
    session_date: date,
    availability: Availability,
    overrides: ScheduleOverrides,
    class_capacity: ClassCapacity,
    bookings: Sequence[BookingRead],
    *,
    include_full: bool = False,
    now: Optional[datetime] = None,
    occupancy: Optional[Dict[str, OccupancyCounts]] = None,
) -> List[EnrichedAvailableSlot]:
    """
    Class-package slots for one date, enriched with occupancy.

    When ``now`` is given, slots that already started are dropped.
    """
    slots, capacity = package_slots_for_date(session_date, availability, overrides, class_capacity)
    index = occupancy if occupancy is not None else build_occupancy_index(bookings)

    enriched: List[EnrichedAvailableSlot] = []
    for slot in slots:
        if now is not None and slot_datetime(session_date, slot.time) < now:
            continue
        paid, total = session_counts(
            index, session_date, parse_wall_time(slot.time), slot.instructor_id
        )
        counts = OccupancyCounts(paid_bookings_count=paid, total_bookings_count=total)
        if not include_full and is_full(counts, capacity):
            continue
        enriched.append(
            EnrichedAvailableSlot(
                time=slot.time,
                instructor_id=slot.instructor_id,
                paid_bookings_count=paid,
                total_bookings_count=total,
                max_capacity=capacity,
            )
        )
    enriched.sort(key=lambda s: (parse_wall_time(s.time), s.instructor_id))
    return enriched


def generate_package_calendar(
    start: date,
    days: int,
    availability: Availability,
    overrides: ScheduleOverrides,
    class_capacity: ClassCapacity,
    bookings: Sequence[BookingRead],
    *,
    now: Optional[datetime] = None,
) -> List[date]:
    """Dates within ``days`` of ``start`` that still have a bookable slot."""
    index = build_occupancy_index(bookings)
    return [
        session_date
        for session_date in iter_dates(start, days)
        if available_times_for_date(
            session_date,
            availability,
            overrides,
            class_capacity,
            bookings,
            now=now,
            occupancy=index,
        )
    ]
