# backend/alma_studio/services/package_status.py
"""
Package and subscription lifecycle derived from bookings.

A class package is valid for ``package_validity_days`` after its first
class, regardless of when it was paid. An open-studio subscription
starts when payment is received and lasts ``durationDays`` from the
product snapshot.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.config import settings
from ..core.enums import ProductType, SubscriptionStatus
from ..core.time_utils import slot_datetime
from ..schemas.booking import BookingRead, Customer, RemainingClassesInfo, SubscriptionInfo


def first_slot_datetime(booking: BookingRead) -> Optional[datetime]:
    starts = [slot_datetime(slot.date, slot.time) for slot in booking.slots]
    return min(starts) if starts else None


def package_expiry(booking: BookingRead, validity_days: Optional[int] = None) -> Optional[datetime]:
    """Earliest slot start plus the validity window; ``None`` without slots."""
    first = first_slot_datetime(booking)
    if first is None:
        return None
    days = validity_days if validity_days is not None else settings.package_validity_days
    return first + timedelta(days=days)


def is_package_expired(booking: BookingRead, now: Optional[datetime] = None) -> bool:
    expiry = package_expiry(booking)
    if expiry is None:
        return False
    return (now or datetime.now()) >= expiry


def remaining_classes_info(
    bookings: Iterable[BookingRead], now: Optional[datetime] = None
) -> Optional[RemainingClassesInfo]:
    """
    Progress of a customer's most relevant class package.

    Among unexpired class packages with at least one slot, the one that
    expires soonest is reported. Classes whose start time has passed count
    as completed.
    """
    now = now or datetime.now()
    candidates = []
    for booking in bookings:
        if booking.product_type != ProductType.CLASS_PACKAGE or not booking.slots:
            continue
        expiry = package_expiry(booking)
        if expiry is not None and now < expiry:
            candidates.append((expiry, booking))
    if not candidates:
        return None

    expiry, booking = min(candidates, key=lambda item: item[0])
    classes = booking.product.get("classes") or len(booking.slots)
    completed = sum(1 for slot in booking.slots if slot_datetime(slot.date, slot.time) < now)
    remaining = int(classes) - completed
    return RemainingClassesInfo(
        booking_id=booking.id,
        remaining=remaining,
        status="active" if remaining > 0 else "completed",
        expires_at=expiry,
    )


def _duration_days(booking: BookingRead) -> Optional[int]:
    details = booking.product.get("details") or {}
    value = details.get("duration_days", details.get("durationDays"))
    return int(value) if value is not None else None


def subscription_info(booking: BookingRead, now: Optional[datetime] = None) -> SubscriptionInfo:
    """Status of an open-studio subscription booking."""
    now = now or datetime.now()
    if not booking.is_paid or booking.payment_details is None:
        return SubscriptionInfo(booking_id=booking.id, status=SubscriptionStatus.PENDING_PAYMENT)

    start = booking.payment_details.received_at
    duration = _duration_days(booking)
    if duration is None:
        return SubscriptionInfo(
            booking_id=booking.id, status=SubscriptionStatus.EXPIRED, start_date=start
        )
    expiry = start + timedelta(days=duration)
    status = SubscriptionStatus.ACTIVE if now < expiry else SubscriptionStatus.EXPIRED
    return SubscriptionInfo(
        booking_id=booking.id, status=status, start_date=start, expiry_date=expiry
    )


_SUBSCRIPTION_ORDER = {
    SubscriptionStatus.ACTIVE: 1,
    SubscriptionStatus.PENDING_PAYMENT: 2,
    SubscriptionStatus.EXPIRED: 3,
}


def open_studio_subscriptions(
    bookings: Sequence[BookingRead], now: Optional[datetime] = None
) -> List[SubscriptionInfo]:
    """Active first (soonest expiry first), then pending, then expired; newest first within those."""
    by_id = {b.id: b for b in bookings}
    infos = [
        subscription_info(b, now)
        for b in bookings
        if b.product_type == ProductType.OPEN_STUDIO_SUBSCRIPTION
    ]

    def sort_key(info: SubscriptionInfo):
        if info.status == SubscriptionStatus.ACTIVE:
            secondary = info.expiry_date.timestamp() if info.expiry_date else 0.0
        else:
            secondary = -by_id[info.booking_id].created_at.timestamp()
        return (_SUBSCRIPTION_ORDER[info.status], secondary)

    return sorted(infos, key=sort_key)


def build_customers(
    bookings: Iterable[BookingRead], now: Optional[datetime] = None
) -> List[Customer]:
    """
    Aggregate bookings per customer email, most recent customer first.

    ``user_info`` is taken from the customer's latest booking and
    ``total_spent`` only counts paid bookings.
    """
    grouped: Dict[str, List[BookingRead]] = OrderedDict()
    for booking in bookings:
        grouped.setdefault(booking.customer_email, []).append(booking)

    customers: List[Customer] = []
    for email, items in grouped.items():
        items = sorted(items, key=lambda b: b.created_at)
        latest = items[-1]
        customers.append(
            Customer(
                email=email,
                user_info=latest.user_info,
                bookings=items,
                total_bookings=len(items),
                total_spent=sum((b.price for b in items if b.is_paid), Decimal("0")),
                last_booking_date=latest.created_at,
                remaining_classes_info=remaining_classes_info(items, now),
            )
        )
    customers.sort(key=lambda c: c.last_booking_date, reverse=True)
    return customers
