# backend/alma_studio/services/booking_admission.py
"""
Booking admission: validate a slot selection and commit it as a booking.

Admission order for slot-based products (class packages and
introductory classes):

1. The request must not repeat a date/time (``DUPLICATE_SLOT``).
2. The customer must not already hold any requested date/time in another
   booking (``DUPLICATE_BOOKING``).
3. With ``enforce_capacity_on_admission`` the requested sessions, and the
   customer's requested date/times, are locked in sorted key order and
   live occupancy is recounted from the booking table; a full session
   fails with ``CAPACITY_EXCEEDED``.
4. The booking is inserted unpaid with a fresh booking code and an admin
   notification, and committed before the locks are released.

Client emails are sent after the commit so a delivery problem never
undoes an admitted booking.
"""

from contextlib import nullcontext
from datetime import datetime
import logging
from typing import Any, ContextManager, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import SLOT_PRODUCT_TYPES, ProductType
from ..core.exceptions import (
    CapacityExceededException,
    DomainException,
    DuplicateBookingException,
    DuplicateSlotException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..core.session_lock import SessionLockManager
from ..core.time_utils import parse_wall_time
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, BookingRead
from ..schemas.product import ProductRead
from ..schemas.slot import TimeSlot
from ..utils.booking_code import generate_booking_code
from .base import BaseService
from .capacity import build_occupancy_index, occupied_seats
from .email_sender import ClientEmailSender
from .notification_service import NotificationService
from .recurrence import package_slots_for_date, sessions_for_date

logger = logging.getLogger(__name__)


def ensure_unique_slots(slots: Sequence[TimeSlot]) -> None:
    """A booking may hold each date/time at most once."""
    seen = set()
    for slot in slots:
        if slot.date_time_key in seen:
            raise DuplicateSlotException(slot.date.isoformat(), slot.time)
        seen.add(slot.date_time_key)


def customer_slot_key(email: str, slot: TimeSlot) -> str:
    """Lock key for one customer at one date/time, whatever the instructor."""
    when = f"{slot.date.isoformat()}|{slot.time_value.strftime('%H:%M')}"
    return f"customer|{email.strip().lower()}|{when}"


def admission_lock_keys(email: str, slots: Sequence[TimeSlot]) -> List[str]:
    """Session keys for capacity plus customer keys for the duplicate check."""
    keys = [slot.session_key for slot in slots]
    keys.extend(customer_slot_key(email, slot) for slot in slots)
    return keys


def find_customer_conflict(
    existing: Iterable[BookingRead],
    requested: Sequence[TimeSlot],
    exclude_booking_id: Optional[str] = None,
) -> Optional[TimeSlot]:
    """First requested slot whose date/time the customer already holds."""
    held = set()
    for booking in existing:
        if booking.id == exclude_booking_id:
            continue
        held.update(slot.date_time_key for slot in booking.slots)
    for slot in requested:
        if slot.date_time_key in held:
            return slot
    return None


class BookingAdmissionService(BaseService):
    """Admission engine for new bookings and the capacity checks shared with reschedule."""

    def __init__(
        self,
        db: Session,
        lock_manager: Optional[SessionLockManager] = None,
        notification_service: Optional[NotificationService] = None,
        sender: Optional[ClientEmailSender] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.product_repository = RepositoryFactory.create_product_repository(db)
        self.settings_repository = RepositoryFactory.create_settings_repository(db)
        self.lock_manager = lock_manager or SessionLockManager()
        self.notification_service = notification_service or NotificationService(db, sender=sender)

    # Public API

    @BaseService.measure_operation("submit_booking")
    def submit_booking(self, request: BookingCreate, now: Optional[datetime] = None) -> BookingRead:
        """
        Admit a booking request.

        Raises:
            ValidationException: malformed selection for the product
            DuplicateSlotException: the request repeats a date/time
            DuplicateBookingException: the customer already holds a requested date/time
            CapacityExceededException: a requested session is full
            SessionBusyException: a session lock could not be obtained
            NotFoundException: unknown product and no snapshot supplied
            ServiceException: the booking could not be persisted
        """
        product_type = request.product_type
        try:
            snapshot, product = self._resolve_product(request)
            slots = list(request.slots)
            self._validate_selection(request, product, slots)

            if product_type in SLOT_PRODUCT_TYPES:
                keys = admission_lock_keys(str(request.user_info.email), slots)
                with self._session_guard(keys):
                    self._check_customer_conflicts(str(request.user_info.email), slots)
                    if settings.enforce_capacity_on_admission:
                        self.assert_capacity(product_type, product, slots)
                    booking = self._insert(request, snapshot, slots, now)
            else:
                booking = self._insert(request, snapshot, slots, now)
        except DomainException as exc:
            prometheus_metrics.record_admission(product_type.value, exc.code.lower())
            self.logger.warning(
                "Booking admission rejected",
                extra={
                    "code": exc.code,
                    "product_id": request.product_id,
                    "email": str(request.user_info.email),
                },
            )
            raise

        prometheus_metrics.record_admission(product_type.value, "admitted")
        self.logger.info(
            "Booking admitted",
            extra={
                "booking_code": booking.booking_code,
                "product_id": booking.product_id,
                "slots": len(booking.slots),
            },
        )
        self._send_confirmation(booking)
        return booking

    def assert_capacity(
        self,
        product_type: ProductType,
        product: Optional[ProductRead],
        slots: Sequence[TimeSlot],
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """
        Recount occupancy from every booking and reject a full session.

        ``exclude_booking_id`` leaves one booking out of the count, used when
        that booking is itself being rescheduled.
        """
        bookings = [b for b in self.load_bookings() if b.id != exclude_booking_id]
        index = build_occupancy_index(bookings)
        for slot in slots:
            capacity = self.capacity_for_slot(product_type, product, slot)
            counts = index.get(slot.session_key)
            occupied = occupied_seats(counts) if counts else 0
            if occupied >= capacity:
                raise CapacityExceededException(slot.session_key, occupied, capacity)

    def capacity_for_slot(
        self, product_type: ProductType, product: Optional[ProductRead], slot: TimeSlot
    ) -> int:
        """Capacity of the scheduled session a slot refers to."""
        if product_type == ProductType.INTRODUCTORY_CLASS and product is not None:
            sessions, _ = sessions_for_date(product, slot.date)
            for session in sessions:
                if (
                    session.instructor_id == slot.instructor_id
                    and parse_wall_time(session.time) == slot.time_value
                ):
                    return session.capacity
        elif product_type == ProductType.CLASS_PACKAGE:
            class_capacity = self.settings_repository.get_class_capacity()
            available, capacity = package_slots_for_date(
                slot.date,
                self.settings_repository.get_availability(),
                self.settings_repository.get_schedule_overrides(),
                class_capacity,
            )
            if any(
                a.instructor_id == slot.instructor_id
                and parse_wall_time(a.time) == slot.time_value
                for a in available
            ):
                return capacity
            return class_capacity.max

        self.logger.warning(
            "Slot %s is not on the schedule; using default capacity", slot.session_key
        )
        return settings.default_class_capacity

    def load_bookings(self) -> List[BookingRead]:
        return [BookingRead.model_validate(row) for row in self.booking_repository.list_all()]

    def load_product(
        self, product_id: int, fallback: Optional[Dict[str, Any]] = None
    ) -> Optional[ProductRead]:
        row = self.product_repository.get_by_id(product_id)
        if row is not None:
            return ProductRead.model_validate(row)
        if fallback:
            try:
                return ProductRead.model_validate(fallback)
            except ValueError:
                self.logger.debug("Product snapshot %s is not a full product", product_id)
        return None

    # Steps

    def _resolve_product(self, request: BookingCreate):
        product = self.load_product(request.product_id)
        if product is not None:
            if product.type != request.product_type:
                raise ValidationException(
                    f"Product {request.product_id} is a {product.type.value}, "
                    f"not a {request.product_type.value}",
                    code="PRODUCT_TYPE_MISMATCH",
                )
            return product.snapshot(), product
        if request.product:
            return dict(request.product), self.load_product(request.product_id, request.product)
        raise NotFoundException(
            f"Product {request.product_id} not found", code="PRODUCT_NOT_FOUND"
        )

    def _validate_selection(
        self, request: BookingCreate, product: Optional[ProductRead], slots: List[TimeSlot]
    ) -> None:
        if request.product_type in SLOT_PRODUCT_TYPES and not slots:
            raise ValidationException("At least one slot is required", code="SLOTS_REQUIRED")
        ensure_unique_slots(slots)
        if (
            request.product_type == ProductType.CLASS_PACKAGE
            and product is not None
            and product.classes
            and len(slots) > product.classes
        ):
            raise ValidationException(
                f"{product.name} includes {product.classes} classes, {len(slots)} selected",
                code="TOO_MANY_SLOTS",
            )

    def _check_customer_conflicts(self, email: str, slots: Sequence[TimeSlot]) -> None:
        existing = [
            BookingRead.model_validate(row) for row in self.booking_repository.list_by_email(email)
        ]
        conflict = find_customer_conflict(existing, slots)
        if conflict is not None:
            raise DuplicateBookingException(email, conflict.date.isoformat(), conflict.time)

    def _insert(
        self,
        request: BookingCreate,
        snapshot: Dict[str, Any],
        slots: List[TimeSlot],
        now: Optional[datetime],
    ) -> BookingRead:
        with self.transaction():
            row = self.booking_repository.create_booking(
                product_id=request.product_id,
                product_type=request.product_type.value,
                slots=[slot.model_dump(mode="json") for slot in slots],
                user_info=request.user_info.model_dump(mode="json"),
                price=request.price,
                booking_mode=request.booking_mode.value if request.booking_mode else None,
                product=snapshot,
                booking_code=generate_booking_code(),
                billing_details=(
                    request.billing_details.model_dump(mode="json")
                    if request.billing_details
                    else None
                ),
                created_at=now or datetime.now(),
            )
            booking = BookingRead.model_validate(row)
            self.notification_service.notify_new_booking(booking)
        return booking

    def _session_guard(self, keys: Sequence[str]) -> ContextManager[Any]:
        if not settings.enforce_capacity_on_admission:
            return nullcontext()
        return self.lock_manager.hold(keys)

    def _send_confirmation(self, booking: BookingRead) -> None:
        try:
            with self.transaction():
                self.notification_service.send_pre_booking_confirmation(booking)
        except ServiceException as e:
            self.logger.error(
                f"Pre-booking confirmation failed for {booking.booking_code}: {e.message}"
            )
