# backend/alma_studio/services/schedule_mutations.py
"""
Admin mutations of committed bookings.

Every mutation loads the booking, builds the new column value and writes
it back in one update inside one transaction. Mutating a booking id that
no longer exists is a no-op: the methods return ``None``/``False`` and
log at info level rather than raising.
"""

from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AttendanceStatus, ProductType, SLOT_PRODUCT_TYPES
from ..core.exceptions import (
    DuplicateBookingException,
    DuplicateSlotException,
    ServiceException,
    SlotNotInBookingException,
    ValidationException,
)
from ..core.session_lock import SessionLockManager
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingRead, BookingUpdate, PaymentDetailsInput, UserInfo
from ..schemas.slot import TimeSlot
from .base import BaseService
from .booking_admission import (
    BookingAdmissionService,
    admission_lock_keys,
    find_customer_conflict,
)
from .email_sender import ClientEmailSender
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


def split_slots_by_range(
    slots: List[TimeSlot], start_date: date, end_date: date
) -> Tuple[List[TimeSlot], List[TimeSlot]]:
    """Partition slots into (inside, outside) the inclusive date range."""
    inside = [s for s in slots if start_date <= s.date <= end_date]
    outside = [s for s in slots if not (start_date <= s.date <= end_date)]
    return inside, outside


def _dump_slots(slots: List[TimeSlot]) -> List[Dict[str, Any]]:
    return [slot.model_dump(mode="json") for slot in slots]


class ScheduleMutationService(BaseService):
    """Slot removal, reschedule, range deletion, attendance and payment marking."""

    def __init__(
        self,
        db: Session,
        lock_manager: Optional[SessionLockManager] = None,
        notification_service: Optional[NotificationService] = None,
        sender: Optional[ClientEmailSender] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.notification_service = notification_service or NotificationService(db, sender=sender)
        self.admission = BookingAdmissionService(
            db, lock_manager=lock_manager, notification_service=self.notification_service
        )

    def _load(self, booking_id: str) -> Optional[BookingRead]:
        row = self.booking_repository.get_by_id(booking_id)
        if row is None:
            self.logger.info("Booking %s not found; nothing to change", booking_id)
            return None
        return BookingRead.model_validate(row)

    # Slots

    @BaseService.measure_operation("remove_slot")
    def remove_slot(self, booking_id: str, slot: TimeSlot) -> Optional[BookingRead]:
        """
        Drop the slot matching ``slot``'s date and time.

        A booking left without slots is kept; only range deletion removes
        emptied bookings.
        """
        with self.transaction():
            booking = self._load(booking_id)
            if booking is None:
                return None
            remaining = [s for s in booking.slots if not s.same_date_time(slot)]
            row = self.booking_repository.replace_slots(booking_id, _dump_slots(remaining))
            return BookingRead.model_validate(row)

    @BaseService.measure_operation("reschedule_slot")
    def reschedule_slot(
        self, booking_id: str, old_slot: TimeSlot, new_slot: TimeSlot
    ) -> Optional[BookingRead]:
        """
        Swap ``old_slot`` for ``new_slot`` in a single write.

        Raises:
            DuplicateSlotException: the booking already holds the new date/time
            DuplicateBookingException: the customer holds the new date/time elsewhere
            CapacityExceededException: the new session is full
            SessionBusyException: the new session's lock could not be obtained
            SlotNotInBookingException: the booking does not hold ``old_slot``
        """
        booking = self._load(booking_id)
        if booking is None:
            return None

        remaining = [s for s in booking.slots if not s.same_date_time(old_slot)]
        if len(remaining) == len(booking.slots):
            raise SlotNotInBookingException(booking_id, old_slot.date.isoformat(), old_slot.time)
        if any(s.same_date_time(new_slot) for s in remaining):
            raise DuplicateSlotException(new_slot.date.isoformat(), new_slot.time)

        enforce = (
            settings.enforce_capacity_on_admission and booking.product_type in SLOT_PRODUCT_TYPES
        )
        if not enforce:
            return self._write_rescheduled(booking_id, remaining, new_slot)

        with self.admission.lock_manager.hold(
            admission_lock_keys(booking.customer_email, [new_slot])
        ):
            others = [
                BookingRead.model_validate(row)
                for row in self.booking_repository.list_by_email(booking.customer_email)
            ]
            conflict = find_customer_conflict(others, [new_slot], exclude_booking_id=booking_id)
            if conflict is not None:
                raise DuplicateBookingException(
                    booking.customer_email, conflict.date.isoformat(), conflict.time
                )
            product = self.admission.load_product(booking.product_id, booking.product)
            self.admission.assert_capacity(
                ProductType(booking.product_type), product, [new_slot], exclude_booking_id=booking_id
            )
            return self._write_rescheduled(booking_id, remaining, new_slot)

    def _write_rescheduled(
        self, booking_id: str, remaining: List[TimeSlot], new_slot: TimeSlot
    ) -> Optional[BookingRead]:
        with self.transaction():
            row = self.booking_repository.replace_slots(
                booking_id, _dump_slots(remaining + [new_slot])
            )
            if row is None:
                return None
            self.log_operation("reschedule_slot", booking_id=booking_id, new_slot=new_slot.session_key)
            return BookingRead.model_validate(row)

    @BaseService.measure_operation("delete_bookings_in_date_range")
    def delete_bookings_in_date_range(self, start_date: date, end_date: date) -> Dict[str, int]:
        """
        Remove every slot inside ``[start_date, end_date]`` across all bookings.

        Bookings left without slots are deleted, the rest keep their
        outside slots. Bookings that never had slots are untouched.
        """
        if end_date < start_date:
            raise ValidationException(
                "end_date must not be before start_date", code="INVALID_DATE_RANGE"
            )
        deleted_ids: List[str] = []
        updated = 0
        with self.transaction():
            for row in self.booking_repository.list_all():
                booking = BookingRead.model_validate(row)
                inside, outside = split_slots_by_range(booking.slots, start_date, end_date)
                if not inside:
                    continue
                if outside:
                    self.booking_repository.replace_slots(booking.id, _dump_slots(outside))
                    updated += 1
                else:
                    deleted_ids.append(booking.id)
            deleted = self.booking_repository.delete_many(deleted_ids)

        self.logger.info(
            "Range deletion %s..%s: %d deleted, %d updated",
            start_date.isoformat(),
            end_date.isoformat(),
            deleted,
            updated,
        )
        return {"deleted": deleted, "updated": updated}

    # Attendance and payment

    @BaseService.measure_operation("update_attendance")
    def update_attendance(
        self, booking_id: str, slot: TimeSlot, status: AttendanceStatus
    ) -> Optional[BookingRead]:
        """
        Merge one ``"{date}_{time}"`` entry into the attendance map.

        The key is built from the booking's own slot, so either time
        spelling of a session updates the same entry.

        Raises:
            SlotNotInBookingException: the booking does not hold ``slot``
        """
        with self.transaction():
            booking = self._load(booking_id)
            if booking is None:
                return None
            stored = next((s for s in booking.slots if s.same_date_time(slot)), None)
            if stored is None:
                raise SlotNotInBookingException(booking_id, slot.date.isoformat(), slot.time)
            attendance = {key: value.value for key, value in booking.attendance.items()}
            attendance[stored.identifier] = status.value
            row = self.booking_repository.set_attendance(booking_id, attendance)
            return BookingRead.model_validate(row)

    @BaseService.measure_operation("mark_paid")
    def mark_paid(
        self, booking_id: str, details: PaymentDetailsInput, now: Optional[datetime] = None
    ) -> Optional[BookingRead]:
        """Stamp the payment with the commit time and send the receipt if enabled."""
        with self.transaction():
            if self._load(booking_id) is None:
                return None
            payment = details.model_dump(mode="json")
            payment["received_at"] = (now or datetime.now()).isoformat()
            row = self.booking_repository.set_payment(booking_id, True, payment)
            booking = BookingRead.model_validate(row)

        try:
            with self.transaction():
                self.notification_service.send_payment_receipt(booking)
        except ServiceException as e:
            self.logger.error(f"Payment receipt failed for {booking.booking_code}: {e.message}")
        return booking

    @BaseService.measure_operation("mark_unpaid")
    def mark_unpaid(self, booking_id: str) -> Optional[BookingRead]:
        with self.transaction():
            if self._load(booking_id) is None:
                return None
            row = self.booking_repository.set_payment(booking_id, False, None)
            return BookingRead.model_validate(row)

    # Booking and customer edits

    @BaseService.measure_operation("update_booking")
    def update_booking(self, update: BookingUpdate) -> Optional[BookingRead]:
        with self.transaction():
            if self._load(update.id) is None:
                return None
            row = self.booking_repository.update_customer_fields(
                update.id, update.user_info.model_dump(mode="json"), price=update.price
            )
            return BookingRead.model_validate(row)

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, booking_id: str) -> bool:
        with self.transaction():
            deleted = self.booking_repository.delete(booking_id)
        if not deleted:
            self.logger.info("Booking %s not found; nothing to delete", booking_id)
        return deleted

    @BaseService.measure_operation("update_customer")
    def update_customer(self, email: str, user_info: UserInfo) -> int:
        """Rewrite the customer details on every booking of ``email``."""
        with self.transaction():
            rows = self.booking_repository.list_by_email(email)
            for row in rows:
                self.booking_repository.update_customer_fields(
                    row.id, user_info.model_dump(mode="json")
                )
        return len(rows)
