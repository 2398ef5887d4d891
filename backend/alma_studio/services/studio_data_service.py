# backend/alma_studio/services/studio_data_service.py
"""
Studio data service: the single entry point the HTTP layer talks to.

Reads return typed values. Writes commit per call and always return a
``MutationResult`` / ``AddBookingResult``; domain errors become
``success=False`` with the error code, and unexpected failures are
logged and reported with a generic message.
"""

from datetime import date, datetime
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import AttendanceStatus
from ..core.exceptions import DomainException
from ..core.session_lock import SessionLockManager
from ..models.notification import ClientNotification, Notification
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import (
    AddBookingResult,
    BookingCreate,
    BookingRead,
    BookingUpdate,
    Customer,
    MutationResult,
    PaymentDetailsInput,
    SubscriptionInfo,
    UserInfo,
)
from ..schemas.product import InstructorRead, ProductRead
from ..schemas.session import CapacityStatus, EnrichedAvailableSlot, EnrichedIntroClassSession
from ..schemas.settings import (
    AutomationSettings,
    BankDetails,
    CapacityMessageSettings,
    ClassCapacity,
)
from ..schemas.slot import Availability, OverrideSession, ScheduleOverrides, TimeSlot
from .base import BaseService
from .booking_admission import BookingAdmissionService
from .capacity import classify
from .email_sender import ClientEmailSender, ConsoleEmailSender
from .notification_service import NotificationService
from .package_status import build_customers, open_studio_subscriptions
from .product_service import ProductService
from .recurrence import available_times_for_date, generate_intro_sessions, generate_package_calendar
from .reminder_service import ReminderService
from .schedule_mutations import ScheduleMutationService

logger = logging.getLogger(__name__)


GENERIC_FAILURE = "No se pudo completar la operación"


class StudioDataService(BaseService):
    """Facade over admission, mutations, catalog and settings."""

    def __init__(
        self,
        db: Session,
        sender: Optional[ClientEmailSender] = None,
        lock_manager: Optional[SessionLockManager] = None,
    ):
        super().__init__(db)
        self.sender = sender or ConsoleEmailSender()
        self.lock_manager = lock_manager or SessionLockManager()
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.settings_repository = RepositoryFactory.create_settings_repository(db)
        self.notification_repository = RepositoryFactory.create_notification_repository(db)
        self.notifications = NotificationService(db, sender=self.sender)
        self.admission = BookingAdmissionService(
            db, lock_manager=self.lock_manager, notification_service=self.notifications
        )
        self.mutations = ScheduleMutationService(
            db, lock_manager=self.lock_manager, notification_service=self.notifications
        )
        self.products = ProductService(db)
        self.reminders = ReminderService(db, notification_service=self.notifications)

    # Reads

    def get_bookings(self) -> List[BookingRead]:
        return self.admission.load_bookings()

    def get_booking_by_code(self, booking_code: str) -> Optional[BookingRead]:
        row = self.booking_repository.get_by_code(booking_code)
        return BookingRead.model_validate(row) if row is not None else None

    def get_products(self) -> List[ProductRead]:
        return self.products.list_products()

    def get_instructors(self) -> List[InstructorRead]:
        return self.products.list_instructors()

    def get_availability(self) -> Availability:
        return self.settings_repository.get_availability()

    def get_schedule_overrides(self) -> ScheduleOverrides:
        return self.settings_repository.get_schedule_overrides()

    def get_class_capacity(self) -> ClassCapacity:
        return self.settings_repository.get_class_capacity()

    def get_capacity_message_settings(self) -> CapacityMessageSettings:
        return self.settings_repository.get_capacity_messages()

    def get_automation_settings(self) -> AutomationSettings:
        return self.settings_repository.get_automation_settings()

    def get_bank_details(self) -> Optional[BankDetails]:
        return self.settings_repository.get_bank_details()

    def get_customers(self, now: Optional[datetime] = None) -> List[Customer]:
        return build_customers(self.get_bookings(), now)

    def get_open_studio_subscriptions(self, now: Optional[datetime] = None) -> List[SubscriptionInfo]:
        return open_studio_subscriptions(self.get_bookings(), now)

    def get_notifications(self) -> List[Notification]:
        return self.notification_repository.list_admin_notifications()

    def get_client_notifications(self) -> List[ClientNotification]:
        return self.notification_repository.list_client_notifications()

    # Schedules

    def generate_intro_sessions(
        self,
        product_id: int,
        *,
        include_full: bool = False,
        include_past: bool = False,
        limit_days: Optional[int] = None,
        start: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> List[EnrichedIntroClassSession]:
        return generate_intro_sessions(
            self.products.get_product(product_id),
            self.get_bookings(),
            start=start,
            now=now,
            limit_days=limit_days,
            include_full=include_full,
            include_past=include_past,
        )

    def available_times_for_date(
        self,
        session_date: date,
        *,
        include_full: bool = False,
        now: Optional[datetime] = None,
    ) -> List[EnrichedAvailableSlot]:
        return available_times_for_date(
            session_date,
            self.get_availability(),
            self.get_schedule_overrides(),
            self.get_class_capacity(),
            self.get_bookings(),
            include_full=include_full,
            now=now,
        )

    def package_calendar(
        self, start: date, days: int, now: Optional[datetime] = None
    ) -> List[date]:
        return generate_package_calendar(
            start,
            days,
            self.get_availability(),
            self.get_schedule_overrides(),
            self.get_class_capacity(),
            self.get_bookings(),
            now=now,
        )

    def capacity_status(self, count: int, max_capacity: int) -> CapacityStatus:
        return classify(count, max_capacity, self.get_capacity_message_settings().thresholds)

    # Writes

    def _failure(self, operation: str, exc: Exception) -> MutationResult:
        if isinstance(exc, DomainException):
            self.logger.warning(f"{operation} rejected: {exc.code} {exc.message}")
            return MutationResult(success=False, message=exc.message, code=exc.code)
        self.logger.error(f"{operation} failed: {str(exc)}", exc_info=True)
        return MutationResult(success=False, message=GENERIC_FAILURE, code="INTERNAL_ERROR")

    def _mutate(
        self,
        operation: str,
        func: Callable[[], Optional[BookingRead]],
        success_message: str,
    ) -> MutationResult:
        try:
            booking = func()
        except Exception as exc:
            return self._failure(operation, exc)
        if booking is None:
            return MutationResult(success=True, message="Booking not found", code="NOT_FOUND")
        return MutationResult(success=True, message=success_message, booking=booking)

    def add_booking(self, draft: BookingCreate, now: Optional[datetime] = None) -> AddBookingResult:
        try:
            booking = self.admission.submit_booking(draft, now=now)
        except Exception as exc:
            failure = self._failure("add_booking", exc)
            return AddBookingResult(success=False, message=failure.message, code=failure.code)
        return AddBookingResult(success=True, message="Booking created", booking=booking)

    def update_booking(self, patch: BookingUpdate) -> MutationResult:
        return self._mutate("update_booking", lambda: self.mutations.update_booking(patch), "Booking updated")

    def remove_booking_slot(self, booking_id: str, slot: TimeSlot) -> MutationResult:
        return self._mutate(
            "remove_booking_slot",
            lambda: self.mutations.remove_slot(booking_id, slot),
            "Slot removed",
        )

    def reschedule_booking_slot(
        self, booking_id: str, old_slot: TimeSlot, new_slot: TimeSlot
    ) -> MutationResult:
        return self._mutate(
            "reschedule_booking_slot",
            lambda: self.mutations.reschedule_slot(booking_id, old_slot, new_slot),
            "Slot rescheduled",
        )

    def update_attendance_status(
        self, booking_id: str, slot: TimeSlot, status: AttendanceStatus
    ) -> MutationResult:
        return self._mutate(
            "update_attendance_status",
            lambda: self.mutations.update_attendance(booking_id, slot, status),
            "Attendance updated",
        )

    def mark_booking_as_paid(
        self, booking_id: str, details: PaymentDetailsInput, now: Optional[datetime] = None
    ) -> MutationResult:
        return self._mutate(
            "mark_booking_as_paid",
            lambda: self.mutations.mark_paid(booking_id, details, now=now),
            "Booking marked as paid",
        )

    def mark_booking_as_unpaid(self, booking_id: str) -> MutationResult:
        return self._mutate(
            "mark_booking_as_unpaid",
            lambda: self.mutations.mark_unpaid(booking_id),
            "Booking marked as unpaid",
        )

    def delete_booking(self, booking_id: str) -> MutationResult:
        try:
            deleted = self.mutations.delete_booking(booking_id)
        except Exception as exc:
            return self._failure("delete_booking", exc)
        if not deleted:
            return MutationResult(success=True, message="Booking not found", code="NOT_FOUND")
        return MutationResult(success=True, message="Booking deleted")

    def delete_bookings_in_date_range(self, start_date: date, end_date: date) -> MutationResult:
        try:
            counts = self.mutations.delete_bookings_in_date_range(start_date, end_date)
        except Exception as exc:
            return self._failure("delete_bookings_in_date_range", exc)
        return MutationResult(
            success=True,
            message=f"{counts['deleted']} bookings deleted, {counts['updated']} updated",
        )

    def update_customer(self, email: str, user_info: UserInfo) -> MutationResult:
        try:
            count = self.mutations.update_customer(email, user_info)
        except Exception as exc:
            return self._failure("update_customer", exc)
        return MutationResult(success=True, message=f"{count} bookings updated")

    def save_intro_class_override(
        self, product_id: int, override_date: date, sessions: Optional[List[OverrideSession]]
    ) -> MutationResult:
        try:
            self.products.save_overrides(product_id, override_date, sessions)
        except Exception as exc:
            return self._failure("save_intro_class_override", exc)
        return MutationResult(success=True, message="Override saved")

    def dispatch_due_reminders(self, now: Optional[datetime] = None) -> int:
        try:
            return self.reminders.dispatch_due_reminders(now)
        except Exception as exc:
            self._failure("dispatch_due_reminders", exc)
            return 0
