# backend/alma_studio/services/notification_service.py
"""
Notification Service for the booking backend.

Two channels:
- the admin inbox (``Notification`` rows), written on every admission
- client emails, rendered with Jinja2 and handed to a ``ClientEmailSender``;
  every attempt is logged in ``client_notifications``

Methods flush through the repositories and leave the commit to the
calling service. Delivery failures are logged and recorded as ``Failed``;
they never abort the booking operation that triggered them.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import ClientNotificationStatus, ClientNotificationType, NotificationType
from ..core.exceptions import ServiceException
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingRead
from ..schemas.slot import TimeSlot
from .base import BaseService
from .email_sender import ClientEmailSender, ConsoleEmailSender
from .template_service import TemplateService

logger = logging.getLogger(__name__)


def reminder_key(booking_code: str, slot: TimeSlot) -> str:
    """Per-slot identifier that makes a class reminder idempotent."""
    return f"{booking_code}_{slot.date.isoformat()}_{slot.time}"


class NotificationService(BaseService):
    """Admin inbox entries and client emails for booking lifecycle events."""

    def __init__(
        self,
        db: Session,
        sender: Optional[ClientEmailSender] = None,
        template_service: Optional[TemplateService] = None,
    ):
        super().__init__(db)
        self.sender: ClientEmailSender = sender or ConsoleEmailSender()
        self.template_service = template_service or TemplateService()
        self.notification_repository = RepositoryFactory.create_notification_repository(db)
        self.settings_repository = RepositoryFactory.create_settings_repository(db)

    # Admin inbox

    @BaseService.measure_operation("notify_new_booking")
    def notify_new_booking(self, booking: BookingRead) -> Notification:
        product_name = booking.product.get("name", "")
        return self.notification_repository.add_admin_notification(
            type=NotificationType.NEW_BOOKING,
            target_id=booking.id,
            user_name=booking.user_info.full_name,
            summary=f"{booking.booking_code} · {product_name}",
        )

    # Client emails

    @BaseService.measure_operation("send_pre_booking_confirmation")
    def send_pre_booking_confirmation(self, booking: BookingRead) -> bool:
        """
        Payment instructions sent right after admission.

        Skipped when the automation is disabled or no bank details are set,
        since the email would have nothing to pay into.
        """
        automation = self.settings_repository.get_automation_settings()
        if not automation.pre_booking_confirmation.enabled:
            return False
        bank = self.settings_repository.get_bank_details()
        if bank is None:
            self.logger.info(
                "Skipping pre-booking confirmation for %s: no bank details configured",
                booking.booking_code,
            )
            return False

        context = self._booking_context(booking)
        context["bank"] = bank.model_dump()
        return self._deliver(
            booking,
            ClientNotificationType.PRE_BOOKING_CONFIRMATION,
            template="email/pre_booking_confirmation.html",
            subject=f"Tu reserva {booking.booking_code}",
            context=context,
            log_code=booking.booking_code,
        )

    @BaseService.measure_operation("send_payment_receipt")
    def send_payment_receipt(self, booking: BookingRead) -> bool:
        automation = self.settings_repository.get_automation_settings()
        if not automation.payment_receipt.enabled or booking.payment_details is None:
            return False

        context = self._booking_context(booking)
        context.update(
            amount=booking.payment_details.amount,
            method=booking.payment_details.method.value,
            received_at=booking.payment_details.received_at,
        )
        return self._deliver(
            booking,
            ClientNotificationType.PAYMENT_RECEIPT,
            template="email/payment_receipt.html",
            subject=f"Recibo de pago {booking.booking_code}",
            context=context,
            log_code=booking.booking_code,
        )

    @BaseService.measure_operation("send_class_reminder")
    def send_class_reminder(self, booking: BookingRead, slot: TimeSlot) -> bool:
        context = self._booking_context(booking)
        context.update(slot_date=slot.date, slot_time=slot.time)
        return self._deliver(
            booking,
            ClientNotificationType.CLASS_REMINDER,
            template="email/class_reminder.html",
            subject=f"Recordatorio de clase {slot.date.isoformat()} {slot.time}",
            context=context,
            log_code=reminder_key(booking.booking_code, slot),
        )

    # Helpers

    def _booking_context(self, booking: BookingRead) -> Dict[str, Any]:
        return {
            "customer_name": booking.user_info.full_name,
            "booking_code": booking.booking_code,
            "product_name": booking.product.get("name", ""),
            "price": booking.price,
            "slots": [slot.model_dump() for slot in booking.sorted_slots()],
        }

    def _deliver(
        self,
        booking: BookingRead,
        notification_type: ClientNotificationType,
        *,
        template: str,
        subject: str,
        context: Dict[str, Any],
        log_code: str,
    ) -> bool:
        to_email = str(booking.user_info.email)
        try:
            body = self.template_service.render_template(template, context)
            delivered = bool(
                self.sender.send_email(
                    to_email, subject, body, tags=[notification_type.value.lower()]
                )
            )
        except ServiceException:
            raise
        except Exception as e:
            self.logger.error(
                f"Failed to send {notification_type.value} for {booking.booking_code}: {str(e)}"
            )
            delivered = False

        status = ClientNotificationStatus.SENT if delivered else ClientNotificationStatus.FAILED
        self.notification_repository.add_client_notification(
            type=notification_type,
            client_name=booking.user_info.full_name,
            client_email=to_email,
            status=status,
            booking_code=log_code,
            scheduled_at=datetime.now(),
        )
        if not delivered:
            self.logger.warning(
                "Client email not delivered",
                extra={"booking_code": booking.booking_code, "type": notification_type.value},
            )
        return delivered
