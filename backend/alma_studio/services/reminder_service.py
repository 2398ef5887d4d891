"""Class reminder dispatch."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.time_utils import slot_datetime
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingRead
from .base import BaseService
from .email_sender import ClientEmailSender
from .notification_service import NotificationService, reminder_key


class ReminderService(BaseService):
    """
    Sends one reminder per paid slot once ``now`` falls inside
    ``[slot - lead, slot)``. Slots already reminded are skipped, keyed by
    ``"{booking_code}_{date}_{time}"``; failed sends are retried on the
    next run.
    """

    def __init__(
        self,
        db: Session,
        sender: Optional[ClientEmailSender] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.notification_repository = RepositoryFactory.create_notification_repository(db)
        self.settings_repository = RepositoryFactory.create_settings_repository(db)
        self.notification_service = notification_service or NotificationService(db, sender=sender)

    @BaseService.measure_operation("dispatch_due_reminders")
    def dispatch_due_reminders(self, now: Optional[datetime] = None) -> int:
        """Returns the number of reminders delivered."""
        automation = self.settings_repository.get_automation_settings()
        if not automation.class_reminder.enabled:
            return 0

        now = now or datetime.now()
        lead = timedelta(hours=automation.class_reminder.lead_hours)
        sent = 0

        with self.transaction():
            already_sent = self.notification_repository.sent_reminder_keys()
            for row in self.booking_repository.list_paid():
                booking = BookingRead.model_validate(row)
                for slot in booking.sorted_slots():
                    starts_at = slot_datetime(slot.date, slot.time)
                    if not (starts_at - lead <= now < starts_at):
                        continue
                    key = reminder_key(booking.booking_code, slot)
                    if key in already_sent:
                        continue
                    if self.notification_service.send_class_reminder(booking, slot):
                        sent += 1
                    already_sent.add(key)

        if sent:
            self.logger.info(f"Sent {sent} class reminders")
        return sent
