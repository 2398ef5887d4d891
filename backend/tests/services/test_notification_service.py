# backend/tests/services/test_notification_service.py
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from alma_studio.core.enums import ClientNotificationStatus, NotificationType
from alma_studio.core.exceptions import ServiceException
from alma_studio.repositories.factory import RepositoryFactory
from alma_studio.schemas.settings import AutomationSettings
from alma_studio.services.notification_service import NotificationService, reminder_key
from tests.factories.studio_builders import MONDAY, make_booking, make_slot


@pytest.fixture
def booking():
    return make_booking(
        [make_slot(MONDAY)],
        is_paid=True,
        payment_details={"method": "Cash", "amount": "45.00", "received_at": "2024-06-02T10:00:00"},
    )


def test_reminder_key_uses_stored_time():
    assert reminder_key("C-ALMA-ABCD1234", make_slot(MONDAY, "10:00 AM")) == "C-ALMA-ABCD1234_2024-06-10_10:00 AM"


class TestNotificationService:
    def test_new_booking_goes_to_admin_inbox(self, db, booking):
        service = NotificationService(db)
        notification = service.notify_new_booking(booking)
        db.commit()

        assert notification.type == NotificationType.NEW_BOOKING.value
        assert notification.read is False
        repo = RepositoryFactory.create_notification_repository(db)
        assert len(repo.list_admin_notifications(unread_only=True)) == 1
        assert repo.mark_all_read() == 1
        assert repo.list_admin_notifications(unread_only=True) == []

    def test_payment_receipt_renders_and_logs(self, db, booking):
        sender = MagicMock()
        sender.send_email.return_value = True
        service = NotificationService(db, sender=sender)

        assert service.send_payment_receipt(booking) is True
        to_email, subject, body = sender.send_email.call_args.args
        assert to_email == "customer@example.com"
        assert subject == f"Recibo de pago {booking.booking_code}"
        assert "$45.00" in body and "02/06/2024" in body
        assert sender.send_email.call_args.kwargs["tags"] == ["payment_receipt"]

        log = RepositoryFactory.create_notification_repository(db).list_client_notifications()
        assert [n.status for n in log] == [ClientNotificationStatus.SENT.value]

    def test_disabled_automation_sends_nothing(self, db, booking):
        RepositoryFactory.create_settings_repository(db).set_automation_settings(AutomationSettings())
        sender = MagicMock()
        service = NotificationService(db, sender=sender)
        assert service.send_payment_receipt(booking) is False
        assert service.send_pre_booking_confirmation(booking) is False
        sender.send_email.assert_not_called()

    def test_unpaid_booking_has_no_receipt(self, db):
        sender = MagicMock()
        unpaid = make_booking([make_slot(MONDAY)])
        assert NotificationService(db, sender=sender).send_payment_receipt(unpaid) is False
        sender.send_email.assert_not_called()

    def test_sender_errors_are_recorded_as_failed(self, db, booking):
        sender = MagicMock()
        sender.send_email.side_effect = ConnectionError("provider down")
        service = NotificationService(db, sender=sender)

        assert service.send_class_reminder(booking, booking.slots[0]) is False
        log = RepositoryFactory.create_notification_repository(db).list_client_notifications()
        assert log[0].status == ClientNotificationStatus.FAILED.value
        assert log[0].booking_code == reminder_key(booking.booking_code, booking.slots[0])
        assert log[0].scheduled_at <= datetime.now()

    def test_template_errors_propagate(self, db, booking):
        templates = MagicMock()
        templates.render_template.side_effect = ServiceException("Email template error")
        service = NotificationService(db, sender=MagicMock(), template_service=templates)
        with pytest.raises(ServiceException):
            service.send_class_reminder(booking, booking.slots[0])
