# backend/tests/services/test_booking_admission.py
"""
Admission of new bookings against the live booking table.

Monday 2024-06-10 10:00 with instructor 1 is an introductory session with
capacity 2; every test submits before that date.
"""

from datetime import timedelta

import pytest

from alma_studio.core.config import settings
from alma_studio.core.enums import (
    ClientNotificationStatus,
    ClientNotificationType,
    NotificationType,
    ProductType,
)
from alma_studio.core.exceptions import (
    CapacityExceededException,
    DuplicateBookingException,
    DuplicateSlotException,
    NotFoundException,
    SessionBusyException,
    ValidationException,
)
from alma_studio.core.session_lock import SessionLockManager
from alma_studio.repositories.factory import RepositoryFactory
from alma_studio.schemas.settings import BankDetails
from alma_studio.services.booking_admission import (
    BookingAdmissionService,
    admission_lock_keys,
    customer_slot_key,
)
from alma_studio.utils.booking_code import booking_code_pattern
from tests.factories.studio_builders import (
    BEFORE_MONDAY,
    MONDAY,
    PACKAGE_PRODUCT_ID,
    make_request,
    make_slot,
)


@pytest.fixture
def admission(db, catalog, sender) -> BookingAdmissionService:
    return BookingAdmissionService(db, lock_manager=SessionLockManager(wait_s=0.05), sender=sender)


def _submit(admission, slots, **kwargs):
    return admission.submit_booking(make_request(slots, **kwargs), now=BEFORE_MONDAY)


def _set_bank_details(db):
    RepositoryFactory.create_settings_repository(db).set_bank_details(
        BankDetails(
            bank_name="Banco Pichincha",
            account_holder="Ceramic Alma",
            account_number="2201234567",
            account_type="Ahorros",
            tax_id="1790012345001",
        )
    )
    db.commit()


class _FailingSender:
    def send_email(self, to_email, subject, body_html, *, tags=None):
        raise RuntimeError("smtp unreachable")


class TestAdmission:
    def test_admits_unpaid_booking_with_code_and_snapshot(self, admission, db):
        booking = _submit(admission, [make_slot(MONDAY)])

        assert booking_code_pattern().match(booking.booking_code)
        assert booking.is_paid is False
        assert booking.payment_details is None
        assert booking.attendance == {}
        assert booking.created_at == BEFORE_MONDAY
        assert booking.product["name"] == "Clase Introductoria"
        assert booking.product["scheduling_rules"][0]["capacity"] == 2

        stored = RepositoryFactory.create_booking_repository(db).get_by_code(booking.booking_code.lower())
        assert stored is not None and stored.id == booking.id
        assert stored.customer_email == "customer@example.com"

    def test_admin_is_notified(self, admission, db):
        booking = _submit(admission, [make_slot(MONDAY)])
        notifications = RepositoryFactory.create_notification_repository(db).list_admin_notifications()
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.NEW_BOOKING.value
        assert notifications[0].target_id == booking.id
        assert notifications[0].summary == f"{booking.booking_code} · Clase Introductoria"
        assert notifications[0].user_name == "María Pérez"

    def test_no_confirmation_without_bank_details(self, admission, db, sender):
        _submit(admission, [make_slot(MONDAY)])
        assert sender.sent == []
        assert RepositoryFactory.create_notification_repository(db).list_client_notifications() == []

    def test_confirmation_sent_when_bank_details_exist(self, admission, db, sender):
        _set_bank_details(db)
        booking = _submit(admission, [make_slot(MONDAY)])

        assert sender.sent == [("customer@example.com", f"Tu reserva {booking.booking_code}")]
        log = RepositoryFactory.create_notification_repository(db).list_client_notifications()
        assert [(n.type, n.status, n.booking_code) for n in log] == [
            (
                ClientNotificationType.PRE_BOOKING_CONFIRMATION.value,
                ClientNotificationStatus.SENT.value,
                booking.booking_code,
            )
        ]

    def test_failed_confirmation_keeps_the_booking(self, db, catalog):
        _set_bank_details(db)
        admission = BookingAdmissionService(db, sender=_FailingSender())
        booking = _submit(admission, [make_slot(MONDAY)])

        assert RepositoryFactory.create_booking_repository(db).get_by_id(booking.id) is not None
        log = RepositoryFactory.create_notification_repository(db).list_client_notifications()
        assert [n.status for n in log] == [ClientNotificationStatus.FAILED.value]

    def test_non_slot_product_from_snapshot(self, admission):
        booking = _submit(
            admission,
            [],
            product_id=99,
            product_type=ProductType.GROUP_EXPERIENCE,
            price="200.00",
            product={"name": "Experiencia grupal", "details": {"people": 6}},
        )
        assert booking.slots == []
        assert booking.product["name"] == "Experiencia grupal"


class TestSelectionValidation:
    def test_repeated_date_time_in_one_request(self, admission):
        with pytest.raises(DuplicateSlotException) as exc_info:
            _submit(admission, [make_slot(MONDAY, "10:00 AM", 1), make_slot(MONDAY, "10:00", 2)])
        assert exc_info.value.code == "DUPLICATE_SLOT"
        assert admission.load_bookings() == []

    def test_slot_products_need_slots(self, admission):
        with pytest.raises(ValidationException) as exc_info:
            _submit(admission, [])
        assert exc_info.value.code == "SLOTS_REQUIRED"

    def test_package_cannot_exceed_its_classes(self, admission):
        slots = [make_slot(MONDAY + timedelta(days=7 * week)) for week in range(5)]
        with pytest.raises(ValidationException) as exc_info:
            _submit(
                admission,
                slots,
                product_id=PACKAGE_PRODUCT_ID,
                product_type=ProductType.CLASS_PACKAGE,
                price="180.00",
            )
        assert exc_info.value.code == "TOO_MANY_SLOTS"

    def test_product_type_must_match_catalog(self, admission):
        with pytest.raises(ValidationException) as exc_info:
            _submit(admission, [make_slot(MONDAY)], product_type=ProductType.CLASS_PACKAGE)
        assert exc_info.value.code == "PRODUCT_TYPE_MISMATCH"

    def test_unknown_product_without_snapshot(self, admission):
        with pytest.raises(NotFoundException) as exc_info:
            _submit(admission, [make_slot(MONDAY)], product_id=404)
        assert exc_info.value.code == "PRODUCT_NOT_FOUND"


class TestCustomerConflicts:
    def test_same_date_time_is_rejected_for_any_instructor(self, admission):
        _submit(admission, [make_slot(MONDAY, "10:00 AM", 1)])
        with pytest.raises(DuplicateBookingException) as exc_info:
            _submit(admission, [make_slot(MONDAY, "10:00", 2)], email="Customer@Example.com")
        assert exc_info.value.code == "DUPLICATE_BOOKING"
        assert len(admission.load_bookings()) == 1

    def test_different_time_is_admitted(self, admission):
        _submit(admission, [make_slot(MONDAY, "10:00 AM", 1)])
        _submit(admission, [make_slot(MONDAY, "06:00 PM", 2)])
        assert len(admission.load_bookings()) == 2

    def test_other_customers_share_the_session(self, admission):
        _submit(admission, [make_slot(MONDAY)], email="uno@example.com")
        _submit(admission, [make_slot(MONDAY)], email="dos@example.com")
        assert len(admission.load_bookings()) == 2


class TestCapacity:
    def _fill_session(self, admission, db, paid):
        repo = RepositoryFactory.create_booking_repository(db)
        for email in ("uno@example.com", "dos@example.com"):
            booking = _submit(admission, [make_slot(MONDAY)], email=email)
            if paid:
                repo.set_payment(booking.id, True, None)
        db.commit()

    def test_pending_bookings_do_not_block_by_default(self, admission, db):
        self._fill_session(admission, db, paid=False)
        _submit(admission, [make_slot(MONDAY)], email="tres@example.com")
        assert len(admission.load_bookings()) == 3

    def test_paid_bookings_fill_the_session(self, admission, db):
        self._fill_session(admission, db, paid=True)
        with pytest.raises(CapacityExceededException) as exc_info:
            _submit(admission, [make_slot(MONDAY)], email="tres@example.com")
        assert exc_info.value.details == {
            "session": "2024-06-10|10:00|1",
            "occupied": 2,
            "capacity": 2,
        }
        assert len(admission.load_bookings()) == 2

    def test_pending_bookings_count_when_configured(self, admission, db, monkeypatch):
        monkeypatch.setattr(settings, "capacity_counts_pending_bookings", True)
        self._fill_session(admission, db, paid=False)
        with pytest.raises(CapacityExceededException):
            _submit(admission, [make_slot(MONDAY)], email="tres@example.com")

    def test_enforcement_can_be_disabled(self, admission, db, monkeypatch):
        self._fill_session(admission, db, paid=True)
        monkeypatch.setattr(settings, "enforce_capacity_on_admission", False)
        _submit(admission, [make_slot(MONDAY)], email="tres@example.com")
        assert len(admission.load_bookings()) == 3

    def test_other_instructor_is_a_separate_session(self, admission, db):
        self._fill_session(admission, db, paid=True)
        # 10:00 with instructor 2 is not on the schedule and falls back to the default capacity
        booking = _submit(admission, [make_slot(MONDAY, "10:00 AM", 2)], email="tres@example.com")
        assert booking.slots[0].session_key == "2024-06-10|10:00|2"

    def test_package_uses_studio_class_capacity(self, admission):
        assert admission.capacity_for_slot(
            ProductType.CLASS_PACKAGE, None, make_slot(MONDAY)
        ) == 8

    def test_busy_session_is_not_booked(self, admission):
        slot = make_slot(MONDAY)
        with SessionLockManager(wait_s=0.05).hold([slot.session_key]):
            with pytest.raises(SessionBusyException):
                _submit(admission, [slot])
        assert admission.load_bookings() == []

    def test_same_customer_same_time_is_serialized_across_instructors(self, admission):
        # another request of this customer at 10:00, with instructor 2, is still in flight
        held = customer_slot_key("Customer@Example.com", make_slot(MONDAY, "10:00", 2))
        with SessionLockManager(wait_s=0.05).hold([held]):
            with pytest.raises(SessionBusyException):
                _submit(admission, [make_slot(MONDAY)])
        assert admission.load_bookings() == []

    def test_lock_keys_cover_sessions_and_customer(self):
        keys = admission_lock_keys("customer@example.com", [make_slot(MONDAY, "10:00 AM", 1)])
        assert keys == ["2024-06-10|10:00|1", "customer|customer@example.com|2024-06-10|10:00"]
