# backend/tests/services/test_studio_data_service.py
"""The facade never raises on writes; every outcome is a result object."""

from datetime import datetime, timedelta
from decimal import Decimal
import re

import pytest

from alma_studio.core.enums import AttendanceStatus, CapacityLevel, PaymentMethod, ProductType
from alma_studio.core.session_lock import SessionLockManager
from alma_studio.schemas.booking import BookingUpdate, PaymentDetailsInput, UserInfo
from alma_studio.schemas.slot import OverrideSession
from alma_studio.services.package_status import (
    is_package_expired,
    package_expiry,
    remaining_classes_info,
)
from alma_studio.services.studio_data_service import GENERIC_FAILURE, StudioDataService
from tests.factories.studio_builders import (
    BEFORE_MONDAY,
    INTRO_PRODUCT_ID,
    MONDAY,
    PACKAGE_PRODUCT_ID,
    SUBSCRIPTION_PRODUCT_ID,
    make_request,
    make_slot,
)

PAYMENT = PaymentDetailsInput(method=PaymentMethod.CASH, amount=Decimal("45.00"))
MISSING_ID = "01J000000000000000000NONE0"


@pytest.fixture
def studio(db, catalog, sender) -> StudioDataService:
    return StudioDataService(db, sender=sender, lock_manager=SessionLockManager(wait_s=0.05))


def _add(studio, slots, **kwargs):
    result = studio.add_booking(make_request(slots, **kwargs), now=BEFORE_MONDAY)
    assert result.success, result.message
    return result.booking


class TestAddBooking:
    def test_success(self, studio):
        result = studio.add_booking(make_request([make_slot(MONDAY)]), now=BEFORE_MONDAY)
        assert result.success is True
        assert result.code is None
        assert studio.get_booking_by_code(result.booking.booking_code).id == result.booking.id

    def test_domain_rejection_is_reported_with_its_code(self, studio):
        _add(studio, [make_slot(MONDAY)])
        result = studio.add_booking(make_request([make_slot(MONDAY)]), now=BEFORE_MONDAY)
        assert result.success is False
        assert result.code == "DUPLICATE_BOOKING"
        assert result.booking is None

    def test_unexpected_error_is_generic(self, studio, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(studio.admission, "submit_booking", boom)
        result = studio.add_booking(make_request([make_slot(MONDAY)]))
        assert result.success is False
        assert result.code == "INTERNAL_ERROR"
        assert result.message == GENERIC_FAILURE


class TestMutationResults:
    def test_missing_booking_is_reported_as_not_found(self, studio):
        results = [
            studio.remove_booking_slot(MISSING_ID, make_slot(MONDAY)),
            studio.reschedule_booking_slot(MISSING_ID, make_slot(MONDAY), make_slot(MONDAY, "06:00 PM", 2)),
            studio.update_attendance_status(MISSING_ID, make_slot(MONDAY), AttendanceStatus.ATTENDED),
            studio.mark_booking_as_paid(MISSING_ID, PAYMENT),
            studio.mark_booking_as_unpaid(MISSING_ID),
            studio.delete_booking(MISSING_ID),
            studio.update_booking(
                BookingUpdate(
                    id=MISSING_ID,
                    user_info=UserInfo(first_name="A", last_name="B", email="a@example.com"),
                    price=Decimal("1"),
                )
            ),
        ]
        assert all(r.success for r in results)
        assert {r.code for r in results} == {"NOT_FOUND"}

    def test_successful_mutations_return_the_booking(self, studio):
        booking = _add(studio, [make_slot(MONDAY)])
        paid = studio.mark_booking_as_paid(booking.id, PAYMENT, now=BEFORE_MONDAY)
        assert paid.success and paid.booking.is_paid

        moved = studio.reschedule_booking_slot(
            booking.id, make_slot(MONDAY), make_slot(MONDAY, "06:00 PM", 2)
        )
        assert moved.success
        assert [s.time for s in moved.booking.slots] == ["06:00 PM"]

        deleted = studio.delete_booking(booking.id)
        assert deleted.success and deleted.code is None
        assert studio.get_bookings() == []

    def test_rejected_mutation_reports_code(self, studio):
        booking = _add(studio, [make_slot(MONDAY), make_slot(MONDAY, "06:00 PM", 2)])
        result = studio.reschedule_booking_slot(
            booking.id, make_slot(MONDAY), make_slot(MONDAY, "06:00 PM", 2)
        )
        assert result.success is False
        assert result.code == "DUPLICATE_SLOT"

    def test_range_deletion(self, studio):
        _add(studio, [make_slot(MONDAY)])
        ok = studio.delete_bookings_in_date_range(MONDAY, MONDAY)
        assert ok.success and ok.message.startswith("1 bookings deleted")

        bad = studio.delete_bookings_in_date_range(MONDAY, MONDAY - timedelta(days=1))
        assert bad.success is False and bad.code == "INVALID_DATE_RANGE"

    def test_update_customer(self, studio):
        _add(studio, [make_slot(MONDAY)])
        user = UserInfo(first_name="Marta", last_name="Pérez", email="customer@example.com")
        assert studio.update_customer("customer@example.com", user).message == "1 bookings updated"
        assert studio.get_customers()[0].user_info.first_name == "Marta"


class TestReads:
    def test_settings_defaults(self, studio):
        assert studio.get_class_capacity().max == 8
        assert studio.get_bank_details() is None
        assert studio.get_schedule_overrides() == {}
        assert [s.time for s in studio.get_availability()["Monday"]] == ["10:00 AM", "03:00 PM"]
        assert studio.get_automation_settings().class_reminder.lead_hours == 24

    def test_catalog(self, studio):
        assert [p.id for p in studio.get_products()] == [1, 2, 3]
        assert [i.name for i in studio.get_instructors()] == ["Carolina", "Ana", "Lucía"]

    def test_schedules(self, studio):
        sessions = studio.generate_intro_sessions(
            INTRO_PRODUCT_ID, start=MONDAY, now=BEFORE_MONDAY, limit_days=7
        )
        assert len(sessions) == 3
        slots = studio.available_times_for_date(MONDAY, now=BEFORE_MONDAY)
        assert [s.max_capacity for s in slots] == [8, 8]
        assert studio.package_calendar(MONDAY, 7, now=BEFORE_MONDAY) == [
            MONDAY + timedelta(days=n) for n in range(6)
        ]

    def test_capacity_status_uses_configured_messages(self, studio):
        assert studio.capacity_status(7, 8).level == CapacityLevel.LAST
        assert studio.capacity_status(4, 8).level == CapacityLevel.FEW
        assert studio.capacity_status(1, 8).level == CapacityLevel.AVAILABLE

    def test_notifications(self, studio):
        _add(studio, [make_slot(MONDAY)])
        assert len(studio.get_notifications()) == 1
        assert studio.get_client_notifications() == []

    def test_open_studio_subscriptions(self, studio):
        _add(
            studio,
            [],
            product_id=SUBSCRIPTION_PRODUCT_ID,
            product_type=ProductType.OPEN_STUDIO_SUBSCRIPTION,
            price="120.00",
        )
        infos = studio.get_open_studio_subscriptions()
        assert [i.status.value for i in infos] == ["Pending Payment"]


class TestOverrides:
    def test_save_and_cancel(self, studio):
        ok = studio.save_intro_class_override(
            INTRO_PRODUCT_ID, MONDAY, [OverrideSession(time="11:00", instructor_id=3, capacity=4)]
        )
        assert ok.success
        sessions = studio.generate_intro_sessions(
            INTRO_PRODUCT_ID, start=MONDAY, now=BEFORE_MONDAY, limit_days=1
        )
        assert [(s.time, s.instructor_id, s.is_override) for s in sessions] == [("11:00 AM", 3, True)]

        studio.save_intro_class_override(INTRO_PRODUCT_ID, MONDAY, None)
        assert studio.generate_intro_sessions(
            INTRO_PRODUCT_ID, start=MONDAY, now=BEFORE_MONDAY, limit_days=1
        ) == []

    def test_overrides_only_for_intro_classes(self, studio):
        result = studio.save_intro_class_override(PACKAGE_PRODUCT_ID, MONDAY, None)
        assert result.success is False
        assert result.code == "OVERRIDES_NOT_SUPPORTED"

    def test_unknown_product(self, studio):
        result = studio.save_intro_class_override(404, MONDAY, None)
        assert result.code == "PRODUCT_NOT_FOUND"


class TestClassPackageLifecycle:
    def test_book_pay_and_expire_a_four_class_package(self, studio):
        slots = [
            make_slot(MONDAY, "10:00 AM", 1),
            make_slot(MONDAY + timedelta(days=2), "03:00 PM", 2),
            make_slot(MONDAY + timedelta(days=7), "10:00 AM", 1),
            make_slot(MONDAY + timedelta(days=9), "03:00 PM", 2),
        ]
        booking = _add(
            studio,
            slots,
            product_id=PACKAGE_PRODUCT_ID,
            product_type=ProductType.CLASS_PACKAGE,
            price="180.00",
        )
        assert re.fullmatch(r"C-ALMA-[0-9A-Z]{8}", booking.booking_code)
        assert booking.slots == slots
        assert booking.is_paid is False

        paid_at = datetime(2024, 6, 3, 12, 0)
        paid = studio.mark_booking_as_paid(booking.id, PAYMENT, now=paid_at)
        assert paid.success
        stored = studio.get_booking_by_code(booking.booking_code)
        assert stored.is_paid is True
        assert stored.payment_details.received_at == paid_at

        first_class = datetime(2024, 6, 10, 10, 0)
        assert package_expiry(stored) == first_class + timedelta(days=30)
        assert not is_package_expired(stored, now=first_class + timedelta(days=30, minutes=-1))
        assert is_package_expired(stored, now=first_class + timedelta(days=30))

        progress = remaining_classes_info([stored], now=datetime(2024, 6, 13, 9, 0))
        assert (progress.remaining, progress.status) == (2, "active")
        assert remaining_classes_info([stored], now=datetime(2024, 7, 10, 10, 0)) is None
