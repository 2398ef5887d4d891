# backend/alma_studio/schemas/booking.py
"""
Booking schemas.

Bookings are self-contained: they carry their slots and a snapshot of
the product as it was sold. ``BookingRead`` is what every service hands
around after loading a row; the capacity resolver only relies on its
``slots`` and ``is_paid``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from ..core.enums import (
    AttendanceStatus,
    BookingMode,
    PaymentMethod,
    ProductType,
    SubscriptionStatus,
)
from ._strict_base import OrmReadModel, StrictModel, StrictRequestModel
from .slot import TimeSlot


class UserInfo(StrictModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""
    country_code: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class BillingDetails(StrictModel):
    business_name: str
    tax_id: str
    address: str
    email: EmailStr


class PaymentDetailsInput(StrictRequestModel):
    method: PaymentMethod
    amount: Decimal = Field(..., ge=0)


class PaymentDetails(PaymentDetailsInput):
    received_at: datetime


class BookingCreate(StrictRequestModel):
    """Admission request: one or more slots under one product."""

    product_id: int
    product_type: ProductType
    slots: List[TimeSlot] = Field(default_factory=list)
    user_info: UserInfo
    price: Decimal = Field(..., ge=0)
    booking_mode: Optional[BookingMode] = None
    # Client-side snapshot, used only when the product is not in the catalog
    product: Optional[Dict[str, Any]] = None
    billing_details: Optional[BillingDetails] = None


class BookingUpdate(StrictRequestModel):
    """Editable fields of an existing booking."""

    id: str
    user_info: UserInfo
    price: Decimal = Field(..., ge=0)


class BookingRead(OrmReadModel):
    id: str
    product_id: int
    product_type: ProductType
    slots: List[TimeSlot]
    user_info: UserInfo
    created_at: datetime
    is_paid: bool = False
    price: Decimal
    booking_mode: Optional[BookingMode] = None
    product: Dict[str, Any]
    booking_code: str
    payment_details: Optional[PaymentDetails] = None
    attendance: Dict[str, AttendanceStatus] = Field(default_factory=dict)
    billing_details: Optional[BillingDetails] = None

    @field_validator("attendance", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value or {}

    @property
    def customer_email(self) -> str:
        return str(self.user_info.email).lower()

    def sorted_slots(self) -> List[TimeSlot]:
        return sorted(self.slots, key=lambda s: s.date_time_key)


class AddBookingResult(StrictModel):
    success: bool
    message: str
    code: Optional[str] = None
    booking: Optional[BookingRead] = None


class MutationResult(StrictModel):
    success: bool
    message: str
    code: Optional[str] = None
    booking: Optional[BookingRead] = None


class RemainingClassesInfo(StrictModel):
    booking_id: str
    remaining: int
    status: str = Field(..., pattern="^(active|completed)$")
    expires_at: datetime


class Customer(StrictModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    user_info: UserInfo
    bookings: List[BookingRead]
    total_bookings: int
    total_spent: Decimal
    last_booking_date: datetime
    remaining_classes_info: Optional[RemainingClassesInfo] = None


class SubscriptionInfo(StrictModel):
    booking_id: str
    status: SubscriptionStatus
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
