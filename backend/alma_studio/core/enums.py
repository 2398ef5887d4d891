"""Enumerations shared across models, schemas and services."""

from enum import Enum


class ProductType(str, Enum):
    """Kinds of products the studio sells."""

    CLASS_PACKAGE = "CLASS_PACKAGE"
    INTRODUCTORY_CLASS = "INTRODUCTORY_CLASS"
    OPEN_STUDIO_SUBSCRIPTION = "OPEN_STUDIO_SUBSCRIPTION"
    GROUP_EXPERIENCE = "GROUP_EXPERIENCE"
    COUPLES_EXPERIENCE = "COUPLES_EXPERIENCE"


# Product types whose bookings reserve concrete sessions
SLOT_PRODUCT_TYPES = frozenset({ProductType.CLASS_PACKAGE, ProductType.INTRODUCTORY_CLASS})


class DayKey(str, Enum):
    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


class BookingMode(str, Enum):
    FLEXIBLE = "flexible"
    MONTHLY = "monthly"


class AttendanceStatus(str, Enum):
    ATTENDED = "attended"
    NO_SHOW = "no-show"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    TRANSFER = "Transfer"
    MANUAL = "Manual"


class CapacityLevel(str, Enum):
    """Occupancy bands configured in CapacityMessageSettings."""

    AVAILABLE = "available"
    FEW = "few"
    LAST = "last"


class CapacitySeverity(str, Enum):
    """Display severity derived from a CapacityLevel."""

    NOMINAL = "nominal"
    WARNING = "warning"
    CRITICAL = "critical"


class NotificationType(str, Enum):
    NEW_BOOKING = "new_booking"


class ClientNotificationType(str, Enum):
    PRE_BOOKING_CONFIRMATION = "PRE_BOOKING_CONFIRMATION"
    PAYMENT_RECEIPT = "PAYMENT_RECEIPT"
    CLASS_REMINDER = "CLASS_REMINDER"
    INCENTIVE_RENEWAL = "INCENTIVE_RENEWAL"


class ClientNotificationStatus(str, Enum):
    SENT = "Sent"
    SCHEDULED = "Scheduled"
    FAILED = "Failed"


class SubscriptionStatus(str, Enum):
    """Open-studio subscription lifecycle, anchored to the payment date."""

    ACTIVE = "Active"
    PENDING_PAYMENT = "Pending Payment"
    EXPIRED = "Expired"
