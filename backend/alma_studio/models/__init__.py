from .booking import Booking
from .notification import ClientNotification, Notification
from .product import Instructor, Product
from .studio_setting import StudioSetting

__all__ = [
    "Booking",
    "ClientNotification",
    "Instructor",
    "Notification",
    "Product",
    "StudioSetting",
]
