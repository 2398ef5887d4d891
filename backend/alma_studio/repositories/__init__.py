"""Data access layer. Repositories flush; services commit."""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .product_repository import InstructorRepository, ProductRepository
from .settings_repository import StudioSettingsRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "InstructorRepository",
    "NotificationRepository",
    "ProductRepository",
    "RepositoryFactory",
    "StudioSettingsRepository",
]
