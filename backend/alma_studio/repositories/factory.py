# backend/alma_studio/repositories/factory.py
"""
Repository Factory for the booking backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .notification_repository import NotificationRepository
    from .product_repository import InstructorRepository, ProductRepository
    from .settings_repository import StudioSettingsRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_product_repository(db: Session) -> "ProductRepository":
        """Create repository for catalog operations."""
        from .product_repository import ProductRepository

        return ProductRepository(db)

    @staticmethod
    def create_instructor_repository(db: Session) -> "InstructorRepository":
        from .product_repository import InstructorRepository

        return InstructorRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        """Create repository for admin and client notifications."""
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_settings_repository(db: Session) -> "StudioSettingsRepository":
        """Create repository for typed studio settings."""
        from .settings_repository import StudioSettingsRepository

        return StudioSettingsRepository(db)
