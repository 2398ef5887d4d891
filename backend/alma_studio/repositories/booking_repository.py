# backend/alma_studio/repositories/booking_repository.py
"""
Booking Repository for the booking backend.

Implements all data access operations for booking management. Slots,
attendance and payment details live in JSON columns; every write
replaces the whole column value so a concurrent reader sees either the
old or the new value, never a half-applied one.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Read operations

    def list_all(self) -> List[Booking]:
        """Every booking, newest first. Capacity is always derived from this list."""
        try:
            return self.db.query(Booking).order_by(Booking.created_at.desc(), Booking.id.desc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def list_paid(self) -> List[Booking]:
        try:
            return self.db.query(Booking).filter(Booking.is_paid.is_(True)).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing paid bookings: {str(e)}")
            raise RepositoryException(f"Failed to list paid bookings: {str(e)}")

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.booking_code == booking_code.strip().upper())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking by code {booking_code}: {str(e)}")
            raise RepositoryException(f"Failed to get booking by code: {str(e)}")

    def list_by_email(self, email: str) -> List[Booking]:
        """Bookings of one customer, matched on the normalized email."""
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.customer_email == email.strip().lower())
                .order_by(Booking.created_at.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for {email}: {str(e)}")
            raise RepositoryException(f"Failed to list customer bookings: {str(e)}")

    # Write operations

    def create_booking(
        self,
        *,
        product_id: int,
        product_type: str,
        slots: List[Dict[str, Any]],
        user_info: Dict[str, Any],
        price: Any,
        booking_mode: Optional[str],
        product: Dict[str, Any],
        booking_code: str,
        billing_details: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Booking:
        return self.create(
            product_id=product_id,
            product_type=product_type,
            slots=list(slots),
            user_info=dict(user_info),
            customer_email=str(user_info["email"]).strip().lower(),
            price=price,
            booking_mode=booking_mode,
            product=dict(product),
            booking_code=booking_code,
            billing_details=billing_details,
            created_at=created_at or datetime.now(),
            is_paid=False,
            payment_details=None,
            attendance={},
        )

    def replace_slots(self, booking_id: str, slots: List[Dict[str, Any]]) -> Optional[Booking]:
        """Single-statement replacement of the slots column."""
        return self.update(booking_id, slots=list(slots))

    def set_payment(
        self, booking_id: str, is_paid: bool, payment_details: Optional[Dict[str, Any]]
    ) -> Optional[Booking]:
        return self.update(
            booking_id,
            is_paid=is_paid,
            payment_details=dict(payment_details) if payment_details else None,
        )

    def set_attendance(self, booking_id: str, attendance: Dict[str, str]) -> Optional[Booking]:
        return self.update(booking_id, attendance=dict(attendance))

    def update_customer_fields(
        self, booking_id: str, user_info: Dict[str, Any], price: Optional[Any] = None
    ) -> Optional[Booking]:
        fields: Dict[str, Any] = {
            "user_info": dict(user_info),
            "customer_email": str(user_info["email"]).strip().lower(),
        }
        if price is not None:
            fields["price"] = price
        return self.update(booking_id, **fields)

    def delete_many(self, booking_ids: Iterable[str]) -> int:
        ids = list(booking_ids)
        if not ids:
            return 0
        try:
            deleted = (
                self.db.query(Booking)
                .filter(Booking.id.in_(ids))
                .delete(synchronize_session="fetch")
            )
            self.db.flush()
            return int(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {len(ids)} bookings: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete bookings: {str(e)}") from e
