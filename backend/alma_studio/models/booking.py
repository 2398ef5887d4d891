# backend/alma_studio/models/booking.py
"""
Booking model for the Ceramic Alma studio.

A booking is the aggregate of one or more reserved sessions purchased
together under one product. The product is snapshotted at booking time
so later catalog edits (price, details) never rewrite history.

Slots are stored as a JSON list of ``{"date", "time", "instructor_id"}``
objects; attendance is a JSON map keyed by ``"{date}_{time}"``.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, Numeric, String
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Booking(Base):
    """Self-contained booking record with a denormalized product snapshot."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    product_id = Column(Integer, nullable=False, index=True)
    product_type = Column(String(50), nullable=False)
    slots = Column(JSON, nullable=False, default=list)

    user_info = Column(JSON, nullable=False)
    # Lower-cased copy of user_info["email"] for duplicate-admission queries
    customer_email = Column(String(255), nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    is_paid = Column(Boolean, nullable=False, default=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    booking_mode = Column(String(50), nullable=True)

    product = Column(JSON, nullable=False)
    booking_code = Column(String(50), nullable=False, unique=True)

    payment_details = Column(JSON, nullable=True)
    attendance = Column(JSON, nullable=True)
    billing_details = Column(JSON, nullable=True)

    __table_args__ = (Index("ix_bookings_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<Booking {self.booking_code} product={self.product_id} slots={len(self.slots or [])}>"
