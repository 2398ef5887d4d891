"""Admin inbox notifications and the client notification log."""

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Notification(Base):
    """Admin-facing notification, e.g. a new booking arrived."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    type = Column(String(50), nullable=False)
    target_id = Column(Text, nullable=False)
    user_name = Column(String(255), nullable=True)
    summary = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, server_default=func.now())
    read = Column(Boolean, nullable=False, default=False)


class ClientNotification(Base):
    """
    Record of an email sent (or attempted) to a customer.

    For class reminders ``booking_code`` holds the per-slot identifier
    ``"{booking_code}_{date}_{time}"`` so a reminder is never sent twice.
    """

    __tablename__ = "client_notifications"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    client_name = Column(String(255), nullable=True)
    client_email = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False, index=True)
    channel = Column(String(20), nullable=False, default="Email")
    status = Column(String(20), nullable=False)
    booking_code = Column(String(120), nullable=True, index=True)
    scheduled_at = Column(DateTime, nullable=True)
