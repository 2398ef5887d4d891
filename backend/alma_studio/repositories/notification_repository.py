# backend/alma_studio/repositories/notification_repository.py
"""
Repository for admin notifications and the client notification log.
"""

from datetime import datetime
import logging
from typing import List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ClientNotificationStatus, ClientNotificationType, NotificationType
from ..core.exceptions import RepositoryException
from ..models.notification import ClientNotification, Notification
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository[Notification]):
    """Admin inbox plus the per-customer email log."""

    def __init__(self, db: Session):
        super().__init__(db, Notification)

    def add_admin_notification(
        self,
        *,
        type: NotificationType,
        target_id: str,
        user_name: Optional[str],
        summary: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> Notification:
        return self.create(
            type=type.value,
            target_id=target_id,
            user_name=user_name,
            summary=summary,
            timestamp=timestamp or datetime.now(),
            read=False,
        )

    def list_admin_notifications(self, unread_only: bool = False) -> List[Notification]:
        try:
            query = self.db.query(Notification)
            if unread_only:
                query = query.filter(Notification.read.is_(False))
            return query.order_by(Notification.timestamp.desc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing notifications: {str(e)}")
            raise RepositoryException(f"Failed to list notifications: {str(e)}")

    def mark_all_read(self) -> int:
        try:
            updated = (
                self.db.query(Notification)
                .filter(Notification.read.is_(False))
                .update({Notification.read: True}, synchronize_session="fetch")
            )
            self.db.flush()
            return int(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking notifications read: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to mark notifications read: {str(e)}") from e

    # Client notification log

    def add_client_notification(
        self,
        *,
        type: ClientNotificationType,
        client_name: Optional[str],
        client_email: str,
        status: ClientNotificationStatus,
        booking_code: Optional[str],
        scheduled_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> ClientNotification:
        try:
            record = ClientNotification(
                created_at=created_at or datetime.now(),
                client_name=client_name,
                client_email=client_email,
                type=type.value,
                channel="Email",
                status=status.value,
                booking_code=booking_code,
                scheduled_at=scheduled_at,
            )
            self.db.add(record)
            self.db.flush()
            return record
        except SQLAlchemyError as e:
            self.logger.error(f"Error logging client notification: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to log client notification: {str(e)}") from e

    def list_client_notifications(self) -> List[ClientNotification]:
        try:
            return (
                self.db.query(ClientNotification)
                .order_by(ClientNotification.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing client notifications: {str(e)}")
            raise RepositoryException(f"Failed to list client notifications: {str(e)}")

    def sent_reminder_keys(self) -> Set[str]:
        """Per-slot keys of every class reminder already sent."""
        try:
            rows = (
                self.db.query(ClientNotification.booking_code)
                .filter(
                    ClientNotification.type == ClientNotificationType.CLASS_REMINDER.value,
                    ClientNotification.status == ClientNotificationStatus.SENT.value,
                )
                .all()
            )
            return {row[0] for row in rows if row[0]}
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading sent reminders: {str(e)}")
            raise RepositoryException(f"Failed to load sent reminders: {str(e)}")
