"""Notification service - In-app notifications for bookings, sessions and payments"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Notification, Profile

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[str] = None,
    data: Optional[dict] = None,
) -> Optional[Notification]:
    """
    Insert a notification row.

    Notifications are not critical: failures are logged and None is returned.
    Callers commit their own work first; this commits separately.
    """
    try:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
            data=data,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.debug(f"🔔 Notification {notification_type} created for {user_id}")
        return notification
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to create {notification_type} notification for {user_id}: {e}")
        return None


class NotificationService:
    """Service layer for reading and acknowledging notifications"""

    def __init__(self, db: Session):
        self.db = db

    def list(self, user: Profile, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user.user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id).limit(limit).all()

    def unread_count(self, user: Profile) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user.user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_read(self, user: Profile, notification_id: str) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user.user_id)
            .first()
        )
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: Profile) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user.user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated
