from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc
from typing import List, Optional
from datetime import datetime
import logging

from models.notification import Notification, NotificationType
from core.exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)

class NotificationService:
    """
    In-app notification inbox.

    Order, offer and chat events land here as rows. Push and email delivery are
    separate services that would read from this table; a failure to record a
    notification never undoes the marketplace operation that triggered it.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        related_id: Optional[int] = None
    ) -> Optional[Notification]:
        """Record a notification for a user. Returns None if it could not be stored."""
        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type,
                related_id=related_id
            )

            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)

            logger.info(f"Created notification {notification.id} for user {user_id}")
            return notification

        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating notification for user {user_id}: {str(e)}")
            return None

    def get_user_notifications(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None
    ) -> List[Notification]:
        """Get notifications for a user, newest first."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)

        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        if notification_type:
            query = query.filter(Notification.type == notification_type)

        return query.order_by(desc(Notification.created_at), desc(Notification.id)).offset(offset).limit(limit).all()

    def get_unread_count(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).count()

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        """Mark one of the user's notifications as read."""
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if not notification:
            raise ResourceNotFoundError("Notification", notification_id)

        if not notification.is_read:
            notification.mark_as_read()
            self.db.commit()
            self.db.refresh(notification)
            logger.info(f"Marked notification {notification_id} as read")

        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        """Mark all unread notifications as read for a user."""
        try:
            updated_count = self.db.query(Notification).filter(
                Notification.user_id == user_id,
                Notification.is_read == False  # noqa: E712
            ).update({
                "is_read": True,
                "read_at": datetime.utcnow()
            }, synchronize_session=False)

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Marked {updated_count} notifications as read for user {user_id}")
        return updated_count
