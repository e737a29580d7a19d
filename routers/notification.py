from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.connection import get_db
from routers.auth import get_current_user
from services.notification import NotificationService
from schemas.notification import NotificationResponse
from models.notification import NotificationType
from models.user import User
from core.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("")
def get_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    type_filter: Optional[NotificationType] = Query(None, alias="type"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get notifications for the current user."""
    service = NotificationService(db)
    notifications = service.get_user_notifications(
        user_id=current_user.id,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        notification_type=type_filter
    )
    return success_response(
        data=[NotificationResponse.from_orm(n) for n in notifications],
        meta={"unread_count": service.get_unread_count(current_user.id)}
    )

@router.post("/read-all")
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = NotificationService(db).mark_all_as_read(current_user.id)
    return success_response(data={"updated": updated}, message=f"Marked {updated} notifications as read")

@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = NotificationService(db).mark_as_read(notification_id, current_user.id)
    return success_response(data=NotificationResponse.from_orm(notification), message="Notification marked as read")
