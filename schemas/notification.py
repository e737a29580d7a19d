from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: NotificationType
    related_id: Optional[int] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
