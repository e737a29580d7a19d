from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class NotificationType(str, enum.Enum):
    ORDER = "ORDER"
    OFFER = "OFFER"
    CHAT = "CHAT"
    PAYMENT = "PAYMENT"
    SYSTEM = "SYSTEM"

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Notification content
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(Enum(NotificationType), nullable=False, index=True)

    # Related order, offer or wallet transaction
    related_id = Column(Integer, nullable=True, index=True)

    # Tracking
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("User")

    def mark_as_read(self):
        self.is_read = True
        self.read_at = datetime.utcnow()
