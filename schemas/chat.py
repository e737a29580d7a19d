from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from models.message import Message
from models.order import OrderStatus
from schemas.user import UserSummary


class MessageCreate(BaseModel):
    text: str


class MessageResponse(BaseModel):
    id: int
    order_id: int
    sender_id: int
    sender_name: Optional[str] = None
    text: str
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            order_id=message.order_id,
            sender_id=message.sender_id,
            sender_name=message.sender.full_name if message.sender else None,
            text=message.text,
            created_at=message.created_at,
        )


class ChatSummary(BaseModel):
    order_id: int
    status: OrderStatus
    item_description: str
    counterpart: Optional[UserSummary] = None
    last_message: Optional[MessageResponse] = None
    last_activity_at: datetime
