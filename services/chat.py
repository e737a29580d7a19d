from typing import List
import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import ValidationError, ResourceNotFoundError, InvalidStateError
from core.permissions import Action, authorize
from models.message import Message
from models.notification import NotificationType
from models.order import Order, CHAT_OPEN_STATUSES
from models.user import User, UserRole
from schemas.chat import ChatSummary, MessageResponse
from schemas.user import UserSummary
from services.notification import NotificationService

logger = logging.getLogger(__name__)


class ChatService:
    """Per-order chat between a customer and the deliverer assigned to the order."""

    def __init__(self, db: Session):
        self.db = db

    def _get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    def get_chat_order(self, order_id: int, user: User) -> Order:
        """Load an order and check the user may take part in its chat room."""
        order = self._get_order(order_id)
        authorize(user, Action.JOIN_CHAT, order)
        return order

    def send_message(self, order_id: int, sender: User, text: str) -> Message:
        text = text.strip() if isinstance(text, str) else ""
        if not text:
            raise ValidationError("Message text cannot be empty", field="text")
        if len(text) > settings.MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message text cannot exceed {settings.MAX_MESSAGE_LENGTH} characters",
                field="text"
            )

        order = self._get_order(order_id)
        authorize(sender, Action.SEND_MESSAGE, order)

        if order.status not in CHAT_OPEN_STATUSES:
            raise InvalidStateError(
                "Chat is closed for this order",
                details={"order_id": order.id, "current_status": order.status.value}
            )

        message = Message(order_id=order.id, sender_id=sender.id, text=text)
        try:
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Message {message.id} stored in order {order.id} chat by user {sender.id}")

        recipient_id = order.deliverer_id if sender.id == order.customer_id else order.customer_id
        NotificationService(self.db).notify(
            user_id=recipient_id,
            title=f"New message from {sender.full_name}",
            message=text[:100],
            notification_type=NotificationType.CHAT,
            related_id=order.id
        )
        return message

    def get_messages(self, order_id: int, user: User, limit: int = 200, offset: int = 0) -> List[Message]:
        """Chat history for an order in the order it was written."""
        order = self.get_chat_order(order_id, user)

        return self.db.query(Message).options(joinedload(Message.sender)).filter(
            Message.order_id == order.id
        ).order_by(Message.id).offset(offset).limit(limit).all()

    def get_chat_list(self, user: User) -> List[ChatSummary]:
        """Orders the user can chat about, most recently active first."""
        if user.role == UserRole.CUSTOMER:
            query = self.db.query(Order).options(joinedload(Order.deliverer)).filter(
                Order.customer_id == user.id
            )
        elif user.role == UserRole.DELIVERER:
            query = self.db.query(Order).options(joinedload(Order.customer)).filter(
                Order.deliverer_id == user.id
            )
        else:
            return []

        orders = query.filter(Order.deliverer_id.isnot(None)).all()

        chats = []
        for order in orders:
            counterpart = order.deliverer if user.role == UserRole.CUSTOMER else order.customer
            last_message = self.db.query(Message).filter(
                Message.order_id == order.id
            ).order_by(desc(Message.id)).first()

            last_activity_at = last_message.created_at if last_message else (order.accepted_at or order.updated_at)
            chats.append(ChatSummary(
                order_id=order.id,
                status=order.status,
                item_description=order.item_description,
                counterpart=UserSummary.from_orm(counterpart) if counterpart else None,
                last_message=MessageResponse.from_message(last_message) if last_message else None,
                last_activity_at=last_activity_at
            ))

        chats.sort(key=lambda chat: chat.last_activity_at, reverse=True)
        return chats
