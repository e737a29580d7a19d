from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class OrderStatus(str, enum.Enum):
    WAITING_FOR_OFFERS = "WAITING_FOR_OFFERS"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    ON_DELIVERY = "ON_DELIVERY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

# Statuses in which an order has exactly one assigned deliverer
ASSIGNED_STATUSES = frozenset({
    OrderStatus.OFFER_ACCEPTED,
    OrderStatus.ON_DELIVERY,
    OrderStatus.COMPLETED,
})

# Statuses in which the order's chat room accepts new messages
CHAT_OPEN_STATUSES = frozenset({
    OrderStatus.OFFER_ACCEPTED,
    OrderStatus.ON_DELIVERY,
})

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    deliverer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    item_description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    destination = Column(Text, nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.WAITING_FOR_OFFERS, nullable=False, index=True)
    final_fee = Column(Integer, nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    accepted_at = Column(DateTime, nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Relationships
    customer = relationship("User", back_populates="orders_as_customer", foreign_keys=[customer_id])
    deliverer = relationship("User", back_populates="orders_as_deliverer", foreign_keys=[deliverer_id])
    offers = relationship("Offer", back_populates="order", order_by="Offer.id")
    messages = relationship("Message", back_populates="order", order_by="Message.id")
    rating = relationship("Rating", uselist=False, back_populates="order")

    def is_participant(self, user_id: int) -> bool:
        return user_id == self.customer_id or (
            self.deliverer_id is not None and user_id == self.deliverer_id
        )

    def __repr__(self):
        return f"<Order(id={self.id}, status={self.status}, deliverer_id={self.deliverer_id})>"
