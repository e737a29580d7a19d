from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class OfferStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"

class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        UniqueConstraint("order_id", "deliverer_id", name="uq_offer_order_deliverer"),
        CheckConstraint("fee > 0", name="ck_offer_fee_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    deliverer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    fee = Column(Integer, nullable=False)
    status = Column(Enum(OfferStatus), default=OfferStatus.PENDING, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    accepted_at = Column(DateTime, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="offers")
    deliverer = relationship("User", back_populates="offers")

    def __repr__(self):
        return f"<Offer(id={self.id}, order_id={self.order_id}, deliverer_id={self.deliverer_id}, fee={self.fee})>"
