from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from models.order import Order, OrderStatus
from models.offer import OfferStatus


class OrderCreate(BaseModel):
    item_description: str = Field(..., max_length=1000)
    quantity: int
    destination: str = Field(..., max_length=500)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OfferSummary(BaseModel):
    id: int
    fee: int
    status: OfferStatus

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    customer_id: int
    customer_name: Optional[str] = None
    deliverer_id: Optional[int] = None
    deliverer_name: Optional[str] = None
    item_description: str
    quantity: int
    destination: str
    status: OrderStatus
    final_fee: Optional[int] = None
    cancel_reason: Optional[str] = None
    offer_count: int = 0
    offers: Optional[List[OfferSummary]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order, include_offers: bool = False) -> "OrderResponse":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            customer_name=order.customer.full_name if order.customer else None,
            deliverer_id=order.deliverer_id,
            deliverer_name=order.deliverer.full_name if order.deliverer else None,
            item_description=order.item_description,
            quantity=order.quantity,
            destination=order.destination,
            status=order.status,
            final_fee=order.final_fee,
            cancel_reason=order.cancel_reason,
            offer_count=len(order.offers),
            offers=[OfferSummary.from_orm(offer) for offer in order.offers] if include_offers else None,
            created_at=order.created_at,
            updated_at=order.updated_at,
            accepted_at=order.accepted_at,
            picked_up_at=order.picked_up_at,
            completed_at=order.completed_at,
            cancelled_at=order.cancelled_at,
        )
