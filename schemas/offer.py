from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from models.offer import Offer, OfferStatus
from schemas.order import OrderResponse


class OfferCreate(BaseModel):
    order_id: int
    fee: int


class OfferUpdate(BaseModel):
    fee: int


class OfferResponse(BaseModel):
    id: int
    order_id: int
    deliverer_id: int
    deliverer_name: Optional[str] = None
    deliverer_rating: Optional[float] = None
    fee: int
    status: OfferStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    @classmethod
    def from_offer(cls, offer: Offer, deliverer_rating: Optional[float] = None) -> "OfferResponse":
        return cls(
            id=offer.id,
            order_id=offer.order_id,
            deliverer_id=offer.deliverer_id,
            deliverer_name=offer.deliverer.full_name if offer.deliverer else None,
            deliverer_rating=deliverer_rating,
            fee=offer.fee,
            status=offer.status,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            accepted_at=offer.accepted_at,
        )


class OfferAcceptResponse(BaseModel):
    order: OrderResponse
    offer: OfferResponse
