from fastapi import APIRouter, Depends, status, BackgroundTasks
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from routers.auth import get_current_user
from models.user import User
from schemas.offer import OfferCreate, OfferUpdate, OfferResponse, OfferAcceptResponse
from schemas.order import OrderResponse
from services.offer import OfferService
from services.realtime import manager, room_for_order, order_event
from core.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("", status_code=status.HTTP_201_CREATED)
def create_offer(
    offer_data: OfferCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Bid a delivery fee on an order that is waiting for offers."""
    offer = OfferService(db).create_offer(offer_data.order_id, current_user, offer_data.fee)
    return success_response(data=OfferResponse.from_offer(offer), message="Offer submitted")

@router.put("/{offer_id}")
def update_offer(
    offer_id: int,
    offer_data: OfferUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Revise the fee of your pending offer."""
    offer = OfferService(db).update_offer(offer_id, current_user, offer_data.fee)
    return success_response(data=OfferResponse.from_offer(offer), message="Offer updated")

@router.post("/{offer_id}/accept")
def accept_offer(
    offer_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Accept an offer, assigning its deliverer to the order at the offered fee."""
    order, offer = OfferService(db).accept_offer(offer_id, current_user)

    room = room_for_order(order.id)
    background_tasks.add_task(manager.broadcast_to_room, room, order_event(order, "offer_accepted"))
    background_tasks.add_task(manager.broadcast_to_room, room, order_event(order))

    result = OfferAcceptResponse(
        order=OrderResponse.from_order(order),
        offer=OfferResponse.from_offer(offer)
    )
    return success_response(data=result, message="Offer accepted")
