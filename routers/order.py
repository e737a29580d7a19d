from fastapi import APIRouter, Depends, status, Query, BackgroundTasks
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.connection import get_db
from routers.auth import get_current_user
from models.order import OrderStatus
from models.user import User, UserRole
from schemas.order import OrderCreate, OrderStatusUpdate, OrderCancel, OrderResponse
from schemas.offer import OfferResponse
from services.order import OrderService
from services.offer import OfferService
from services.realtime import manager, room_for_order, order_event
from core.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Place a new delivery request that deliverers can bid on."""
    order = OrderService(db).create_order(
        requester=current_user,
        item_description=order_data.item_description,
        quantity=order_data.quantity,
        destination=order_data.destination
    )
    return success_response(data=OrderResponse.from_order(order), message="Order created")

@router.get("/available")
def list_available_orders(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Orders waiting for offers, newest first."""
    orders = OrderService(db).list_available(current_user, limit=limit, offset=offset)
    return success_response(
        data=[OrderResponse.from_order(order) for order in orders],
        message=f"Found {len(orders)} available orders"
    )

@router.get("/my-history")
def get_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Orders the user requested (customers) or was assigned (deliverers)."""
    orders = OrderService(db).get_my_orders(current_user, status=status_filter)
    include_offers = current_user.role == UserRole.CUSTOMER
    return success_response(
        data=[OrderResponse.from_order(order, include_offers=include_offers) for order in orders],
        message=f"Found {len(orders)} orders"
    )

@router.get("/my-active-jobs")
def get_my_active_jobs(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    orders = OrderService(db).get_active_jobs(current_user)
    return success_response(
        data=[OrderResponse.from_order(order) for order in orders],
        message=f"Found {len(orders)} active jobs"
    )

@router.get("/{order_id}")
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    order = OrderService(db).get_order(order_id, current_user)
    include_offers = order.customer_id == current_user.id
    return success_response(data=OrderResponse.from_order(order, include_offers=include_offers))

@router.post("/{order_id}/update-status")
def update_order_status(
    order_id: int,
    status_update: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Advance an order along its lifecycle (start delivery, complete, cancel)."""
    order = OrderService(db).update_status(order_id, current_user, status_update.status)
    background_tasks.add_task(manager.broadcast_to_room, room_for_order(order.id), order_event(order))
    return success_response(
        data=OrderResponse.from_order(order),
        message=f"Order status updated to {order.status.value}"
    )

@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    cancel_data: Optional[OrderCancel] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    reason = cancel_data.reason if cancel_data else None
    order = OrderService(db).cancel_order(order_id, current_user, reason=reason)
    background_tasks.add_task(manager.broadcast_to_room, room_for_order(order.id), order_event(order))
    return success_response(data=OrderResponse.from_order(order), message="Order cancelled")

@router.get("/{order_id}/offers")
def list_order_offers(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Offers on the order, cheapest first. Ties go to the earlier offer."""
    offers = OfferService(db).list_offers(order_id, current_user)
    return success_response(
        data=[OfferResponse.from_offer(offer, deliverer_rating=rating) for offer, rating in offers],
        message=f"Found {len(offers)} offers"
    )
