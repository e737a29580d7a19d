from fastapi import APIRouter, Depends, status, Query, BackgroundTasks
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from routers.auth import get_current_user
from models.user import User
from schemas.chat import MessageCreate, MessageResponse
from services.chat import ChatService
from services.realtime import manager, room_for_order, message_event
from core.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/my-list")
def get_chat_list(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Orders the user can chat about, most recent activity first."""
    chats = ChatService(db).get_chat_list(current_user)
    return success_response(data=chats, message=f"Found {len(chats)} chats")

@router.get("/{order_id}/messages")
def get_messages(
    order_id: int,
    limit: int = Query(200, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    messages = ChatService(db).get_messages(order_id, current_user, limit=limit, offset=offset)
    return success_response(data=[MessageResponse.from_message(m) for m in messages])

@router.post("/{order_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    order_id: int,
    message_data: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Send a chat message and relay it to everyone in the order's room."""
    message = ChatService(db).send_message(order_id, current_user, message_data.text)
    background_tasks.add_task(manager.broadcast_to_room, room_for_order(order_id), message_event(message))
    return success_response(data=MessageResponse.from_message(message), message="Message sent")
