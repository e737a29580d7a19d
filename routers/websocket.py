from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from datetime import datetime
import json
import logging
import asyncio

from database.connection import get_db
from models.user import User
from services.auth import resolve_user_from_token
from services.chat import ChatService
from services.realtime import manager, room_for_order, message_event
from core.exceptions import BaseCustomException, AuthenticationError, ValidationError

router = APIRouter()
logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 30.0

@router.websocket("/ws/chat")
async def websocket_chat_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    WebSocket endpoint for per-order chat rooms
    """
    connection_id = None

    try:
        try:
            user = resolve_user_from_token(db, token)
        except AuthenticationError as e:
            await websocket.close(code=4001, reason=e.message)
            return

        connection_id = await manager.connect(websocket, user)

        while True:
            try:
                frame = await asyncio.wait_for(websocket.receive(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                # Send ping to keep connection alive
                await manager.send_personal_message(connection_id, {
                    "type": "ping",
                    "timestamp": datetime.utcnow().isoformat()
                })
                continue

            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            if frame.get("text") is None:
                await send_error(connection_id, "Only JSON text frames are supported", "INVALID_FRAME")
                continue

            await handle_websocket_message(connection_id, frame["text"], user, db)

    except WebSocketDisconnect:
        logger.info(f"Chat WebSocket disconnected: {connection_id}")
    finally:
        if connection_id:
            manager.disconnect(connection_id)

async def send_error(connection_id: str, message: str, error_code: str, details: Dict[str, Any] = None):
    await manager.send_personal_message(connection_id, {
        "type": "error",
        "message": message,
        "error_code": error_code,
        "details": details or {},
        "timestamp": datetime.utcnow().isoformat()
    })

def _order_id_from(data: Dict[str, Any]) -> int:
    try:
        return int(data.get("order_id"))
    except (TypeError, ValueError):
        raise ValidationError("order_id must be an integer", field="order_id")

async def handle_websocket_message(connection_id: str, message: str, user: User, db: Session):
    """Handle incoming WebSocket messages"""
    try:
        data = json.loads(message)
    except json.JSONDecodeError:
        await send_error(connection_id, "Invalid JSON format", "INVALID_JSON")
        return

    if not isinstance(data, dict):
        await send_error(connection_id, "Events must be JSON objects", "INVALID_EVENT")
        return

    # The socket keeps one session open; see other requests' commits
    db.expire_all()

    message_type = data.get("type")
    try:
        if message_type == "join_room":
            await handle_join_room(connection_id, data, user, db)

        elif message_type == "leave_room":
            order_id = _order_id_from(data)
            manager.leave_room(connection_id, room_for_order(order_id))
            await manager.send_personal_message(connection_id, {
                "type": "room_left",
                "order_id": order_id,
                "timestamp": datetime.utcnow().isoformat()
            })

        elif message_type == "send_message":
            await handle_send_message(connection_id, data, user, db)

        elif message_type == "ping":
            await manager.send_personal_message(connection_id, {
                "type": "pong",
                "timestamp": datetime.utcnow().isoformat()
            })

        elif message_type == "pong":
            pass

        else:
            await send_error(connection_id, f"Unknown message type: {message_type}", "UNKNOWN_EVENT")

    except BaseCustomException as e:
        logger.info(f"Rejected {message_type} from user {user.id}: {e.message}")
        await send_error(connection_id, e.message, type(e).__name__, e.details)
    except Exception as e:
        logger.error(f"Error handling WebSocket message: {str(e)}", exc_info=True)
        db.rollback()
        await send_error(connection_id, "Internal server error", "INTERNAL_SERVER_ERROR")

async def handle_join_room(connection_id: str, data: Dict[str, Any], user: User, db: Session):
    """Join an order's room; only the customer and the assigned deliverer may"""
    order_id = _order_id_from(data)
    order = ChatService(db).get_chat_order(order_id, user)

    manager.join_room(connection_id, room_for_order(order.id))
    await manager.send_personal_message(connection_id, {
        "type": "room_joined",
        "order_id": order.id,
        "status": order.status.value,
        "timestamp": datetime.utcnow().isoformat()
    })

async def handle_send_message(connection_id: str, data: Dict[str, Any], user: User, db: Session):
    """Persist a message from the authenticated user and relay it to the room"""
    order_id = _order_id_from(data)
    stored = ChatService(db).send_message(order_id, user, data.get("text"))

    room = room_for_order(order_id)
    event = message_event(stored)
    await manager.broadcast_to_room(room, event)

    # A sender that never joined still gets its own message back
    if not manager.is_in_room(connection_id, room):
        await manager.send_personal_message(connection_id, event)
