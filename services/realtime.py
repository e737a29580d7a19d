import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from models.user import User
from schemas.chat import MessageResponse

logger = logging.getLogger(__name__)


def room_for_order(order_id: int) -> str:
    return f"order_{order_id}"


def order_event(order, event_type: str = "status_changed") -> Dict[str, Any]:
    """Room payload describing an order's current lifecycle state"""
    return {
        "type": event_type,
        "order_id": order.id,
        "status": order.status.value,
        "deliverer_id": order.deliverer_id,
        "final_fee": order.final_fee,
        "timestamp": datetime.utcnow().isoformat()
    }


def message_event(message) -> Dict[str, Any]:
    """Room payload relaying a stored chat message"""
    return {
        "type": "receive_message",
        "message": MessageResponse.from_message(message).dict()
    }


class ConnectionManager:
    """
    WebSocket connection manager for per-order chat rooms.

    Rooms are keyed by order and only hold live sockets. Who may join a room is
    decided from the order row before join_room is called; the registry itself
    never grants access.
    """

    def __init__(self):
        # Store active connections with metadata
        self.active_connections: Dict[str, Dict] = {}
        # Room key -> connection ids
        self.rooms: Dict[str, Set[str]] = {}
        # Store user sessions
        self.user_sessions: Dict[int, Set[str]] = {}

    async def connect(self, websocket: WebSocket, user: User) -> str:
        """Accept WebSocket connection and register it"""
        await websocket.accept()

        connection_id = str(uuid.uuid4())

        self.active_connections[connection_id] = {
            "websocket": websocket,
            "user_id": user.id,
            "user_role": user.role.value,
            "rooms": set(),
            "connected_at": datetime.utcnow(),
            "last_activity": datetime.utcnow()
        }

        if user.id not in self.user_sessions:
            self.user_sessions[user.id] = set()
        self.user_sessions[user.id].add(connection_id)

        logger.info(f"WebSocket connection established: {connection_id} for user {user.id}")

        await self.send_personal_message(connection_id, {
            "type": "connection_established",
            "connection_id": connection_id,
            "user_id": user.id,
            "user_role": user.role.value,
            "timestamp": datetime.utcnow().isoformat()
        })

        return connection_id

    def disconnect(self, connection_id: str):
        """Remove connection and every room membership it holds"""
        connection_info = self.active_connections.pop(connection_id, None)
        if connection_info is None:
            return

        for room in list(connection_info["rooms"]):
            self._discard_member(room, connection_id)

        user_id = connection_info["user_id"]
        if user_id in self.user_sessions:
            self.user_sessions[user_id].discard(connection_id)
            if not self.user_sessions[user_id]:
                del self.user_sessions[user_id]

        logger.info(f"WebSocket connection closed: {connection_id}")

    def _discard_member(self, room: str, connection_id: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def join_room(self, connection_id: str, room: str) -> bool:
        if connection_id not in self.active_connections:
            return False
        self.rooms.setdefault(room, set()).add(connection_id)
        self.active_connections[connection_id]["rooms"].add(room)
        logger.info(f"Connection {connection_id} joined room {room}")
        return True

    def leave_room(self, connection_id: str, room: str) -> bool:
        connection_info = self.active_connections.get(connection_id)
        if connection_info is None or room not in connection_info["rooms"]:
            return False
        connection_info["rooms"].discard(room)
        self._discard_member(room, connection_id)
        logger.info(f"Connection {connection_id} left room {room}")
        return True

    def is_in_room(self, connection_id: str, room: str) -> bool:
        return connection_id in self.rooms.get(room, set())

    def get_room_members(self, room: str) -> List[str]:
        return list(self.rooms.get(room, set()))

    async def send_personal_message(self, connection_id: str, message: Dict[str, Any]):
        """Send message to specific connection"""
        connection_info = self.active_connections.get(connection_id)
        if connection_info is None:
            return

        try:
            await connection_info["websocket"].send_text(json.dumps(jsonable_encoder(message)))
            connection_info["last_activity"] = datetime.utcnow()
        except Exception as e:
            logger.error(f"Error sending message to {connection_id}: {str(e)}")
            self.disconnect(connection_id)

    async def broadcast_to_room(self, room: str, message: Dict[str, Any], exclude: Optional[str] = None):
        """Broadcast message to every connection in a room"""
        for connection_id in self.get_room_members(room):
            if connection_id == exclude:
                continue
            await self.send_personal_message(connection_id, message)

    def get_connection_stats(self) -> Dict[str, Any]:
        """Get statistics about active connections"""
        return {
            "total_connections": len(self.active_connections),
            "unique_users": len(self.user_sessions),
            "active_rooms": len(self.rooms),
            "timestamp": datetime.utcnow().isoformat()
        }


# Global connection manager instance
manager = ConnectionManager()
