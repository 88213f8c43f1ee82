"""
WebSocket rooms for live notifications.

A client joins the room ``user_<id>`` by sending a ``join`` (or
``register``) message after connecting; the server targets that room when
it emits. Emitting to an empty room is a no-op: there is no persistence,
acknowledgement or retry on this path.
"""

import logging
from typing import Any, Dict, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def room_for(user_id: Any) -> str:
    """Room name for a user's private channel."""
    return f"user_{user_id}"


class RoomManager:
    def __init__(self):
        # Maps room name to the sockets currently joined to it
        self.active_connections: Dict[str, List[WebSocket]] = {}
        # Reverse index so disconnect can leave every joined room
        self._memberships: Dict[int, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._memberships.setdefault(id(websocket), set())

    def join(self, websocket: WebSocket, user_id: Any) -> str:
        room = room_for(user_id)
        sockets = self.active_connections.setdefault(room, [])
        if websocket not in sockets:
            sockets.append(websocket)
        self._memberships.setdefault(id(websocket), set()).add(room)
        logger.info(f"Socket joined room {room} ({len(sockets)} in room)")
        return room

    def leave(self, websocket: WebSocket, room: str) -> None:
        sockets = self.active_connections.get(room)
        if sockets and websocket in sockets:
            sockets.remove(websocket)
            if not sockets:
                del self.active_connections[room]
        rooms = self._memberships.get(id(websocket))
        if rooms is not None:
            rooms.discard(room)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self._memberships.pop(id(websocket), ())):
            self.leave(websocket, room)
        logger.debug("Socket disconnected")

    async def emit(self, room: str, event: str, data: Dict[str, Any]) -> int:
        """Send ``{"event": event, "data": data}`` to every socket in a room.

        Returns the number of sockets written to. A socket whose send fails
        is dropped from all of its rooms.
        """
        sockets = list(self.active_connections.get(room, ()))
        delivered = 0
        for connection in sockets:
            try:
                await connection.send_json({"event": event, "data": data})
                delivered += 1
            except Exception as e:
                logger.warning(f"Socket send to {room} failed, dropping socket: {e}")
                self.disconnect(connection)
        return delivered

    def room_size(self, room: str) -> int:
        return len(self.active_connections.get(room, ()))

    def connection_count(self) -> int:
        return len(self._memberships)
