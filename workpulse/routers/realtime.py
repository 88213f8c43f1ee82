"""
WebSocket notification router — clients join their private room and receive pushes.

Endpoints:
    WS   /ws/notifications             → join ``user_<id>``, receive ``notification`` events
    GET  /api/test-notification        → emit a throwaway notification to a room
    POST /api/test-notification        → same, JSON body
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from workpulse.dependencies import get_rooms
from workpulse.schemas.notification import SampleNotificationIn
from workpulse.services.realtime import RoomManager, room_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

JOIN_EVENTS = {"join", "register"}


def _join_target(message: Any) -> Optional[str]:
    """User id carried by a join message, in any of the shapes clients send."""
    data = message.get("data", message.get("userId"))
    if isinstance(data, dict):
        data = data.get("userId")
    if data is None or isinstance(data, bool) or not str(data).strip():
        return None
    return str(data).strip()


# ==============================================================================
# WebSocket endpoint
# ==============================================================================

@router.websocket("/ws/notifications")
async def websocket_notifications(websocket: WebSocket):
    """
    Notification socket. After connecting, the client sends
    ``{"event": "join", "userId": "<id>"}`` and then only listens.
    """
    rooms: RoomManager = websocket.app.state.rooms
    await rooms.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"event": "error", "data": {"detail": "Expected an object"}})
                continue

            event = message.get("event")
            if event in JOIN_EVENTS:
                user_id = _join_target(message)
                if user_id is None:
                    await websocket.send_json({"event": "error", "data": {"detail": "Missing userId"}})
                    continue
                room = rooms.join(websocket, user_id)
                await websocket.send_json({"event": "joined", "data": {"room": room}})
            else:
                logger.debug(f"Ignoring socket event {event!r}")

    except WebSocketDisconnect:
        logger.debug("Notification socket closed by client")
    finally:
        rooms.disconnect(websocket)


# ==============================================================================
# Test emit (non-persisted)
# ==============================================================================

async def _emit_sample(rooms: RoomManager, recipient_id: Optional[str], message: Optional[str], title: str) -> dict:
    if not recipient_id or not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="recipientId and message required",
        )
    now = datetime.now(timezone.utc)
    notif = {
        "id": int(now.timestamp() * 1000),
        "title": title,
        "message": message,
        "timestamp": now.isoformat(),
    }
    delivered = await rooms.emit(room_for(recipient_id), "notification", notif)
    return {"success": True, "delivered": delivered, "notif": notif}


@router.post("/api/test-notification")
async def post_test_notification(
    body: SampleNotificationIn,
    rooms: RoomManager = Depends(get_rooms),
):
    """Emit a sample notification to the recipient's room without storing it."""
    return await _emit_sample(rooms, body.recipient_id, body.message, "Test Notification")


@router.get("/api/test-notification")
async def get_test_notification(
    recipient_id: Optional[str] = Query(default=None, alias="recipientId"),
    message: str = Query(default="Hello from GET route!"),
    rooms: RoomManager = Depends(get_rooms),
):
    return await _emit_sample(rooms, recipient_id, message, "Test Notification (GET)")
