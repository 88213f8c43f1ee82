"""Tests for WebSocket rooms and the socket notification endpoint."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from workpulse.main import create_app
from workpulse.services.realtime import RoomManager, room_for


def _socket(fail: bool = False):
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("socket closed") if fail else None)
    return ws


class TestRoomManager:
    def test_room_name(self) -> None:
        assert room_for("42") == "user_42"
        assert room_for(7) == "user_7"

    async def test_emit_reaches_joined_sockets_only(self) -> None:
        rooms = RoomManager()
        a, b, outsider = _socket(), _socket(), _socket()
        for ws in (a, b, outsider):
            await rooms.connect(ws)
        rooms.join(a, "u1")
        rooms.join(b, "u1")
        rooms.join(outsider, "u2")

        delivered = await rooms.emit("user_u1", "notification", {"message": "hi"})

        assert delivered == 2
        a.send_json.assert_awaited_once_with({"event": "notification", "data": {"message": "hi"}})
        b.send_json.assert_awaited_once()
        outsider.send_json.assert_not_awaited()

    async def test_emit_to_empty_room_is_noop(self) -> None:
        rooms = RoomManager()

        assert await rooms.emit("user_nobody", "notification", {}) == 0

    async def test_failed_socket_is_dropped(self) -> None:
        rooms = RoomManager()
        dead, alive = _socket(fail=True), _socket()
        await rooms.connect(dead)
        await rooms.connect(alive)
        rooms.join(dead, "u1")
        rooms.join(alive, "u1")

        assert await rooms.emit("user_u1", "notification", {}) == 1
        assert rooms.room_size("user_u1") == 1

    async def test_disconnect_leaves_every_room(self) -> None:
        rooms = RoomManager()
        ws = _socket()
        await rooms.connect(ws)
        rooms.join(ws, "u1")
        rooms.join(ws, "u2")

        rooms.disconnect(ws)

        assert rooms.room_size("user_u1") == 0
        assert rooms.room_size("user_u2") == 0
        assert rooms.connection_count() == 0

    async def test_join_twice_keeps_one_membership(self) -> None:
        rooms = RoomManager()
        ws = _socket()
        await rooms.connect(ws)
        rooms.join(ws, "u1")
        rooms.join(ws, "u1")

        assert rooms.room_size("user_u1") == 1


@pytest.fixture
def ws_client(monkeypatch):
    async def _no_tables():
        return None

    monkeypatch.setattr("workpulse.main.create_tables", _no_tables)
    with TestClient(create_app()) as tc:
        yield tc


class TestNotificationSocket:
    def test_join_then_receive_notification(self, ws_client) -> None:
        with ws_client.websocket_connect("/ws/notifications") as ws:
            ws.send_json({"event": "join", "userId": "u1"})
            assert ws.receive_json() == {"event": "joined", "data": {"room": "user_u1"}}

            response = ws_client.post(
                "/api/test-notification", json={"recipientId": "u1", "message": "Leave approved"}
            )
            assert response.status_code == 200
            assert response.json()["delivered"] == 1

            pushed = ws.receive_json()
            assert pushed["event"] == "notification"
            assert pushed["data"]["message"] == "Leave approved"

    def test_register_with_nested_payload(self, ws_client) -> None:
        with ws_client.websocket_connect("/ws/notifications") as ws:
            ws.send_json({"event": "register", "data": {"userId": "abc", "role": "member"}})
            assert ws.receive_json()["data"]["room"] == "user_abc"

    def test_join_without_user_id_reports_error(self, ws_client) -> None:
        with ws_client.websocket_connect("/ws/notifications") as ws:
            ws.send_json({"event": "join"})
            assert ws.receive_json() == {"event": "error", "data": {"detail": "Missing userId"}}

    def test_invalid_json_reports_error(self, ws_client) -> None:
        with ws_client.websocket_connect("/ws/notifications") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["event"] == "error"

    def test_emit_without_joined_socket_delivers_nothing(self, ws_client) -> None:
        response = ws_client.get("/api/test-notification", params={"recipientId": "offline"})

        assert response.status_code == 200
        assert response.json()["delivered"] == 0
        assert response.json()["notif"]["message"] == "Hello from GET route!"

    def test_test_notification_requires_recipient(self, ws_client) -> None:
        response = ws_client.post("/api/test-notification", json={"message": "hi"})

        assert response.status_code == 400
