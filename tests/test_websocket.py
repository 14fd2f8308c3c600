"""
Tests for the /ws push channel, using the real connection manager.
"""
import pytest
from starlette.websockets import WebSocketDisconnect

from src.shared.notifications.database import Notification
from src.shared.realtime.connection_manager import ConnectionManager, build_frame


def token_of(headers):
    return headers["Authorization"].split(" ", 1)[1]


def user_id_of(client, headers):
    return client.get("/api/users/me", headers=headers).json()["id"]


class TestConnectionManager:

    def test_offline_user_is_not_delivered(self):
        assert ConnectionManager().send_to_user(42, "/queue/messages", {"content": "hi"}) is False

    def test_frame_envelope(self):
        frame = build_frame("/queue/read-receipts", 7)
        assert frame == {"destination": "/user/queue/read-receipts", "payload": 7}


class TestWebSocket:

    def test_invalid_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws?token=not-a-token") as ws:
                ws.receive_json()
        assert exc.value.code == 1008

    def test_missing_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()

    def test_send_message_and_read_receipt(self, client, register):
        alice = register(client, "alice")
        bob = register(client, "bob")
        alice_id = user_id_of(client, alice)
        bob_id = user_id_of(client, bob)

        with client.websocket_connect(f"/ws?token={token_of(alice)}") as alice_ws, \
                client.websocket_connect(f"/ws?token={token_of(bob)}") as bob_ws:
            alice_ws.send_json({
                "destination": "/app/chat.sendMessage",
                "payload": {"receiverId": bob_id, "content": "over the wire"},
            })
            frame = bob_ws.receive_json()
            assert frame["destination"] == "/user/queue/messages"
            assert frame["payload"]["content"] == "over the wire"
            assert frame["payload"]["sender_id"] == alice_id
            chat_id = frame["payload"]["chat_id"]

            bob_ws.send_json({"destination": "/app/chat.markRead", "payload": {"chatId": chat_id}})
            receipt = alice_ws.receive_json()
            assert receipt == {"destination": "/user/queue/read-receipts", "payload": chat_id}

    def test_unknown_destination_reports_error(self, client, register):
        alice = register(client, "alice")
        with client.websocket_connect(f"/ws?token={token_of(alice)}") as ws:
            ws.send_json({"destination": "/app/nope", "payload": {}})
            frame = ws.receive_json()
        assert frame["destination"] == "/user/queue/errors"
        assert frame["payload"]["status_code"] == 400

    def test_messaging_yourself_reports_error(self, client, register):
        alice = register(client, "alice")
        alice_id = user_id_of(client, alice)
        with client.websocket_connect(f"/ws?token={token_of(alice)}") as ws:
            ws.send_json({
                "destination": "/app/chat.sendMessage",
                "payload": {"receiver_id": alice_id, "content": "me"},
            })
            frame = ws.receive_json()
        assert frame["destination"] == "/user/queue/errors"
        assert frame["payload"]["status_code"] == 400

    def test_rest_message_reaches_open_socket(self, client, register):
        alice = register(client, "alice")
        bob = register(client, "bob")
        bob_id = user_id_of(client, bob)

        with client.websocket_connect(f"/ws?token={token_of(bob)}") as bob_ws:
            response = client.post("/api/chats/message", headers=alice, json={"receiverId": bob_id, "content": "rest"})
            assert response.status_code == 200
            frame = bob_ws.receive_json()
        assert frame["destination"] == "/user/queue/messages"
        assert frame["payload"]["content"] == "rest"

    def test_notification_marked_delivered_when_online(self, client, register, db):
        alice = register(client, "alice")
        bob = register(client, "bob")
        bob_id = user_id_of(client, bob)

        with client.websocket_connect(f"/ws?token={token_of(bob)}") as bob_ws:
            client.post(f"/api/follows/{bob_id}", headers=alice)
            frame = bob_ws.receive_json()
        assert frame["destination"] == "/user/queue/notifications"
        assert frame["payload"]["type"] == "FOLLOW"
        assert db.query(Notification).one().is_delivered is True

    def test_notification_not_delivered_when_offline(self, client, register, db):
        alice = register(client, "alice")
        bob = register(client, "bob")
        client.post(f"/api/follows/{user_id_of(client, bob)}", headers=alice)
        assert db.query(Notification).one().is_delivered is False
