"""
End-to-end realtime tests over the /ws endpoint.

These run the full stack: handshake auth, gateway, store (SQLite via worker
threads) and background fan-out. Leaving the TestClient block runs the
application shutdown, which drains background work before assertions on
notifications.
"""

import json

from fastapi.testclient import TestClient
import pytest
from starlette.websockets import WebSocketDisconnect

from sparfinder.auth import create_access_token
from sparfinder.models.notification import Notification
from sparfinder.repositories.message_repository import MessageRepository
from sparfinder.services.conversation_service import ConversationService


def ws_url(user):
    return f"/ws?token={create_access_token(user.id)}"


@pytest.fixture
def conversation_id(db, alice, bob):
    return ConversationService(db).get_or_create_one_on_one_conversation(alice.id, bob.id)


def join(ws, conversation_id):
    ws.send_json({"event": "join_conversation", "data": {"conversationId": conversation_id}})
    ack = ws.receive_json()
    history = ws.receive_json()
    return ack, history


class TestHandshake:
    def test_missing_token_is_rejected(self, app):
        with TestClient(app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws"):
                    pass

        assert exc_info.value.code == 4401

    def test_invalid_token_is_rejected(self, app):
        with TestClient(app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws?token=not-a-jwt"):
                    pass

        assert exc_info.value.code == 4401

    def test_bearer_header_is_accepted(self, app, alice, bob, conversation_id, headers_for):
        with TestClient(app) as client:
            with client.websocket_connect("/ws", headers=headers_for(alice)) as ws:
                ack, _ = join(ws, conversation_id)

        assert ack == {"event": "join_conversation_ack", "data": {"conversationId": conversation_id}}


class TestChatFlow:
    def test_join_returns_history_oldest_first(self, app, db, alice, bob, conversation_id):
        repo = MessageRepository(db)
        for content in ("one", "two", "three"):
            repo.create_message(
                conversation_id=conversation_id,
                sender_id=bob.id,
                receiver_id=alice.id,
                content=content,
            )
        db.commit()

        with TestClient(app) as client:
            with client.websocket_connect(ws_url(alice)) as ws:
                ack, history = join(ws, conversation_id)

        assert ack["event"] == "join_conversation_ack"
        assert history["event"] == "conversation_history"
        messages = history["data"]["messages"]
        assert [m["content"] for m in messages] == ["one", "two", "three"]
        assert messages[0]["sender"]["profile"]["firstName"] == "Bob"
        db.expire_all()
        assert ConversationService(db).count_unread(conversation_id, alice.id) == 0

    def test_message_reaches_both_sides_and_notifies(self, app, db, alice, bob, conversation_id):
        with TestClient(app) as client:
            with client.websocket_connect(ws_url(alice)) as alice_ws, client.websocket_connect(
                ws_url(bob)
            ) as bob_ws:
                join(alice_ws, conversation_id)
                join(bob_ws, conversation_id)

                alice_ws.send_json(
                    {
                        "event": "send_message",
                        "data": {"conversationId": conversation_id, "content": "Sparring at 6?"},
                    }
                )
                to_alice = alice_ws.receive_json()
                to_bob = bob_ws.receive_json()

        assert to_alice == to_bob
        assert to_bob["event"] == "new_message"
        message = to_bob["data"]["message"]
        assert to_bob["data"]["conversationId"] == conversation_id
        assert message["content"] == "Sparring at 6?"
        assert message["senderId"] == alice.id
        assert message["receiverId"] == bob.id

        db.expire_all()
        notifications = db.query(Notification).filter_by(recipient_id=bob.id).all()
        assert len(notifications) == 1
        assert notifications[0].title == "New message from Alice Anders"
        assert notifications[0].body == "Sparring at 6?"
        assert db.query(Notification).filter_by(recipient_id=alice.id).count() == 0

    def test_read_receipt_reaches_sender(self, app, db, alice, bob, conversation_id):
        message = MessageRepository(db).create_message(
            conversation_id=conversation_id,
            sender_id=alice.id,
            receiver_id=bob.id,
            content="read me",
        )
        db.commit()

        with TestClient(app) as client:
            with client.websocket_connect(ws_url(alice)) as alice_ws, client.websocket_connect(
                ws_url(bob)
            ) as bob_ws:
                join(alice_ws, conversation_id)
                join(bob_ws, conversation_id)

                bob_ws.send_json(
                    {
                        "event": "message_read",
                        "data": {"conversationId": conversation_id, "messageId": message.id},
                    }
                )
                receipt = alice_ws.receive_json()

        assert receipt == {
            "event": "message_read_ack",
            "data": {
                "conversationId": conversation_id,
                "messageId": message.id,
                "userId": bob.id,
            },
        }
        db.expire_all()
        assert MessageRepository(db).get_by_id(message.id, load_relationships=False).is_read is True

    def test_outsider_cannot_join(self, app, carol, conversation_id):
        with TestClient(app) as client:
            with client.websocket_connect(ws_url(carol)) as ws:
                ws.send_json(
                    {"event": "join_conversation", "data": {"conversationId": conversation_id}}
                )
                reply = ws.receive_json()

        assert reply == {
            "event": "error",
            "data": {
                "message": f"Not a participant of conversation {conversation_id}",
                "context": "join_conversation",
            },
        }

    def test_binary_frames_are_parsed(self, app, alice, conversation_id):
        with TestClient(app) as client:
            with client.websocket_connect(ws_url(alice)) as ws:
                ws.send_bytes(b"not json")
                reply = ws.receive_json()

                ws.send_bytes(
                    json.dumps(
                        {"event": "join_conversation", "data": {"conversationId": conversation_id}}
                    ).encode()
                )
                ack = ws.receive_json()
                history = ws.receive_json()

        assert reply == {"event": "error", "data": {"message": "Malformed frame", "context": "message"}}
        assert ack == {"event": "join_conversation_ack", "data": {"conversationId": conversation_id}}
        assert history["event"] == "conversation_history"

    def test_client_disconnect_event_closes_socket(self, app, alice):
        with TestClient(app) as client:
            with client.websocket_connect(ws_url(alice)) as ws:
                ws.send_json({"event": "disconnect", "data": None})
                with pytest.raises(WebSocketDisconnect):
                    ws.receive_json()

            assert app.state.registry.room_count() == 0
