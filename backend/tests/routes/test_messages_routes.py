# tests/routes/test_messages_routes.py
"""
Messages API routes tests.

Covers history paging, sending (with realtime broadcast and background
notification), edits, per-side deletion and read marking.
"""

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
import pytest

from sparfinder.auth import create_access_token
from sparfinder.models.notification import Notification
from sparfinder.repositories.message_repository import MessageRepository
from sparfinder.services.conversation_service import ConversationService


@pytest.fixture
def conversation_id(db, alice, bob):
    return ConversationService(db).get_or_create_one_on_one_conversation(alice.id, bob.id)


@pytest.fixture
def message(db, conversation_id, alice, bob):
    created = MessageRepository(db).create_message(
        conversation_id=conversation_id,
        sender_id=alice.id,
        receiver_id=bob.id,
        content="Hello Bob",
    )
    db.commit()
    return created


class TestConversationHistory:
    def test_paged_history(self, client, db, conversation_id, alice, bob, headers_for):
        repo = MessageRepository(db)
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)
        for i in range(120):
            repo.create_message(
                conversation_id=conversation_id,
                sender_id=alice.id,
                receiver_id=bob.id,
                content=f"m{i + 1}",
                sent_at=base + timedelta(seconds=i),
            )
        db.commit()

        res = client.get(
            f"/api/v1/messages/conversation/{conversation_id}?page=2&limit=50",
            headers=headers_for(bob),
        )

        assert res.status_code == 200
        contents = [m["content"] for m in res.json()["messages"]]
        assert contents == [f"m{i}" for i in range(51, 101)]

    def test_message_shape(self, client, conversation_id, message, auth_headers):
        res = client.get(f"/api/v1/messages/conversation/{conversation_id}", headers=auth_headers)

        (body,) = res.json()["messages"]
        assert body["id"] == message.id
        assert body["conversationId"] == conversation_id
        assert body["messageType"] == "text"
        assert body["isRead"] is False
        assert body["sender"]["profile"] == {
            "firstName": "Alice",
            "lastName": "Anders",
            "photoUrl": "https://cdn.example.com/alice.png",
        }
        assert body["receiver"]["profile"]["firstName"] == "Bob"

    def test_limit_over_maximum(self, client, conversation_id, auth_headers):
        res = client.get(
            f"/api/v1/messages/conversation/{conversation_id}?limit=1000", headers=auth_headers
        )

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_PAYLOAD"

    def test_page_zero(self, client, conversation_id, auth_headers):
        res = client.get(
            f"/api/v1/messages/conversation/{conversation_id}?page=0", headers=auth_headers
        )

        assert res.status_code == 400

    def test_outsider(self, client, conversation_id, carol, headers_for):
        res = client.get(
            f"/api/v1/messages/conversation/{conversation_id}", headers=headers_for(carol)
        )

        assert res.status_code == 403


class TestSendMessage:
    def test_send_broadcasts_and_notifies(self, app, db, conversation_id, alice, bob, auth_headers):
        with TestClient(app) as client:
            with client.websocket_connect(f"/ws?token={create_access_token(bob.id)}") as bob_ws:
                bob_ws.send_json(
                    {"event": "join_conversation", "data": {"conversationId": conversation_id}}
                )
                bob_ws.receive_json()
                bob_ws.receive_json()

                res = client.post(
                    "/api/v1/messages",
                    json={"conversationId": conversation_id, "content": "Over REST"},
                    headers=auth_headers,
                )
                pushed = bob_ws.receive_json()

        assert res.status_code == 201
        sent = res.json()["message"]
        assert sent["content"] == "Over REST"
        assert sent["receiverId"] == bob.id
        assert pushed["event"] == "new_message"
        assert pushed["data"]["message"]["id"] == sent["id"]

        db.expire_all()
        (notification,) = db.query(Notification).filter_by(recipient_id=bob.id).all()
        assert notification.title == "New message from Alice Anders"
        assert notification.data["conversationId"] == str(conversation_id)

    def test_outsider_cannot_send(self, client, conversation_id, carol, headers_for):
        res = client.post(
            "/api/v1/messages",
            json={"conversationId": conversation_id, "content": "hi"},
            headers=headers_for(carol),
        )

        assert res.status_code == 403

    def test_empty_content(self, client, conversation_id, auth_headers):
        res = client.post(
            "/api/v1/messages",
            json={"conversationId": conversation_id, "content": ""},
            headers=auth_headers,
        )

        assert res.status_code == 422


class TestSingleMessage:
    def test_get(self, client, message, headers_for, bob):
        res = client.get(f"/api/v1/messages/{message.id}", headers=headers_for(bob))

        assert res.status_code == 200
        assert res.json()["message"]["content"] == "Hello Bob"

    def test_get_missing(self, client, auth_headers):
        res = client.get("/api/v1/messages/9999", headers=auth_headers)

        assert res.status_code == 404
        assert res.json()["code"] == "MESSAGE_NOT_FOUND"

    def test_get_invalid_id(self, client, auth_headers):
        res = client.get("/api/v1/messages/latest", headers=auth_headers)

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_ID"

    def test_get_superscript_digit_id(self, client, auth_headers):
        res = client.get("/api/v1/messages/%C2%B2", headers=auth_headers)

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_ID"

    def test_edit(self, client, message, auth_headers):
        res = client.put(
            f"/api/v1/messages/{message.id}", json={"content": "Hello again"}, headers=auth_headers
        )

        assert res.status_code == 200
        assert res.json()["message"]["content"] == "Hello again"

    def test_edit_by_receiver(self, client, message, bob, headers_for):
        res = client.put(
            f"/api/v1/messages/{message.id}", json={"content": "nope"}, headers=headers_for(bob)
        )

        assert res.status_code == 403

    def test_delete_hides_for_caller_only(self, client, message, bob, auth_headers, headers_for):
        res = client.delete(f"/api/v1/messages/{message.id}", headers=auth_headers)

        assert res.json() == {"messageId": message.id, "deletedFor": "sender"}
        assert client.get(f"/api/v1/messages/{message.id}", headers=auth_headers).status_code == 404
        assert client.get(f"/api/v1/messages/{message.id}", headers=headers_for(bob)).status_code == 200

        again = client.delete(f"/api/v1/messages/{message.id}", headers=auth_headers)
        assert again.status_code == 400
        assert again.json()["code"] == "ALREADY_DELETED"


class TestMarkRead:
    def test_read_once(self, client, conversation_id, message, bob, headers_for):
        url = f"/api/v1/messages/{message.id}/read"
        body = {"conversationId": conversation_id}

        first = client.post(url, json=body, headers=headers_for(bob))
        second = client.post(url, json=body, headers=headers_for(bob))

        assert first.json() == {"messageId": message.id, "isRead": True, "changed": True}
        assert second.json() == {"messageId": message.id, "isRead": True, "changed": False}

    def test_wrong_conversation(self, client, db, message, alice, bob, carol, headers_for):
        group = ConversationService(db).create_conversation([alice.id, bob.id, carol.id])

        res = client.post(
            f"/api/v1/messages/{message.id}/read",
            json={"conversationId": group.id},
            headers=headers_for(bob),
        )

        assert res.status_code == 404
