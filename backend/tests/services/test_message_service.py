"""
Tests for MessageService.

Creation (receiver derivation), paginated history with per-side
visibility, single-message lookup, edits, per-side deletion and
message-level read marking.
"""

from datetime import datetime, timedelta, timezone

import pytest

from sparfinder.core.exceptions import (
    AlreadyDeletedException,
    ForbiddenException,
    InvalidPayloadException,
    NotFoundException,
)
from sparfinder.repositories.message_repository import MessageRepository
from sparfinder.services.conversation_service import ConversationService
from sparfinder.services.message_service import MessageService


@pytest.fixture
def service(db):
    return MessageService(db)


@pytest.fixture
def pair_id(db, alice, bob):
    return ConversationService(db).get_or_create_one_on_one_conversation(alice.id, bob.id)


@pytest.fixture
def group_id(db, alice, bob, carol):
    summary = ConversationService(db).create_conversation([alice.id, bob.id, carol.id])
    return summary.id


class TestCreateMessage:
    def test_pair_message_has_receiver(self, service, pair_id, alice, bob):
        message = service.create_message(alice.id, pair_id, "Hi Bob")

        assert message.sender_id == alice.id
        assert message.receiver_id == bob.id
        assert message.message_type == "text"
        assert message.is_read is False
        assert message.sender.profile.first_name == "Alice"

    def test_group_message_has_no_receiver(self, service, group_id, alice):
        message = service.create_message(alice.id, group_id, "Hi all")

        assert message.receiver_id is None

    def test_media_fields_are_stored(self, service, pair_id, alice):
        message = service.create_message(
            alice.id,
            pair_id,
            "look",
            message_type="image",
            media_url="https://cdn.example.com/p.png",
        )

        assert message.message_type == "image"
        assert message.media_url == "https://cdn.example.com/p.png"


class TestConversationHistory:
    def test_non_participant_is_forbidden(self, service, pair_id, carol):
        with pytest.raises(ForbiddenException):
            service.get_conversation_messages(carol.id, pair_id)

    def test_invalid_paging(self, service, pair_id, alice):
        with pytest.raises(InvalidPayloadException):
            service.get_conversation_messages(alice.id, pair_id, page=0)
        with pytest.raises(InvalidPayloadException):
            service.get_conversation_messages(alice.id, pair_id, limit=0)

    def test_group_history_without_receiver(self, service, group_id, alice, bob):
        service.create_message(alice.id, group_id, "hi group")

        assert [m.content for m in service.get_conversation_messages(alice.id, group_id)] == [
            "hi group"
        ]
        assert service.get_conversation_messages(bob.id, group_id) == []

    def test_page_two_of_fifty(self, db, service, pair_id, alice, bob):
        repo = MessageRepository(db)
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(120):
            repo.create_message(
                conversation_id=pair_id,
                sender_id=alice.id if i % 2 == 0 else bob.id,
                receiver_id=bob.id if i % 2 == 0 else alice.id,
                content=f"m{i + 1}",
                sent_at=base + timedelta(seconds=i),
            )
        db.commit()

        page = service.get_conversation_messages(bob.id, pair_id, page=2, limit=50)

        assert [m.content for m in page] == [f"m{i}" for i in range(51, 101)]
        sent = [m.sent_at for m in page]
        assert sent == sorted(sent)

    def test_default_page_size(self, db, service, pair_id, alice, bob):
        repo = MessageRepository(db)
        for i in range(60):
            repo.create_message(
                conversation_id=pair_id, sender_id=alice.id, receiver_id=bob.id, content=str(i)
            )
        db.commit()

        assert len(service.get_conversation_messages(bob.id, pair_id)) == 50

    def test_deleted_messages_hidden_for_deleting_side_only(
        self, service, pair_id, alice, bob
    ):
        kept = service.create_message(alice.id, pair_id, "kept")
        removed = service.create_message(alice.id, pair_id, "removed")
        service.delete_message(removed.id, alice.id)

        for_alice = service.get_conversation_messages(alice.id, pair_id)
        for_bob = service.get_conversation_messages(bob.id, pair_id)

        assert [m.id for m in for_alice] == [kept.id]
        assert [m.id for m in for_bob] == [kept.id, removed.id]


class TestGetMessage:
    def test_participant_can_fetch(self, service, pair_id, alice, bob):
        message = service.create_message(alice.id, pair_id, "hello")

        assert service.get_message_by_id(message.id, bob.id).id == message.id

    def test_missing_message(self, service, alice):
        with pytest.raises(NotFoundException) as exc_info:
            service.get_message_by_id(9999, alice.id)

        assert exc_info.value.code == "MESSAGE_NOT_FOUND"

    def test_non_participant_is_forbidden(self, service, pair_id, alice, carol):
        message = service.create_message(alice.id, pair_id, "private")

        with pytest.raises(ForbiddenException):
            service.get_message_by_id(message.id, carol.id)

    def test_delete_then_get(self, service, pair_id, alice, bob):
        """Deleting on one side hides the message from that side only."""
        message = service.create_message(alice.id, pair_id, "gone for me")

        message_id, deleted_for = service.delete_message(message.id, alice.id)

        assert (message_id, deleted_for) == (message.id, "sender")
        with pytest.raises(NotFoundException):
            service.get_message_by_id(message.id, alice.id)
        assert service.get_message_by_id(message.id, bob.id).content == "gone for me"


class TestUpdateMessage:
    def test_sender_can_edit(self, service, pair_id, alice):
        message = service.create_message(alice.id, pair_id, "typo")

        updated = service.update_message(message.id, alice.id, content="fixed")

        assert updated.content == "fixed"
        assert updated.message_type == "text"

    def test_only_given_fields_change(self, service, pair_id, alice):
        message = service.create_message(
            alice.id, pair_id, "pic", message_type="image", media_url="https://cdn.example.com/a.png"
        )

        updated = service.update_message(message.id, alice.id, content="caption")

        assert updated.message_type == "image"
        assert updated.media_url == "https://cdn.example.com/a.png"

    def test_media_url_can_be_cleared(self, service, pair_id, alice):
        message = service.create_message(
            alice.id, pair_id, "pic", media_url="https://cdn.example.com/a.png"
        )

        updated = service.update_message(message.id, alice.id, media_url=None)

        assert updated.media_url is None

    def test_receiver_cannot_edit(self, service, pair_id, alice, bob):
        message = service.create_message(alice.id, pair_id, "mine")

        with pytest.raises(ForbiddenException):
            service.update_message(message.id, bob.id, content="hijack")

    def test_missing_message(self, service, alice):
        with pytest.raises(NotFoundException):
            service.update_message(9999, alice.id, content="x")

    def test_cannot_edit_after_deleting(self, service, pair_id, alice):
        message = service.create_message(alice.id, pair_id, "bye")
        service.delete_message(message.id, alice.id)

        with pytest.raises(AlreadyDeletedException):
            service.update_message(message.id, alice.id, content="back")


class TestDeleteMessage:
    def test_receiver_deletes_own_side(self, service, pair_id, alice, bob):
        message = service.create_message(alice.id, pair_id, "hi")

        assert service.delete_message(message.id, bob.id) == (message.id, "receiver")
        assert service.get_message_by_id(message.id, alice.id).deleted_by_sender is False

    def test_second_delete_is_rejected(self, service, pair_id, alice):
        message = service.create_message(alice.id, pair_id, "hi")
        service.delete_message(message.id, alice.id)

        with pytest.raises(AlreadyDeletedException):
            service.delete_message(message.id, alice.id)

    def test_outsider_is_forbidden(self, service, pair_id, alice, carol):
        message = service.create_message(alice.id, pair_id, "hi")

        with pytest.raises(ForbiddenException):
            service.delete_message(message.id, carol.id)

    def test_missing_message(self, service, alice):
        with pytest.raises(NotFoundException):
            service.delete_message(9999, alice.id)


class TestMarkAsRead:
    def test_marks_once(self, service, pair_id, alice, bob):
        message = service.create_message(alice.id, pair_id, "read me")

        assert service.mark_as_read(pair_id, bob.id, message.id) is True
        first = service.get_message_by_id(message.id, bob.id)
        read_at = first.read_at
        assert first.is_read is True
        assert read_at is not None

        assert service.mark_as_read(pair_id, bob.id, message.id) is False
        assert service.get_message_by_id(message.id, bob.id).read_at == read_at

    def test_missing_message(self, service, pair_id, bob):
        with pytest.raises(NotFoundException):
            service.mark_as_read(pair_id, bob.id, 9999)

    def test_message_from_another_conversation(self, service, pair_id, group_id, alice, bob):
        message = service.create_message(alice.id, group_id, "elsewhere")

        with pytest.raises(NotFoundException):
            service.mark_as_read(pair_id, bob.id, message.id)

    def test_non_participant_is_forbidden(self, service, pair_id, alice, carol):
        message = service.create_message(alice.id, pair_id, "hi")

        with pytest.raises(ForbiddenException):
            service.mark_as_read(pair_id, carol.id, message.id)
