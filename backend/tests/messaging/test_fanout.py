"""Tests for new-message notification fan-out."""

import logging

import pytest

from sparfinder.services.messaging import NotificationFanout, preview_text


class TestPreviewText:
    def test_short_content_is_unchanged(self):
        assert preview_text("See you at the gym") == "See you at the gym"

    def test_exactly_forty_characters_is_unchanged(self):
        content = "x" * 40

        assert preview_text(content) == content

    def test_long_content_is_truncated(self):
        content = "a" * 45

        preview = preview_text(content)

        assert preview == "a" * 37 + "..."
        assert len(preview) == 40


class TestNotifyNewMessage:
    @pytest.mark.asyncio
    async def test_notifies_everyone_but_sender(self, store):
        store.add_conversation(5, 10, 20, 30)

        stored = await NotificationFanout(store).notify_new_message(5, 10, "Sparring at 6?")

        assert stored == 2
        assert sorted(n["recipient_id"] for n in store.notifications) == [20, 30]
        notification = store.notifications[0]
        assert notification["sender_id"] == 10
        assert notification["type"] == "new_message"
        assert notification["title"] == "New message from Alice Anders"
        assert notification["body"] == "Sparring at 6?"
        assert notification["action_url"] == "/conversations/5"
        assert notification["data"] == {
            "screen": "chat",
            "title": "Alice Anders",
            "conversationId": "5",
        }

    @pytest.mark.asyncio
    async def test_body_is_previewed(self, store):
        await NotificationFanout(store).notify_new_message(1, 10, "b" * 60)

        assert store.notifications[0]["body"] == "b" * 37 + "..."

    @pytest.mark.asyncio
    async def test_unknown_sender_name(self, store):
        store.add_conversation(6, 77, 20)

        await NotificationFanout(store).notify_new_message(6, 77, "hi")

        assert store.notifications[0]["title"] == "New message from Someone"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, store, caplog):
        store.add_conversation(5, 10, 20, 30)
        store.fail_notifications_for.add(20)

        with caplog.at_level(logging.ERROR):
            stored = await NotificationFanout(store).notify_new_message(5, 10, "hello")

        assert stored == 1
        assert [n["recipient_id"] for n in store.notifications] == [30]
        assert "Notification to user 20" in caplog.text

    @pytest.mark.asyncio
    async def test_sender_alone_gets_nothing(self, store):
        store.add_conversation(8, 10)

        assert await NotificationFanout(store).notify_new_message(8, 10, "echo") == 0
        assert store.notifications == []

    @pytest.mark.asyncio
    async def test_explicit_recipients(self, store):
        stored = await NotificationFanout(store).notify_new_message(
            1, 10, "hi", recipient_ids=[20]
        )

        assert stored == 1
        assert store.notifications[0]["recipient_id"] == 20
