"""
In-memory doubles for the realtime layer.

FakeWebSocket records frames sent to it; FakeStore stands in for
MessagingStore with dict-backed state so gateway and fan-out behaviour
can be checked without a database.
"""

import asyncio
from datetime import datetime, timezone
import itertools
from typing import Any, Dict, List, Optional, Set

import pytest

from sparfinder.schemas.conversation import ParticipantProfile
from sparfinder.services.messaging import (
    BackgroundTaskRunner,
    ChatGateway,
    Connection,
    ConnectionRegistry,
    NotificationFanout,
)


class FakeWebSocket:
    def __init__(self, fail_sends: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail_sends = fail_sends

    async def send_json(self, data: Any) -> None:
        if self.fail_sends:
            raise RuntimeError("Cannot call send once a close message has been sent")
        self.sent.append(data)

    def events(self) -> List[str]:
        return [frame["event"] for frame in self.sent]

    def frames(self, event: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == event]


class FakeStore:
    """Dict-backed stand-in for MessagingStore."""

    def __init__(self) -> None:
        self.participants: Dict[int, Set[int]] = {}
        self.messages: Dict[int, List[Dict[str, Any]]] = {}
        self.read_cursors: List[tuple] = []
        self.read_messages: List[tuple] = []
        self.notifications: List[Dict[str, Any]] = []
        self.profiles: Dict[int, ParticipantProfile] = {}
        self.fail: Set[str] = set()
        self.fail_notifications_for: Set[int] = set()
        self._ids = itertools.count(1)

    def add_conversation(self, conversation_id: int, *user_ids: int) -> None:
        self.participants[conversation_id] = set(user_ids)
        self.messages.setdefault(conversation_id, [])

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    async def is_participant(self, conversation_id: int, user_id: int) -> bool:
        self._maybe_fail("is_participant")
        return user_id in self.participants.get(conversation_id, set())

    async def mark_conversation_read(self, conversation_id: int, user_id: int) -> None:
        self._maybe_fail("mark_conversation_read")
        await asyncio.sleep(0)
        self.read_cursors.append((conversation_id, user_id))

    async def fetch_history(self, user_id: int, conversation_id: int, limit: int) -> List[Dict[str, Any]]:
        self._maybe_fail("fetch_history")
        return list(self.messages.get(conversation_id, []))[:limit]

    async def create_message(
        self,
        user_id: int,
        conversation_id: int,
        content: str,
        message_type: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._maybe_fail("create_message")
        message = {
            "id": next(self._ids),
            "conversationId": conversation_id,
            "senderId": user_id,
            "content": content,
            "messageType": message_type or "text",
            "mediaUrl": media_url,
            "sentAt": datetime.now(timezone.utc).isoformat(),
            "isRead": False,
        }
        self.messages.setdefault(conversation_id, []).append(message)
        return message

    async def mark_message_read(self, conversation_id: int, user_id: int, message_id: int) -> bool:
        self._maybe_fail("mark_message_read")
        self.read_messages.append((conversation_id, user_id, message_id))
        return True

    async def get_participant_ids(self, conversation_id: int) -> List[int]:
        self._maybe_fail("get_participant_ids")
        return sorted(self.participants.get(conversation_id, set()))

    async def get_participant_profile(self, user_id: int) -> ParticipantProfile:
        return self.profiles.get(user_id, ParticipantProfile(display_name="Someone", photo_url=None))

    async def create_and_send_notification(self, recipient_id: int, **fields: Any) -> int:
        if recipient_id in self.fail_notifications_for:
            raise RuntimeError(f"notification store down for {recipient_id}")
        self.notifications.append({"recipient_id": recipient_id, **fields})
        return len(self.notifications)


@pytest.fixture
def store():
    fake = FakeStore()
    fake.add_conversation(1, 10, 20)
    fake.profiles[10] = ParticipantProfile(display_name="Alice Anders", photo_url=None)
    fake.profiles[20] = ParticipantProfile(display_name="Bob Brown", photo_url=None)
    return fake


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def runner():
    return BackgroundTaskRunner(concurrency=4)


@pytest.fixture
def gateway(store, registry, runner):
    return ChatGateway(
        store, registry, runner, NotificationFanout(store), history_page_size=50
    )


@pytest.fixture
def connect():
    """Build a Connection over a FakeWebSocket for a user id."""

    def _connect(user_id: int, fail_sends: bool = False) -> Connection:
        return Connection(FakeWebSocket(fail_sends=fail_sends), user_id)

    return _connect
