# backend/sparfinder/services/messaging/store.py
"""
Async facade over the conversation, message and notification services.

The services are synchronous SQLAlchemy code. Every call here runs in a
worker thread via asyncio.to_thread() with its own session, so two store
calls awaited together (history fetch plus mark-as-read on join) never
share a session or block the event loop.

Results are returned as plain JSON-ready values; ORM objects never leave
the session that loaded them.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy.orm import Session

from ...database import SessionFactory, session_scope
from ...schemas.conversation import ParticipantProfile
from ...schemas.message import MessageResponse
from ..conversation_service import ConversationService
from ..message_service import MessageService
from ..notification_service import NotificationService

logger = logging.getLogger(__name__)

R = TypeVar("R")


def serialize_message(message: Any) -> Dict[str, Any]:
    """JSON-ready camelCase dict of a message with its sender/receiver projections."""
    return MessageResponse.from_message(message).model_dump(mode="json", by_alias=True)


def _is_participant_sync(db: Session, conversation_id: int, user_id: int) -> bool:
    return ConversationService(db).is_participant(conversation_id, user_id)


def _mark_conversation_read_sync(db: Session, conversation_id: int, user_id: int) -> None:
    ConversationService(db).mark_as_read(conversation_id, user_id)


def _participant_ids_sync(db: Session, conversation_id: int) -> List[int]:
    return ConversationService(db).get_participant_ids(conversation_id)


def _participant_profile_sync(db: Session, user_id: int) -> ParticipantProfile:
    return ConversationService(db).get_participant_profile(user_id)


def _history_sync(
    db: Session, user_id: int, conversation_id: int, limit: int
) -> List[Dict[str, Any]]:
    messages = MessageService(db).get_conversation_messages(
        user_id, conversation_id, page=1, limit=limit
    )
    return [serialize_message(message) for message in messages]


def _create_message_sync(
    db: Session,
    user_id: int,
    conversation_id: int,
    content: str,
    message_type: Optional[str],
    media_url: Optional[str],
) -> Dict[str, Any]:
    message = MessageService(db).create_message(
        user_id, conversation_id, content, message_type=message_type, media_url=media_url
    )
    return serialize_message(message)


def _mark_message_read_sync(
    db: Session, conversation_id: int, user_id: int, message_id: int
) -> bool:
    return MessageService(db).mark_as_read(conversation_id, user_id, message_id)


def _create_notification_sync(db: Session, recipient_id: int, **fields: Any) -> int:
    notification = NotificationService(db).create_and_send(recipient_id, **fields)
    return int(notification.id)


class MessagingStore:
    """Awaitable store operations used by the gateway and the fan-out."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def _call(self, func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        with session_scope(self._session_factory) as db:
            return func(db, *args, **kwargs)

    async def _run(self, func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        return await asyncio.to_thread(self._call, func, *args, **kwargs)

    async def is_participant(self, conversation_id: int, user_id: int) -> bool:
        return await self._run(_is_participant_sync, conversation_id, user_id)

    async def mark_conversation_read(self, conversation_id: int, user_id: int) -> None:
        await self._run(_mark_conversation_read_sync, conversation_id, user_id)

    async def fetch_history(
        self, user_id: int, conversation_id: int, limit: int
    ) -> List[Dict[str, Any]]:
        return await self._run(_history_sync, user_id, conversation_id, limit)

    async def create_message(
        self,
        user_id: int,
        conversation_id: int,
        content: str,
        message_type: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._run(
            _create_message_sync, user_id, conversation_id, content, message_type, media_url
        )

    async def mark_message_read(
        self, conversation_id: int, user_id: int, message_id: int
    ) -> bool:
        return await self._run(_mark_message_read_sync, conversation_id, user_id, message_id)

    async def get_participant_ids(self, conversation_id: int) -> List[int]:
        return await self._run(_participant_ids_sync, conversation_id)

    async def get_participant_profile(self, user_id: int) -> ParticipantProfile:
        return await self._run(_participant_profile_sync, user_id)

    async def create_and_send_notification(self, recipient_id: int, **fields: Any) -> int:
        """Persist a notification and attempt push delivery. Returns the notification id."""
        return await self._run(_create_notification_sync, recipient_id, **fields)
