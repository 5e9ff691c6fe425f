# backend/sparfinder/services/message_service.py
"""
Message Service for the chat system.

Handles message lifecycle and conversation-scoped retrieval:
- Creating messages (receiver inferred for one-on-one conversations)
- Paginated history with per-user visibility filtering
- Editing by the sender
- Per-side soft deletion
- Read marking
"""

import logging
from typing import List, Literal, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AlreadyDeletedException,
    ForbiddenException,
    InvalidPayloadException,
    NotFoundException,
)
from ..core.timezone_utils import utc_now
from ..models.message import MESSAGE_TYPE_TEXT, Message
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from .base import BaseService

logger = logging.getLogger(__name__)

_UNSET = object()


def _message_not_found() -> NotFoundException:
    return NotFoundException("Message not found", code="MESSAGE_NOT_FOUND")


class MessageService(BaseService):
    """
    Service layer for message operations.

    Callers are responsible for the participant check before
    ``create_message``; every other operation enforces access itself.
    """

    def __init__(
        self,
        db: Session,
        message_repository: Optional[MessageRepository] = None,
        conversation_repository: Optional[ConversationRepository] = None,
    ):
        super().__init__(db)
        self.message_repository = message_repository or RepositoryFactory.create_message_repository(
            db
        )
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.logger = logging.getLogger(__name__)

    @BaseService.measure_operation("create_message")
    def create_message(
        self,
        from_user_id: int,
        conversation_id: int,
        content: str,
        message_type: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> Message:
        """
        Persist a new message.

        ``receiver_id`` is derived from a snapshot of the participant ids:
        it is set only when exactly one participant other than the sender
        exists (one-on-one semantics) and left empty for groups.
        """
        participant_ids = self.conversation_repository.get_participant_ids(conversation_id)
        others = [user_id for user_id in participant_ids if user_id != from_user_id]
        receiver_id = others[0] if len(others) == 1 else None

        with self.transaction():
            message = self.message_repository.create_message(
                conversation_id=conversation_id,
                sender_id=from_user_id,
                receiver_id=receiver_id,
                content=content,
                message_type=message_type or MESSAGE_TYPE_TEXT,
                media_url=media_url,
            )

        self.logger.info(
            f"Message {message.id} created in conversation {conversation_id} by user {from_user_id}"
        )
        return self.message_repository.get_with_people(message.id) or message

    @BaseService.measure_operation("get_conversation_messages")
    def get_conversation_messages(
        self,
        user_id: int,
        conversation_id: int,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[Message]:
        """
        One page of a conversation's history as seen by ``user_id``.

        Oldest first; messages the user deleted on their side are skipped.

        Raises:
            ForbiddenException: The user is not a participant
            InvalidPayloadException: page or limit below 1
        """
        limit = settings.history_page_size if limit is None else limit
        if page < 1 or limit < 1:
            raise InvalidPayloadException("page and limit must be positive integers")

        if not self.conversation_repository.is_participant(conversation_id, user_id):
            raise ForbiddenException("Not a participant of this conversation")

        return self.message_repository.find_visible_for_user(
            conversation_id, user_id, offset=(page - 1) * limit, limit=limit
        )

    def get_message_by_id(self, message_id: int, user_id: int) -> Message:
        """
        Fetch a single message for a participant.

        A message deleted on the caller's side is reported as not found.
        """
        message = self.message_repository.get_with_people(message_id)
        if message is None:
            raise _message_not_found()

        if not self.conversation_repository.is_participant(message.conversation_id, user_id):
            raise ForbiddenException("Not authorized")

        if message.is_hidden_for(user_id):
            raise _message_not_found()

        return message

    @BaseService.measure_operation("update_message")
    def update_message(
        self,
        message_id: int,
        user_id: int,
        content: Optional[str] = None,
        message_type: Optional[str] = None,
        media_url: object = _UNSET,
    ) -> Message:
        """
        Edit a message. Only provided fields are patched.

        ``media_url`` may be passed as None to clear it.

        Raises:
            NotFoundException: Message does not exist
            ForbiddenException: Caller is not the sender
            AlreadyDeletedException: Sender already deleted it
        """
        message = self.message_repository.get_by_id(message_id, load_relationships=False)
        if message is None:
            raise _message_not_found()
        if message.sender_id != user_id:
            raise ForbiddenException("Not authorized to edit")
        if message.deleted_by_sender:
            raise AlreadyDeletedException()

        with self.transaction():
            if content is not None:
                message.content = content
            if message_type is not None:
                message.message_type = message_type
            if media_url is not _UNSET:
                message.media_url = media_url
            self.message_repository.flush()

        return self.message_repository.get_with_people(message_id) or message

    @BaseService.measure_operation("delete_message")
    def delete_message(
        self, message_id: int, user_id: int
    ) -> tuple[int, Literal["sender", "receiver"]]:
        """
        Soft-delete a message on the caller's side only.

        Returns:
            Tuple of (message_id, deleted_for)

        Raises:
            NotFoundException: Message does not exist
            ForbiddenException: Caller is neither sender nor receiver
            AlreadyDeletedException: Caller's side is already deleted
        """
        message = self.message_repository.get_by_id(message_id, load_relationships=False)
        if message is None:
            raise _message_not_found()

        deleted_for: Literal["sender", "receiver"]
        if message.sender_id == user_id:
            if message.deleted_by_sender:
                raise AlreadyDeletedException()
            deleted_for = "sender"
        elif message.receiver_id == user_id:
            if message.deleted_by_receiver:
                raise AlreadyDeletedException()
            deleted_for = "receiver"
        else:
            raise ForbiddenException("Not authorized")

        with self.transaction():
            self.message_repository.soft_delete(message, as_sender=deleted_for == "sender")

        self.logger.info(f"Message {message_id} deleted for {deleted_for} by user {user_id}")
        return message_id, deleted_for

    @BaseService.measure_operation("mark_message_read")
    def mark_as_read(self, conversation_id: int, user_id: int, message_id: int) -> bool:
        """
        Flag a message as read.

        Sets the message-wide ``is_read``/``read_at`` pair regardless of which
        participant reads it.

        Returns:
            True if the message changed, False if it was already read

        Raises:
            NotFoundException: Message missing or not in this conversation
            ForbiddenException: Caller is not a participant
        """
        message = self.message_repository.get_by_id(message_id, load_relationships=False)
        if message is None or message.conversation_id != conversation_id:
            raise _message_not_found()

        if not self.conversation_repository.is_participant(conversation_id, user_id):
            raise ForbiddenException("Not a participant")

        if message.is_read:
            return False

        with self.transaction():
            changed = self.message_repository.mark_read(message, utc_now())
        return changed
