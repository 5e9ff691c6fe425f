# backend/sparfinder/services/conversation_service.py
"""
Conversation Service for one-on-one and group chats.

Membership authority and read-cursor bookkeeping:
- Participant checks used by every realtime and REST path
- Read cursors and unread counts
- Conversation summaries for the conversation list
- Creating (get-or-create for pairs) and deleting conversations
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenException, InvalidPayloadException, NotFoundException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.conversation import Conversation
from ..repositories.conversation_repository import ConversationRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from ..repositories.user_repository import UserRepository
from ..schemas.conversation import ConversationSummary, ParticipantProfile
from .base import BaseService

logger = logging.getLogger(__name__)

FALLBACK_DISPLAY_NAME = "Someone"
GROUP_FALLBACK_NAME = "Group Chat"
PAIR_FALLBACK_NAME = "Chat"


class ConversationService(BaseService):
    """
    Service for conversations and their participants.

    Handles conversation creation, membership checks and read state
    with proper access control.
    """

    def __init__(
        self,
        db: Session,
        conversation_repository: Optional[ConversationRepository] = None,
        message_repository: Optional[MessageRepository] = None,
        user_repository: Optional[UserRepository] = None,
    ):
        """
        Initialize conversation service.

        Args:
            db: Database session
            conversation_repository: Optional repository for conversations
            message_repository: Optional repository for messages
            user_repository: Optional repository for users and profiles
        """
        super().__init__(db)
        self.conversation_repository = (
            conversation_repository or RepositoryFactory.create_conversation_repository(db)
        )
        self.message_repository = message_repository or RepositoryFactory.create_message_repository(
            db
        )
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.logger = logging.getLogger(__name__)

    def is_participant(self, conversation_id: int, user_id: int) -> bool:
        """Check whether a user is a member of the conversation."""
        return self.conversation_repository.is_participant(conversation_id, user_id)

    @BaseService.measure_operation("mark_conversation_read")
    def mark_as_read(self, conversation_id: int, user_id: int) -> None:
        """
        Move the user's read cursor to now.

        Idempotent. A missing membership row is silently ignored; callers
        check membership first.
        """
        with self.transaction():
            updated = self.conversation_repository.update_last_read(
                conversation_id, user_id, utc_now()
            )
        if not updated:
            self.logger.debug(
                f"No participant row for user {user_id} in conversation {conversation_id}"
            )

    def count_unread(self, conversation_id: int, user_id: int) -> int:
        """Count messages from others sent after the user's read cursor."""
        participant = self.conversation_repository.get_participant(conversation_id, user_id)
        last_read_at = participant.last_read_at if participant else None
        return self.message_repository.count_unread(conversation_id, user_id, last_read_at)

    @BaseService.measure_operation("list_conversations")
    def list_conversations(self, user_id: int) -> List[ConversationSummary]:
        """
        Summaries of every conversation the user is in, newest activity first.

        Returns an empty list when the user has no conversations.
        """
        summaries = [
            self._summarize(conversation, user_id)
            for conversation in self.conversation_repository.find_for_user(user_id)
        ]
        summaries.sort(key=lambda summary: (summary.last_sent_at, summary.id), reverse=True)
        return summaries

    @BaseService.measure_operation("create_conversation")
    def create_conversation(
        self,
        participant_ids: Sequence[int],
        title: Optional[str] = None,
        avatar_url: Optional[str] = None,
        *,
        viewer_id: Optional[int] = None,
    ) -> ConversationSummary:
        """
        Create a conversation.

        Exactly two distinct participants reuse the existing one-on-one
        conversation (get-or-create). Three or more always create a new
        group whose members start fully read.

        Args:
            participant_ids: Member user ids (duplicates are ignored)
            title: Group name
            avatar_url: Group avatar
            viewer_id: The requesting user; the summary is named after the
                other member. Defaults to naming after the second id.

        Raises:
            InvalidPayloadException: Fewer than two distinct participants
            NotFoundException: A participant does not exist
        """
        unique_ids = list(dict.fromkeys(int(user_id) for user_id in participant_ids))
        if len(unique_ids) < 2:
            raise InvalidPayloadException("At least two participants are required")

        if len(unique_ids) == 2:
            user_a, user_b = unique_ids
            conversation_id = self.get_or_create_one_on_one_conversation(user_a, user_b)
            other_id = user_b if viewer_id != user_b else user_a
            profile = self.user_repository.get_profile(other_id)
            conversation = self.conversation_repository.get_by_id(
                conversation_id, load_relationships=False
            )
            latest = self.message_repository.get_latest(conversation_id)
            return ConversationSummary(
                id=conversation_id,
                name=(profile.display_name or PAIR_FALLBACK_NAME) if profile else PAIR_FALLBACK_NAME,
                avatar_url=(profile.photo_url or "") if profile else "",
                last_message=latest.content if latest else "",
                last_sent_at=ensure_utc(latest.sent_at if latest else conversation.created_at),
                unread_count=0,
                is_group=False,
            )

        self._ensure_users_exist(unique_ids)
        now = utc_now()
        with self.transaction():
            conversation = self.conversation_repository.create_group(
                unique_ids, title=title, avatar_url=avatar_url, last_read_at=now
            )
        self.logger.info(
            f"Created group conversation {conversation.id} with {len(unique_ids)} participants"
        )
        return ConversationSummary(
            id=conversation.id,
            name=title or GROUP_FALLBACK_NAME,
            avatar_url=avatar_url or "",
            last_message="",
            last_sent_at=now,
            unread_count=0,
            is_group=True,
        )

    @BaseService.measure_operation("get_or_create_one_on_one")
    def get_or_create_one_on_one_conversation(self, user_a: int, user_b: int) -> int:
        """
        Get the one-on-one conversation between two users, creating it if needed.

        Returns:
            The conversation id (the same id on every call for the pair)

        Raises:
            InvalidPayloadException: Both ids are the same user
            NotFoundException: One of the users does not exist
        """
        if user_a == user_b:
            raise InvalidPayloadException("Cannot start a 1-on-1 conversation with yourself")

        existing = self.conversation_repository.find_by_pair(user_a, user_b)
        if existing is not None and len(existing.participants) == 2:
            return int(existing.id)

        self._ensure_users_exist([user_a, user_b])
        with self.transaction():
            conversation, created = self.conversation_repository.get_or_create_pair(
                user_a, user_b
            )
        if created:
            self.logger.info(
                f"Created one-on-one conversation {conversation.id} for users {user_a} and {user_b}"
            )
        return int(conversation.id)

    @BaseService.measure_operation("delete_conversation")
    def delete_conversation(self, conversation_id: int, user_id: int) -> None:
        """
        Delete a conversation with all its messages and participants.

        Raises:
            ForbiddenException: The user is not a participant
        """
        if not self.conversation_repository.is_participant(conversation_id, user_id):
            raise ForbiddenException("Not authorized to delete")

        with self.transaction():
            self.conversation_repository.delete_with_contents(conversation_id)
        self.logger.info(f"Conversation {conversation_id} deleted by user {user_id}")

    def get_participant_ids(self, conversation_id: int) -> List[int]:
        return self.conversation_repository.get_participant_ids(conversation_id)

    def get_participant_profile(self, user_id: int) -> ParticipantProfile:
        """Display name and photo of a user, falling back to "Someone"."""
        profile = self.user_repository.get_profile(user_id)
        if profile is None:
            return ParticipantProfile(display_name=FALLBACK_DISPLAY_NAME, photo_url=None)
        return ParticipantProfile(
            display_name=profile.display_name or FALLBACK_DISPLAY_NAME,
            photo_url=profile.photo_url or None,
        )

    # Helpers

    def _ensure_users_exist(self, user_ids: Sequence[int]) -> None:
        for user_id in user_ids:
            if not self.user_repository.exists(id=user_id):
                raise NotFoundException(f"User {user_id} not found", code="USER_NOT_FOUND")

    def _summarize(self, conversation: Conversation, user_id: int) -> ConversationSummary:
        if conversation.is_group:
            name = conversation.title or GROUP_FALLBACK_NAME
            avatar_url = conversation.avatar_url or ""
        else:
            name, avatar_url = "", ""
            other = next(
                (p for p in conversation.participants if p.user_id != user_id),
                None,
            )
            profile = other.user.profile if other is not None and other.user else None
            if profile is not None:
                name = profile.display_name
                avatar_url = profile.photo_url or ""

        latest = self.message_repository.get_latest(conversation.id)
        last_sent_at: datetime = ensure_utc(latest.sent_at if latest else conversation.created_at)

        me = next((p for p in conversation.participants if p.user_id == user_id), None)
        unread_count = self.message_repository.count_unread(
            conversation.id, user_id, me.last_read_at if me else None
        )

        return ConversationSummary(
            id=conversation.id,
            name=name,
            avatar_url=avatar_url,
            last_message=latest.content if latest else "",
            last_sent_at=last_sent_at,
            unread_count=unread_count,
            is_group=bool(conversation.is_group),
        )
