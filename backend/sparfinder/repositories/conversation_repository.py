# backend/sparfinder/repositories/conversation_repository.py
"""
Conversation Repository for one-on-one and group messaging.

Provides data access methods for conversations and their participant rows
(membership plus per-user read cursor). Follows the repository pattern with
clean separation from business logic.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple, cast

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.conversation import Conversation, ConversationParticipant, make_pair_key
from ..models.message import Message
from .base_repository import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """
    Repository for Conversation entity operations.

    Handles all database operations for conversations including:
    - Finding or creating one-on-one conversations for user pairs
    - Creating group conversations
    - Membership lookups and read-cursor updates
    - Cascading deletion
    """

    def __init__(self, db: Session):
        """Initialize with database session."""
        super().__init__(db, Conversation)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Conversation.participants))

    def find_by_pair(self, user_a: int, user_b: int) -> Optional[Conversation]:
        """
        Find the one-on-one conversation between two users.

        The pair key is order-independent, so (a, b) and (b, a) match the
        same row.
        """
        result = (
            self.db.query(Conversation)
            .options(selectinload(Conversation.participants))
            .filter(
                Conversation.pair_key == make_pair_key(user_a, user_b),
                Conversation.is_group.is_(False),
            )
            .first()
        )
        return cast(Optional[Conversation], result)

    def get_or_create_pair(
        self, user_a: int, user_b: int, created_at: Optional[datetime] = None
    ) -> Tuple[Conversation, bool]:
        """
        Get an existing one-on-one conversation or create a new one.

        Safe under concurrent callers: the insert runs in a SAVEPOINT and a
        unique violation on ``pair_key`` means another caller won the race,
        in which case the winner's row is returned.

        Returns:
            Tuple of (conversation, created) where created is True if new
        """
        existing = self.find_by_pair(user_a, user_b)
        if existing is not None:
            self._ensure_pair_membership(existing, user_a, user_b)
            return existing, False

        pair_key = make_pair_key(user_a, user_b)
        try:
            with self.db.begin_nested():
                conversation = Conversation(is_group=False, pair_key=pair_key)
                if created_at is not None:
                    conversation.created_at = created_at
                conversation.participants = [
                    ConversationParticipant(user_id=user_a),
                    ConversationParticipant(user_id=user_b),
                ]
                self.db.add(conversation)
                self.db.flush()
            return conversation, True
        except IntegrityError:
            self.logger.info(
                f"Concurrent creation detected for conversation pair {pair_key}, reusing winner"
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating conversation for pair {pair_key}: {str(e)}")
            raise RepositoryException(f"Failed to create conversation: {str(e)}")

        winner = self.find_by_pair(user_a, user_b)
        if winner is None:
            raise RepositoryException(f"Conversation for pair {pair_key} vanished after conflict")
        self._ensure_pair_membership(winner, user_a, user_b)
        return winner, False

    def _ensure_pair_membership(self, conversation: Conversation, user_a: int, user_b: int) -> None:
        if sorted(conversation.participant_ids()) != sorted((user_a, user_b)):
            raise RepositoryException(
                f"Conversation {conversation.id} has inconsistent one-on-one membership"
            )

    def create_group(
        self,
        participant_ids: Sequence[int],
        *,
        title: Optional[str] = None,
        avatar_url: Optional[str] = None,
        last_read_at: Optional[datetime] = None,
    ) -> Conversation:
        """Create a group conversation with one participant row per member."""
        try:
            conversation = Conversation(is_group=True, title=title, avatar_url=avatar_url)
            conversation.participants = [
                ConversationParticipant(user_id=user_id, last_read_at=last_read_at)
                for user_id in participant_ids
            ]
            self.db.add(conversation)
            self.db.flush()
            return conversation
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating group conversation: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create conversation: {str(e)}")

    def find_for_user(self, user_id: int) -> List[Conversation]:
        """
        Find all conversations where a user is a participant.

        Participants are eager-loaded together with their user and profile,
        which is what conversation summaries need.
        """
        try:
            member_of = self.db.query(ConversationParticipant.conversation_id).filter(
                ConversationParticipant.user_id == user_id
            )
            query = (
                self.db.query(Conversation)
                .options(
                    selectinload(Conversation.participants).joinedload(
                        ConversationParticipant.user
                    )
                )
                .filter(Conversation.id.in_(member_of))
                .order_by(Conversation.id)
            )
            return cast(List[Conversation], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing conversations for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list conversations: {str(e)}")

    def get_participant(
        self, conversation_id: int, user_id: int
    ) -> Optional[ConversationParticipant]:
        return cast(
            Optional[ConversationParticipant],
            self.db.get(ConversationParticipant, (conversation_id, user_id)),
        )

    def is_participant(self, conversation_id: int, user_id: int) -> bool:
        count = (
            self.db.query(func.count())
            .select_from(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .scalar()
        )
        return bool(count)

    def get_participant_ids(self, conversation_id: int) -> List[int]:
        rows = (
            self.db.query(ConversationParticipant.user_id)
            .filter(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.user_id)
            .all()
        )
        return [row[0] for row in rows]

    def update_last_read(self, conversation_id: int, user_id: int, read_at: datetime) -> bool:
        """
        Move a participant's read cursor to ``read_at``.

        Returns False when the membership row does not exist.
        """
        updated = (
            self.db.query(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .update({"last_read_at": read_at}, synchronize_session="fetch")
        )
        return bool(updated)

    def delete_with_contents(self, conversation_id: int) -> bool:
        """
        Delete a conversation together with its messages and participants.

        Rows are removed in dependency order: messages, participants, then
        the conversation itself.
        """
        try:
            self.db.query(Message).filter(Message.conversation_id == conversation_id).delete(
                synchronize_session=False
            )
            self.db.query(ConversationParticipant).filter(
                ConversationParticipant.conversation_id == conversation_id
            ).delete(synchronize_session=False)
            deleted = (
                self.db.query(Conversation)
                .filter(Conversation.id == conversation_id)
                .delete(synchronize_session=False)
            )
            return bool(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting conversation {conversation_id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete conversation: {str(e)}")
