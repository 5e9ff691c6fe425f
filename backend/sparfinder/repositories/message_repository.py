# backend/sparfinder/repositories/message_repository.py
"""
Message Repository for the chat system.

Handles persistence, per-user visibility filtering and paginated retrieval
of messages. All methods follow the repository pattern with no business
logic; authorization happens in the service layer.
"""

from datetime import datetime
from typing import List, Optional, cast

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload
from sqlalchemy.sql.elements import ColumnElement

from ..core.exceptions import RepositoryException
from ..models.message import MESSAGE_TYPE_TEXT, Message
from .base_repository import BaseRepository


def visible_to(user_id: int) -> ColumnElement[bool]:
    """
    Filter clause for messages a user may see.

    A message is visible to its sender until the sender deletes it, and to
    its receiver until the receiver deletes it. Group messages have no
    receiver, so only their sender sees them.
    """
    return or_(
        and_(Message.sender_id == user_id, Message.deleted_by_sender.is_(False)),
        and_(Message.receiver_id == user_id, Message.deleted_by_receiver.is_(False)),
    )


class MessageRepository(BaseRepository[Message]):
    """Repository for message data access."""

    def __init__(self, db: Session):
        super().__init__(db, Message)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Message.sender), joinedload(Message.receiver))

    def create_message(
        self,
        *,
        conversation_id: int,
        sender_id: int,
        content: str,
        receiver_id: Optional[int] = None,
        message_type: Optional[str] = None,
        media_url: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> Message:
        """
        Create a new message.

        Starts unread with both deletion flags cleared.
        """
        try:
            message = Message(
                conversation_id=conversation_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                message_type=message_type or MESSAGE_TYPE_TEXT,
                media_url=media_url,
                is_read=False,
                deleted_by_sender=False,
                deleted_by_receiver=False,
            )
            if sent_at is not None:
                message.sent_at = sent_at
            self.db.add(message)
            self.db.flush()
            return message
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating message in conversation {conversation_id}: {e}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create message: {str(e)}")

    def get_with_people(self, message_id: int) -> Optional[Message]:
        """Get a message with sender and receiver (and their profiles) loaded."""
        return self.get_by_id(message_id, load_relationships=True)

    def find_visible_for_user(
        self, conversation_id: int, user_id: int, *, offset: int = 0, limit: int = 50
    ) -> List[Message]:
        """
        Get one page of a conversation's messages as seen by ``user_id``.

        Ordered oldest first by ``sent_at`` with the id breaking ties.
        """
        try:
            query = (
                self._apply_eager_loading(self.db.query(Message))
                .filter(Message.conversation_id == conversation_id)
                .filter(visible_to(user_id))
                .order_by(Message.sent_at.asc(), Message.id.asc())
                .offset(offset)
                .limit(limit)
            )
            return cast(List[Message], query.all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching messages for conversation {conversation_id}: {e}")
            raise RepositoryException(f"Failed to fetch messages: {str(e)}")

    def get_latest(self, conversation_id: int) -> Optional[Message]:
        """Most recently sent message of a conversation, regardless of visibility."""
        return cast(
            Optional[Message],
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .first(),
        )

    def count_unread(
        self, conversation_id: int, user_id: int, since: Optional[datetime] = None
    ) -> int:
        """
        Count messages from other participants sent after ``since``.

        With no ``since`` every message from someone else counts.
        """
        query = self.db.query(func.count(Message.id)).filter(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
        )
        if since is not None:
            query = query.filter(Message.sent_at > since)
        return int(query.scalar() or 0)

    def mark_read(self, message: Message, read_at: datetime) -> bool:
        """
        Flag a message as read.

        Returns False without touching the row when it was already read.
        """
        if message.is_read:
            return False
        message.is_read = True
        message.read_at = read_at
        self.db.flush()
        return True

    def soft_delete(self, message: Message, *, as_sender: bool) -> None:
        if as_sender:
            message.deleted_by_sender = True
        else:
            message.deleted_by_receiver = True
        self.db.flush()
