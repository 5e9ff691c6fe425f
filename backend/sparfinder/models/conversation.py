# backend/sparfinder/models/conversation.py
"""
Conversation and participant models.

A conversation is either one-on-one (exactly two participants for its whole
lifetime) or a group. Membership is fixed at creation time; the participant
row also carries that user's read cursor.

Design decisions:
- One-on-one conversations carry a ``pair_key`` ("<min>:<max>" of the two
  user ids) with a UNIQUE constraint, so two concurrent get-or-create calls
  for the same pair cannot both insert. Groups leave it NULL.
- Deleting a conversation removes its messages and participants.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


def make_pair_key(user_a: int, user_b: int) -> str:
    """Order-independent key for a one-on-one pair."""
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


class Conversation(Base):
    """
    Chat thread between two or more users.

    Attributes:
        id: Integer primary key
        is_group: True for group chats
        title: Group name (None for one-on-one)
        avatar_url: Group avatar (None for one-on-one)
        pair_key: Unique key of the participant pair for one-on-one chats
        created_at: When the conversation was created
    """

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    is_group = Column(Boolean, nullable=False, default=False)
    title = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    pair_key = Column(String(64), nullable=True, unique=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.sent_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, is_group={self.is_group})>"

    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]


class ConversationParticipant(Base):
    """Membership of a user in a conversation plus their read cursor."""

    __tablename__ = "conversation_participants"

    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    last_read_at = Column(DateTime(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (Index("idx_conversation_participants_user", "user_id"),)

    def __repr__(self) -> str:
        return (
            f"<ConversationParticipant(conversation={self.conversation_id}, user={self.user_id})>"
        )
