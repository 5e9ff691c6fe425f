# backend/sparfinder/models/message.py
"""
Message model for the chat system.

Deletion is per side: the sender and the receiver each have their own flag
and a message is hidden only from the side that deleted it. Rows are never
removed except when the whole conversation is deleted.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base

MESSAGE_TYPE_TEXT = "text"


class Message(Base):
    """
    Chat message inside a conversation.

    ``receiver_id`` is only set when the conversation had exactly one other
    participant at write time (one-on-one semantics); group messages leave it
    NULL.
    """

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(32), nullable=False, default=MESSAGE_TYPE_TEXT)
    media_url = Column(String(1000), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    read_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by_sender = Column(Boolean, nullable=False, default=False)
    deleted_by_receiver = Column(Boolean, nullable=False, default=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    __table_args__ = (
        Index("idx_messages_conversation_sent", "conversation_id", "sent_at"),
        Index("idx_messages_sender", "sender_id"),
        Index("idx_messages_receiver", "receiver_id"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, conversation={self.conversation_id}, sender={self.sender_id})>"

    def is_hidden_for(self, user_id: int) -> bool:
        """True when the given user's side has soft-deleted this message."""
        if self.sender_id == user_id and self.deleted_by_sender:
            return True
        if self.receiver_id == user_id and self.deleted_by_receiver:
            return True
        return False
