"""
Notification models.

Includes the in-app notification inbox and web push subscriptions.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from ..database import Base

NOTIFICATION_TYPES = (
    "new_message",
    "sparring_request",
    "sparring_confirmed",
    "sparring_cancelled",
    "system",
)
NOTIFICATION_CHANNELS = ("push", "in_app", "email")


class Notification(Base):
    """In-app notification inbox entries (append-only apart from read/delete)."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    type = Column(String(50), nullable=False)
    via = Column(String(20), nullable=False, default="push")
    action_url = Column(String(500), nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    recipient = relationship("User", foreign_keys=[recipient_id])

    __table_args__ = (
        Index("ix_notifications_recipient_sent_at", "recipient_id", "sent_at"),
        Index("ix_notifications_recipient_is_read", "recipient_id", "is_read"),
    )


class PushSubscription(Base):
    """Web push subscription details for a user."""

    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    endpoint = Column(Text, nullable=False)
    p256dh_key = Column(String(255), nullable=False)
    auth_key = Column(String(255), nullable=False)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )


__all__ = [
    "Notification",
    "PushSubscription",
    "NOTIFICATION_TYPES",
    "NOTIFICATION_CHANNELS",
]
