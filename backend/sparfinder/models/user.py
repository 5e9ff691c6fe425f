# backend/sparfinder/models/user.py
"""
User and profile models.

Registration, verification and profile editing live in the account service;
the chat engine only reads these rows (display names, photos) and references
users by id from participants, messages and notifications.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class User(Base):
    """Account row referenced by id from the messaging tables."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    profile = relationship("Profile", back_populates="user", uselist=False, lazy="joined")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Profile(Base):
    """Public profile shown next to conversations and messages."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    photo_url = Column(String(500), nullable=True)

    user = relationship("User", back_populates="profile")

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
