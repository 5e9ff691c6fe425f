# backend/sparfinder/repositories/factory.py
"""
Repository Factory for the chat backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .conversation_repository import ConversationRepository
    from .message_repository import MessageRepository
    from .notification_repository import NotificationRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_conversation_repository(db: Session) -> "ConversationRepository":
        """Create repository for conversation and participant operations."""
        from .conversation_repository import ConversationRepository

        return ConversationRepository(db)

    @staticmethod
    def create_message_repository(db: Session) -> "MessageRepository":
        """Create repository for message operations."""
        from .message_repository import MessageRepository

        return MessageRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        """Create repository for notification inbox and push subscriptions."""
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for user and profile lookups."""
        from .user_repository import UserRepository

        return UserRepository(db)
