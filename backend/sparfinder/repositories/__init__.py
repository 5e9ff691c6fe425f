"""
Repository layer.

Repositories own all queries; services never touch the session's query
API directly.
"""

from .base_repository import BaseRepository
from .conversation_repository import ConversationRepository
from .factory import RepositoryFactory
from .message_repository import MessageRepository
from .notification_repository import NotificationRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "MessageRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "UserRepository",
]
