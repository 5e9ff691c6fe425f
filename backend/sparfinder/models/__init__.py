"""
Database models for the sparring chat backend.

The models are organized by functionality:
- Users and profiles (read-only collaborators of the chat engine)
- Conversations and their participants
- Messages
- Notifications and push subscriptions
"""

from .conversation import Conversation, ConversationParticipant
from .message import MESSAGE_TYPE_TEXT, Message
from .notification import Notification, PushSubscription
from .user import Profile, User

__all__ = [
    "User",
    "Profile",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MESSAGE_TYPE_TEXT",
    "Notification",
    "PushSubscription",
]
