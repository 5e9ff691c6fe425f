# backend/sparfinder/schemas/conversation.py
"""
Schemas for conversations.

Summaries are what the conversation list shows: who (or which group) the
chat is with, the latest message and how much is unread.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


@dataclass(frozen=True)
class ParticipantProfile:
    """Display data for a participant, used in notification titles."""

    display_name: str
    photo_url: Optional[str]


class ConversationSummary(StrictModel):
    """One row of a user's conversation list."""

    id: int
    name: str
    avatar_url: Optional[str] = None
    last_message: str = ""
    last_sent_at: datetime
    unread_count: int = 0
    is_group: bool = False


class ConversationRef(StrictModel):
    id: int


class ConversationRefResponse(StrictModel):
    conversation: ConversationRef


class ConversationListResponse(StrictModel):
    conversations: List[ConversationSummary]


class ConversationCreatedResponse(StrictModel):
    conversation: ConversationSummary


class UnreadCountResponse(StrictModel):
    conversation_id: int
    unread_count: int


class ConversationDeletedResponse(StrictModel):
    message: str = "Conversation deleted successfully"


class CreateConversationRequest(StrictRequestModel):
    """
    Request to create a conversation.

    Two distinct participants reuse the existing one-on-one conversation;
    more make a new group.
    """

    participant_ids: List[int] = Field(default_factory=list)
    title: Optional[str] = Field(None, max_length=255)
    avatar_url: Optional[str] = Field(None, max_length=500)
