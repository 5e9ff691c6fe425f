# backend/sparfinder/schemas/message.py
"""
Request and response schemas for messages.

Messages on the wire carry minimal sender/receiver projections so clients
can render names and avatars without extra lookups.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import Field

from ..core.timezone_utils import ensure_utc
from ._strict_base import StrictModel, StrictRequestModel

if TYPE_CHECKING:
    from ..models.message import Message
    from ..models.user import User


class ProfileProjection(StrictModel):
    first_name: str
    last_name: str
    photo_url: Optional[str] = None


class UserProjection(StrictModel):
    id: int
    profile: Optional[ProfileProjection] = None

    @classmethod
    def from_user(cls, user: "User") -> "UserProjection":
        profile = user.profile
        return cls(
            id=user.id,
            profile=(
                ProfileProjection(
                    first_name=profile.first_name or "",
                    last_name=profile.last_name or "",
                    photo_url=profile.photo_url,
                )
                if profile is not None
                else None
            ),
        )


class MessageResponse(StrictModel):
    """A message as delivered to clients, over REST and the realtime channel."""

    id: int
    conversation_id: int
    sender_id: int
    receiver_id: Optional[int] = None
    content: str
    message_type: str
    media_url: Optional[str] = None
    is_read: bool
    sent_at: datetime
    read_at: Optional[datetime] = None
    deleted_by_sender: bool = False
    deleted_by_receiver: bool = False
    sender: Optional[UserProjection] = None
    receiver: Optional[UserProjection] = None

    @classmethod
    def from_message(cls, message: "Message") -> "MessageResponse":
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            message_type=message.message_type,
            media_url=message.media_url,
            is_read=bool(message.is_read),
            sent_at=ensure_utc(message.sent_at),
            read_at=ensure_utc(message.read_at) if message.read_at else None,
            deleted_by_sender=bool(message.deleted_by_sender),
            deleted_by_receiver=bool(message.deleted_by_receiver),
            sender=UserProjection.from_user(message.sender) if message.sender else None,
            receiver=UserProjection.from_user(message.receiver) if message.receiver else None,
        )


class MessageListResponse(StrictModel):
    messages: List[MessageResponse]


class MessageEnvelope(StrictModel):
    message: MessageResponse


class DeleteMessageResponse(StrictModel):
    message_id: int
    deleted_for: Literal["sender", "receiver"]


class MarkReadResponse(StrictModel):
    message_id: int
    is_read: bool
    changed: bool


class SendMessageRequest(StrictRequestModel):
    """Request to send a message to a conversation."""

    conversation_id: int
    content: str = Field(..., min_length=1)
    message_type: Optional[str] = Field(None, max_length=32)
    media_url: Optional[str] = Field(None, max_length=1000)


class UpdateMessageRequest(StrictRequestModel):
    """Patch of a message; only provided fields change."""

    content: Optional[str] = Field(None, min_length=1)
    message_type: Optional[str] = Field(None, max_length=32)
    media_url: Optional[str] = Field(None, max_length=1000)


class MarkMessageReadRequest(StrictRequestModel):
    conversation_id: int
