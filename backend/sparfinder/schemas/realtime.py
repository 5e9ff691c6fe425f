# backend/sparfinder/schemas/realtime.py
"""
Payload schemas for the realtime channel.

Inbound payloads are validated strictly (no coercion of "5" into 5) before
any store is touched.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from ._strict_base import StrictRequestModel


class InboundFrame(BaseModel):
    """Envelope of every client frame: ``{"event": str, "data": object}``."""

    event: StrictStr = Field(..., min_length=1)
    data: Any = None

    model_config = ConfigDict(extra="ignore")


class ConversationRoomPayload(StrictRequestModel):
    """Payload of ``join_conversation`` and ``leave_conversation``."""

    conversation_id: StrictInt


class SendMessagePayload(StrictRequestModel):
    conversation_id: StrictInt
    content: StrictStr = Field(..., min_length=1)
    message_type: Optional[StrictStr] = Field(None, max_length=32)
    media_url: Optional[StrictStr] = Field(None, max_length=1000)


class MessageReadPayload(StrictRequestModel):
    conversation_id: StrictInt
    message_id: StrictInt


class TypingPayload(StrictRequestModel):
    conversation_id: StrictInt
    is_typing: StrictBool
