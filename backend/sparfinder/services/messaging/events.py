# backend/sparfinder/services/messaging/events.py
"""
Realtime event names and frame builders.

Every frame on the realtime channel, in both directions, has this shape:
{
    "event": str,   # Event name
    "data": Any     # Event-specific payload (camelCase keys)
}
"""

from enum import Enum
from typing import Any, Dict, List


class InboundEvent(str, Enum):
    """Events a client may send."""

    JOIN_CONVERSATION = "join_conversation"
    LEAVE_CONVERSATION = "leave_conversation"
    SEND_MESSAGE = "send_message"
    MESSAGE_READ = "message_read"
    TYPING = "typing"
    DISCONNECT = "disconnect"


class OutboundEvent(str, Enum):
    """Events the server emits."""

    JOIN_ACK = "join_conversation_ack"
    HISTORY = "conversation_history"
    NEW_MESSAGE = "new_message"
    READ_ACK = "message_read_ack"
    TYPING = "typing"
    ERROR = "error"


# Context used for errors about a frame that could not even be parsed
FRAME_CONTEXT = "message"


def room_key(conversation_id: int) -> str:
    """Name of a conversation's broadcast room, used in logs."""
    return f"conversation_{conversation_id}"


def build_frame(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}


def build_join_ack(conversation_id: int) -> Dict[str, Any]:
    return {"conversationId": conversation_id}


def build_history(conversation_id: int, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"conversationId": conversation_id, "messages": messages}


def build_new_message(conversation_id: int, message: Dict[str, Any]) -> Dict[str, Any]:
    return {"conversationId": conversation_id, "message": message}


def build_read_receipt(conversation_id: int, message_id: int, user_id: int) -> Dict[str, Any]:
    return {"conversationId": conversation_id, "messageId": message_id, "userId": user_id}


def build_typing(conversation_id: int, user_id: int, is_typing: bool) -> Dict[str, Any]:
    return {"conversationId": conversation_id, "userId": user_id, "isTyping": is_typing}


def build_error(message: str, context: str) -> Dict[str, Any]:
    """Scoped error: what went wrong and which event caused it."""
    return {"message": message, "context": context}
