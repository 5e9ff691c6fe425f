# backend/sparfinder/routes/v1/messages.py
"""
Messages routes - API v1

Versioned message endpoints under /api/v1/messages.
All business logic delegated to MessageService.

Messages sent or read over REST are broadcast to live realtime connections
through the chat gateway, exactly as if they had arrived on the socket.

Endpoints (organized with static routes BEFORE dynamic routes):
    GET /conversation/{conversation_id} - Paginated history for the caller
    POST / - Send a message

    === Message-specific Routes ===
    GET /{message_id} - Fetch one message
    PUT /{message_id} - Edit a message (sender only)
    DELETE /{message_id} - Delete a message on the caller's side
    POST /{message_id}/read - Mark a message as read
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.ids import parse_id
from ...api.dependencies.services import (
    get_chat_gateway,
    get_conversation_service,
    get_message_service,
)
from ...core.config import settings
from ...core.exceptions import DomainException, ForbiddenException, InvalidPayloadException
from ...schemas.message import (
    DeleteMessageResponse,
    MarkMessageReadRequest,
    MarkReadResponse,
    MessageEnvelope,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    UpdateMessageRequest,
)
from ...services.conversation_service import ConversationService
from ...services.message_service import MessageService
from ...services.messaging.gateway import ChatGateway
from ...services.messaging.store import serialize_message

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages-v1"])


# ============================================================================
# SECTION 1: Static routes
# ============================================================================


@router.get(
    "/conversation/{conversation_id}",
    response_model=MessageListResponse,
    responses={
        400: {"description": "Invalid id, page or limit"},
        403: {"description": "Not a participant"},
    },
)
def get_conversation_messages(
    conversation_id: str,
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size"),
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    """
    Get one page of a conversation's history, oldest first.

    Messages the caller deleted on their side are not included.
    """
    try:
        cid = parse_id(conversation_id, label="conversation ID")
        if limit is not None and limit > settings.max_page_size:
            raise InvalidPayloadException(
                f"limit must not exceed {settings.max_page_size}",
                details={"max_page_size": settings.max_page_size},
            )
        messages = service.get_conversation_messages(current_user_id, cid, page=page, limit=limit)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return MessageListResponse(messages=[MessageResponse.from_message(m) for m in messages])


@router.post(
    "",
    response_model=MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "Not a participant"}},
)
async def send_message(
    request: SendMessageRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
    conversation_service: ConversationService = Depends(get_conversation_service),
    gateway: ChatGateway = Depends(get_chat_gateway),
) -> MessageEnvelope:
    """
    Send a message to a conversation.

    The message is persisted, then broadcast to everyone joined to the
    conversation, then the other participants are notified in the background.
    """
    try:
        allowed = await asyncio.to_thread(
            conversation_service.is_participant, request.conversation_id, current_user_id
        )
        if not allowed:
            raise ForbiddenException("Not a participant of this conversation")
        message = await asyncio.to_thread(
            service.create_message,
            current_user_id,
            request.conversation_id,
            request.content,
            request.message_type,
            request.media_url,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    payload = serialize_message(message)
    delivered = await gateway.publish_new_message(
        request.conversation_id, payload, sender_id=current_user_id
    )
    logger.debug(
        f"Message {message.id} sent over REST, broadcast to {delivered} connection(s)",
        extra={"conversation_id": request.conversation_id},
    )
    return MessageEnvelope(message=MessageResponse.from_message(message))


# ============================================================================
# SECTION 2: Message-specific routes (with {message_id} parameter)
# These must come LAST to avoid capturing static routes
# ============================================================================


@router.get(
    "/{message_id}",
    response_model=MessageEnvelope,
    responses={
        403: {"description": "Not a participant"},
        404: {"description": "Message not found"},
    },
)
def get_message(
    message_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageEnvelope:
    try:
        message = service.get_message_by_id(parse_id(message_id, label="message ID"), current_user_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return MessageEnvelope(message=MessageResponse.from_message(message))


@router.put(
    "/{message_id}",
    response_model=MessageEnvelope,
    responses={
        400: {"description": "Message already deleted"},
        403: {"description": "Not the sender"},
        404: {"description": "Message not found"},
    },
)
def update_message(
    message_id: str,
    request: UpdateMessageRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageEnvelope:
    """Edit a message. Only fields present in the body are changed."""
    changes = request.model_dump(exclude_unset=True)
    try:
        message = service.update_message(
            parse_id(message_id, label="message ID"), current_user_id, **changes
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return MessageEnvelope(message=MessageResponse.from_message(message))


@router.delete(
    "/{message_id}",
    response_model=DeleteMessageResponse,
    responses={
        400: {"description": "Already deleted on the caller's side"},
        403: {"description": "Neither sender nor receiver"},
        404: {"description": "Message not found"},
    },
)
def delete_message(
    message_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
) -> DeleteMessageResponse:
    """
    Soft delete a message.

    Only the caller's side is hidden; the other participant still sees it.
    """
    try:
        deleted_id, deleted_for = service.delete_message(
            parse_id(message_id, label="message ID"), current_user_id
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return DeleteMessageResponse(message_id=deleted_id, deleted_for=deleted_for)


@router.post(
    "/{message_id}/read",
    response_model=MarkReadResponse,
    responses={
        403: {"description": "Not a participant"},
        404: {"description": "Message not found in this conversation"},
    },
)
async def mark_message_read(
    message_id: str,
    request: MarkMessageReadRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: MessageService = Depends(get_message_service),
    gateway: ChatGateway = Depends(get_chat_gateway),
) -> MarkReadResponse:
    """
    Mark a message as read.

    A receipt is broadcast to the conversation only when the flag changed.
    """
    try:
        mid = parse_id(message_id, label="message ID")
        changed = await asyncio.to_thread(
            service.mark_as_read, request.conversation_id, current_user_id, mid
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    if changed:
        await gateway.publish_read_receipt(request.conversation_id, mid, current_user_id)
    return MarkReadResponse(message_id=mid, is_read=True, changed=changed)
