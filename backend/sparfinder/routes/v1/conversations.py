# backend/sparfinder/routes/v1/conversations.py
"""
Conversations routes - API v1

Versioned conversation endpoints under /api/v1/conversations.
All business logic delegated to ConversationService.

Routes have ZERO direct DB access - all operations go through service layer.

Endpoints:
    POST /one-on-one/{other_user_id}    -> Get or create the pair conversation
    GET /                               -> List user's conversations
    POST /                              -> Create a conversation (pair or group)
    GET /{conversation_id}/unread-count -> Unread messages for the caller
    DELETE /{conversation_id}           -> Delete conversation and its messages
"""

import logging

from fastapi import APIRouter, Body, Depends, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.ids import parse_id
from ...api.dependencies.services import get_conversation_service
from ...core.exceptions import DomainException, ForbiddenException
from ...schemas.conversation import (
    ConversationCreatedResponse,
    ConversationDeletedResponse,
    ConversationListResponse,
    ConversationRef,
    ConversationRefResponse,
    CreateConversationRequest,
    UnreadCountResponse,
)
from ...services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["conversations-v1"])


@router.post(
    "/one-on-one/{other_user_id}",
    response_model=ConversationRefResponse,
    responses={
        400: {"description": "Invalid user id, or the caller's own id"},
        404: {"description": "User not found"},
    },
)
def get_or_create_one_on_one(
    other_user_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationRefResponse:
    """Return the caller's one-on-one conversation with another user, creating it once."""
    try:
        other_id = parse_id(other_user_id, label="user ID")
        conversation_id = service.get_or_create_one_on_one_conversation(current_user_id, other_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return ConversationRefResponse(conversation=ConversationRef(id=conversation_id))


@router.get("", response_model=ConversationListResponse)
def list_conversations(
    current_user_id: int = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    """
    List all conversations for the current user.

    Sorted by most recent activity; each entry carries the last message
    and the caller's unread count.
    """
    return ConversationListResponse(conversations=service.list_conversations(current_user_id))


@router.post(
    "",
    response_model=ConversationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Fewer than two distinct participants"}},
)
def create_conversation(
    request: CreateConversationRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationCreatedResponse:
    """
    Create a conversation that includes the caller.

    Two distinct members reuse their one-on-one conversation; three or more
    make a new group.
    """
    participant_ids = list(request.participant_ids)
    if current_user_id not in participant_ids:
        participant_ids.append(current_user_id)
    try:
        summary = service.create_conversation(
            participant_ids,
            title=request.title,
            avatar_url=request.avatar_url,
            viewer_id=current_user_id,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return ConversationCreatedResponse(conversation=summary)


@router.get(
    "/{conversation_id}/unread-count",
    response_model=UnreadCountResponse,
    responses={403: {"description": "Not a participant"}},
)
def get_unread_count(
    conversation_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> UnreadCountResponse:
    try:
        cid = parse_id(conversation_id, label="conversation ID")
        if not service.is_participant(cid, current_user_id):
            raise ForbiddenException("Not a participant of this conversation")
        unread = service.count_unread(cid, current_user_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return UnreadCountResponse(conversation_id=cid, unread_count=unread)


@router.delete(
    "/{conversation_id}",
    response_model=ConversationDeletedResponse,
    responses={403: {"description": "Not a participant"}},
)
def delete_conversation(
    conversation_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDeletedResponse:
    """Delete the conversation for everyone, with all of its messages."""
    try:
        cid = parse_id(conversation_id, label="conversation ID")
        service.delete_conversation(cid, current_user_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return ConversationDeletedResponse()
