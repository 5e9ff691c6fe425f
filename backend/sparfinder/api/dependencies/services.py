# backend/sparfinder/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Request-scoped
services share the request's session; the chat gateway is an
application-wide object created at startup.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...services.conversation_service import ConversationService
from ...services.message_service import MessageService
from ...services.messaging.gateway import ChatGateway
from ...services.notification_service import NotificationService
from ...services.push_notification_service import PushNotificationService
from .database import get_db


def get_conversation_service(db: Session = Depends(get_db)) -> ConversationService:
    """Get ConversationService instance."""
    return ConversationService(db)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    """Get MessageService instance."""
    return MessageService(db)


def get_push_service(db: Session = Depends(get_db)) -> PushNotificationService:
    return PushNotificationService(db)


def get_notification_service(
    db: Session = Depends(get_db),
    push_service: PushNotificationService = Depends(get_push_service),
) -> NotificationService:
    """
    Get notification service instance.

    Args:
        db: Database session
        push_service: Push delivery for the same session

    Returns:
        NotificationService instance
    """
    return NotificationService(db, push_service=push_service)


def get_chat_gateway(request: Request) -> ChatGateway:
    """The gateway created by ``build_app``; its registry holds live connections."""
    gateway: ChatGateway = request.app.state.gateway
    return gateway
