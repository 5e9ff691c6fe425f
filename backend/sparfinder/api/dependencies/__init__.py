# backend/sparfinder/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user_id
from .database import get_db
from .ids import parse_id
from .services import (
    get_chat_gateway,
    get_conversation_service,
    get_message_service,
    get_notification_service,
    get_push_service,
)

__all__ = [
    # Auth
    "get_current_user_id",
    # Database
    "get_db",
    # Path ids
    "parse_id",
    # Services
    "get_chat_gateway",
    "get_conversation_service",
    "get_message_service",
    "get_notification_service",
    "get_push_service",
]
