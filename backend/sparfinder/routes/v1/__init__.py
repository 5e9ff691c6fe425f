# backend/sparfinder/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1, plus the realtime channel.
"""

from . import conversations, messages, notifications, realtime

__all__ = [
    "conversations",
    "messages",
    "notifications",
    "realtime",
]
