# backend/sparfinder/services/messaging/__init__.py
"""
Realtime messaging.

- ``ChatGateway``: per-connection event handling over WebSocket
- ``ConnectionRegistry``: conversation rooms of live connections
- ``MessagingStore``: awaitable facade over the synchronous services
- ``NotificationFanout``: per-recipient notifications for new messages
- ``BackgroundTaskRunner``: bounded fire-and-forget work
"""

from .background import BackgroundTaskRunner
from .connection_registry import Connection, ConnectionRegistry
from .events import InboundEvent, OutboundEvent
from .fanout import NotificationFanout, preview_text
from .gateway import ChatGateway
from .store import MessagingStore, serialize_message

__all__ = [
    "BackgroundTaskRunner",
    "ChatGateway",
    "Connection",
    "ConnectionRegistry",
    "InboundEvent",
    "MessagingStore",
    "NotificationFanout",
    "OutboundEvent",
    "preview_text",
    "serialize_message",
]
