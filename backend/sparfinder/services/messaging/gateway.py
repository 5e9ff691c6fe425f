# backend/sparfinder/services/messaging/gateway.py
"""
Realtime chat gateway.

Per-connection lifecycle:
    handshake -> authenticated -> joined to zero or more conversation rooms
    -> disconnected

The handshake is verified before the socket is accepted; a bad or missing
token closes it with code 4401. After that, frames from one connection are
handled one at a time in arrival order. Handlers never raise: each ends in
either a successful emission or exactly one scoped ``error`` frame
``{message, context}`` naming the event that failed.

Ordering:
    A message is broadcast only after it is persisted. Across senders,
    broadcast order follows persistence completion, not arrival; clients
    order by ``sentAt`` and id.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from ...auth import decode_access_token, extract_token
from ...core.config import settings
from ...core.exceptions import UnauthorizedException
from ...schemas.realtime import (
    ConversationRoomPayload,
    InboundFrame,
    MessageReadPayload,
    SendMessagePayload,
    TypingPayload,
)
from .background import BackgroundTaskRunner
from .connection_registry import Connection, ConnectionRegistry
from .events import (
    FRAME_CONTEXT,
    InboundEvent,
    OutboundEvent,
    build_error,
    build_history,
    build_join_ack,
    build_new_message,
    build_read_receipt,
    build_typing,
    room_key,
)
from .fanout import NotificationFanout
from .store import MessagingStore

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401

P = TypeVar("P", bound=BaseModel)

Handler = Callable[[Connection, Any], Awaitable[None]]


class ChatGateway:
    """
    Relays chat events between live connections and the stores.

    Owns the connection registry and the background runner it is given;
    both are created once at application startup.
    """

    def __init__(
        self,
        store: MessagingStore,
        registry: ConnectionRegistry,
        runner: BackgroundTaskRunner,
        fanout: Optional[NotificationFanout] = None,
        *,
        history_page_size: Optional[int] = None,
    ):
        self.store = store
        self.registry = registry
        self.runner = runner
        self.fanout = fanout or NotificationFanout(store)
        self.history_page_size = history_page_size or settings.history_page_size
        self._handlers: Dict[str, Handler] = {
            InboundEvent.JOIN_CONVERSATION.value: self.on_join_conversation,
            InboundEvent.LEAVE_CONVERSATION.value: self.on_leave_conversation,
            InboundEvent.SEND_MESSAGE.value: self.on_send_message,
            InboundEvent.MESSAGE_READ.value: self.on_message_read,
            InboundEvent.TYPING.value: self.on_typing,
            InboundEvent.DISCONNECT.value: self.on_disconnect,
        }

    # Connection lifecycle

    def authenticate(self, websocket: WebSocket) -> Optional[int]:
        """Return the user id carried by the handshake, or None."""
        token = extract_token(websocket.headers, websocket.cookies, websocket.query_params)
        if not token:
            return None
        try:
            return decode_access_token(token)
        except UnauthorizedException:
            return None

    async def handle_connection(self, websocket: WebSocket) -> None:
        """Serve one websocket from handshake to disconnect."""
        user_id = self.authenticate(websocket)
        if user_id is None:
            logger.info("[GATEWAY] Handshake rejected: missing or invalid token")
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        await websocket.accept()
        connection = Connection(websocket, user_id)
        logger.info(f"[GATEWAY] User {user_id} connected ({connection!r})")

        reason: Any = "server closed"
        close_socket = False
        try:
            while not connection.closed:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                await self.dispatch(connection, raw)
            reason = "client requested disconnect"
            close_socket = True
        except WebSocketDisconnect as exc:
            reason = exc.code
        finally:
            self.disconnect(connection, reason)

        if close_socket:
            try:
                await websocket.close()
            except RuntimeError:
                logger.debug(f"[GATEWAY] Socket for {connection!r} already closed")

    def disconnect(self, connection: Connection, reason: Any = None) -> None:
        """Drop the connection from every room; nothing else is persisted."""
        rooms = self.registry.discard(connection)
        connection.closed = True
        logger.info(
            f"[GATEWAY] User {connection.user_id} disconnected ({reason}); left {len(rooms)} room(s)"
        )

    async def dispatch(self, connection: Connection, raw: Any) -> None:
        """Parse one inbound frame and route it to its handler."""
        try:
            payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            frame = InboundFrame.model_validate(payload)
        except (ValueError, ValidationError):
            await self._emit_error(connection, "Malformed frame", FRAME_CONTEXT)
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            await self._emit_error(connection, f"Unknown event {frame.event}", frame.event)
            return

        try:
            await handler(connection, frame.data)
        except Exception:
            logger.exception(f"[GATEWAY] Unhandled error in {frame.event} for {connection!r}")
            await self._emit_error(connection, f"Internal error handling {frame.event}", frame.event)

    # Event handlers

    async def on_join_conversation(self, connection: Connection, data: Any) -> None:
        event = InboundEvent.JOIN_CONVERSATION.value
        payload = await self._validate(connection, ConversationRoomPayload, data, event)
        if payload is None:
            return
        conversation_id = payload.conversation_id
        if not await self._check_participant(connection, conversation_id, event):
            return

        self.registry.join(conversation_id, connection)
        try:
            _, history = await asyncio.gather(
                self.store.mark_conversation_read(conversation_id, connection.user_id),
                self.store.fetch_history(
                    connection.user_id, conversation_id, self.history_page_size
                ),
            )
        except Exception as exc:
            # Room membership is kept; only the read/history step failed
            logger.error(
                f"[GATEWAY] Join side effects failed for {room_key(conversation_id)}: {exc}",
                extra={"conversation_id": conversation_id, "user_id": connection.user_id},
            )
            await self._emit_error(connection, "Could not join conversation (DB failure).", event)
            return

        await connection.emit(OutboundEvent.JOIN_ACK.value, build_join_ack(conversation_id))
        await connection.emit(
            OutboundEvent.HISTORY.value, build_history(conversation_id, history)
        )

    async def on_leave_conversation(self, connection: Connection, data: Any) -> None:
        event = InboundEvent.LEAVE_CONVERSATION.value
        payload = await self._validate(connection, ConversationRoomPayload, data, event)
        if payload is None:
            return
        self.registry.leave(payload.conversation_id, connection)

    async def on_send_message(self, connection: Connection, data: Any) -> None:
        event = InboundEvent.SEND_MESSAGE.value
        payload = await self._validate(connection, SendMessagePayload, data, event)
        if payload is None:
            return
        conversation_id = payload.conversation_id
        if not await self._check_participant(connection, conversation_id, event):
            return

        try:
            message = await self.store.create_message(
                connection.user_id,
                conversation_id,
                payload.content,
                message_type=payload.message_type,
                media_url=payload.media_url,
            )
        except Exception as exc:
            logger.error(
                f"[GATEWAY] Persisting message for {room_key(conversation_id)} failed: {exc}",
                extra={"conversation_id": conversation_id, "user_id": connection.user_id},
            )
            await self._emit_error(connection, "Could not persist message", event)
            return

        await self.publish_new_message(conversation_id, message, sender_id=connection.user_id)

    async def on_message_read(self, connection: Connection, data: Any) -> None:
        event = InboundEvent.MESSAGE_READ.value
        payload = await self._validate(connection, MessageReadPayload, data, event)
        if payload is None:
            return
        conversation_id = payload.conversation_id
        if not await self._check_participant(connection, conversation_id, event):
            return

        try:
            await asyncio.gather(
                self.store.mark_conversation_read(conversation_id, connection.user_id),
                self.store.mark_message_read(
                    conversation_id, connection.user_id, payload.message_id
                ),
            )
        except Exception as exc:
            logger.error(
                f"[GATEWAY] Marking message {payload.message_id} read failed: {exc}",
                extra={"conversation_id": conversation_id, "user_id": connection.user_id},
            )
            await self._emit_error(connection, "Could not mark message as read", event)
            return

        await self.publish_read_receipt(conversation_id, payload.message_id, connection.user_id)

    async def on_typing(self, connection: Connection, data: Any) -> None:
        # Relayed without a participant check; only room members receive it
        event = InboundEvent.TYPING.value
        payload = await self._validate(connection, TypingPayload, data, event)
        if payload is None:
            return
        await self.registry.emit_to_room(
            payload.conversation_id,
            OutboundEvent.TYPING.value,
            build_typing(payload.conversation_id, connection.user_id, payload.is_typing),
            exclude=connection,
        )

    async def on_disconnect(self, connection: Connection, data: Any) -> None:
        reason = data if isinstance(data, str) else "client disconnect"
        self.disconnect(connection, reason)

    # Broadcast entry points, shared with the REST routes

    async def publish_new_message(
        self, conversation_id: int, message: Dict[str, Any], *, sender_id: int
    ) -> int:
        """
        Broadcast a persisted message to its room.

        Afterwards the sender's read marker is advanced and the other
        participants are notified, both in the background.

        Returns the number of connections that received the broadcast.
        """
        delivered = await self.registry.emit_to_room(
            conversation_id,
            OutboundEvent.NEW_MESSAGE.value,
            build_new_message(conversation_id, message),
        )
        self.runner.spawn(
            self.store.mark_conversation_read(conversation_id, sender_id),
            label=f"mark_read:{conversation_id}:{sender_id}",
        )
        self.runner.spawn(
            self.fanout.notify_new_message(conversation_id, sender_id, message.get("content", "")),
            label=f"fanout:{conversation_id}:{message.get('id')}",
        )
        return delivered

    async def publish_read_receipt(
        self, conversation_id: int, message_id: int, user_id: int
    ) -> int:
        return await self.registry.emit_to_room(
            conversation_id,
            OutboundEvent.READ_ACK.value,
            build_read_receipt(conversation_id, message_id, user_id),
        )

    # Helpers

    async def _validate(
        self, connection: Connection, model: Type[P], data: Any, event: str
    ) -> Optional[P]:
        try:
            return model.model_validate(data)
        except ValidationError:
            await self._emit_error(connection, f"Invalid payload for {event}", event)
            return None

    async def _check_participant(
        self, connection: Connection, conversation_id: int, event: str
    ) -> bool:
        try:
            allowed = await self.store.is_participant(conversation_id, connection.user_id)
        except Exception as exc:
            logger.error(f"[GATEWAY] Participant check failed for {room_key(conversation_id)}: {exc}")
            await self._emit_error(connection, "Internal error checking permissions", event)
            return False
        if not allowed:
            await self._emit_error(
                connection, f"Not a participant of conversation {conversation_id}", event
            )
            return False
        return True

    async def _emit_error(self, connection: Connection, message: str, context: str) -> None:
        logger.debug(f"[GATEWAY] error to {connection!r} ({context}): {message}")
        await connection.emit(OutboundEvent.ERROR.value, build_error(message, context))
