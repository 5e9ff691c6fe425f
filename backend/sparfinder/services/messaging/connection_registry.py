# backend/sparfinder/services/messaging/connection_registry.py
"""
Live connections and conversation rooms.

The registry is owned by the gateway and created at application startup;
there is no module-level instance. All mutation happens on the event loop
thread, so no locking is needed around the room maps. Each connection has
its own send lock so concurrent broadcasts never interleave frames on one
socket.
"""

import asyncio
from collections import defaultdict
import itertools
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from starlette.websockets import WebSocket, WebSocketDisconnect

from .events import build_frame, room_key

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


class Connection:
    """One authenticated realtime connection."""

    def __init__(self, websocket: WebSocket, user_id: int):
        self.websocket = websocket
        self.user_id = user_id
        self.id = next(_connection_ids)
        self.closed = False
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Connection(id={self.id}, user={self.user_id})>"

    async def emit(self, event: str, data: Any) -> bool:
        """
        Send one frame.

        Returns False (and marks the connection closed) if the socket is gone.
        """
        if self.closed:
            return False
        async with self._send_lock:
            try:
                await self.websocket.send_json(build_frame(event, data))
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug(f"[GATEWAY] Send to {self!r} failed, marking closed: {exc}")
                self.closed = True
                return False
        return True


class ConnectionRegistry:
    """Maps conversation ids to the set of connections joined to them."""

    def __init__(self) -> None:
        self._rooms: Dict[int, Set[Connection]] = defaultdict(set)
        self._memberships: Dict[Connection, Set[int]] = defaultdict(set)

    def join(self, conversation_id: int, connection: Connection) -> None:
        self._rooms[conversation_id].add(connection)
        self._memberships[connection].add(conversation_id)
        logger.debug(f"[GATEWAY] {connection!r} joined {room_key(conversation_id)}")

    def leave(self, conversation_id: int, connection: Connection) -> None:
        members = self._rooms.get(conversation_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[conversation_id]
        rooms = self._memberships.get(connection)
        if rooms is not None:
            rooms.discard(conversation_id)
            if not rooms:
                del self._memberships[connection]

    def discard(self, connection: Connection) -> List[int]:
        """Remove a connection from every room it joined. Returns those rooms."""
        rooms = sorted(self._memberships.get(connection, ()))
        for conversation_id in rooms:
            self.leave(conversation_id, connection)
        return rooms

    def members(self, conversation_id: int) -> List[Connection]:
        return list(self._rooms.get(conversation_id, ()))

    def rooms_for(self, connection: Connection) -> Set[int]:
        return set(self._memberships.get(connection, ()))

    def room_count(self) -> int:
        return len(self._rooms)

    async def emit_to_room(
        self,
        conversation_id: int,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """
        Send a frame to every connection in a room.

        Returns the number of connections that received it. Connections found
        closed during the send are dropped from all rooms.
        """
        targets = [c for c in self.members(conversation_id) if c is not exclude]
        if not targets:
            return 0
        results = await asyncio.gather(*(c.emit(event, data) for c in targets))
        self._drop_closed(c for c, delivered in zip(targets, results) if not delivered)
        return sum(1 for delivered in results if delivered)

    def _drop_closed(self, connections: Iterable[Connection]) -> None:
        for connection in connections:
            self.discard(connection)
