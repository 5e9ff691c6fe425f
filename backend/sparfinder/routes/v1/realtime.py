# backend/sparfinder/routes/v1/realtime.py
"""
Realtime chat channel.

    WEBSOCKET /ws?token=<jwt>

The token may also be sent as an ``Authorization: Bearer`` header or the
access token cookie. Frames are JSON ``{"event": ..., "data": ...}``; see
``services.messaging.events`` for the event names.
"""

from fastapi import APIRouter, WebSocket

from ...services.messaging.gateway import ChatGateway

router = APIRouter(tags=["realtime-v1"])


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket) -> None:
    gateway: ChatGateway = websocket.app.state.gateway
    await gateway.handle_connection(websocket)
