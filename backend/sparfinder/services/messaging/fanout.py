# backend/sparfinder/services/messaging/fanout.py
"""
Notification fan-out for new chat messages.

Runs outside the request's critical path (spawned on the background
runner). Each recipient is notified independently; a failure for one is
logged and does not affect the others.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .store import MessagingStore

logger = logging.getLogger(__name__)

PREVIEW_MAX_LENGTH = 40
PREVIEW_KEEP = 37
NEW_MESSAGE_TYPE = "new_message"


def preview_text(content: str) -> str:
    """Notification body: the content itself, or 37 chars plus "..." past 40."""
    if len(content) <= PREVIEW_MAX_LENGTH:
        return content
    return content[:PREVIEW_KEEP] + "..."


def conversation_action_url(conversation_id: int) -> str:
    return f"/conversations/{conversation_id}"


class NotificationFanout:
    """Notifies every participant except the sender about a new message."""

    def __init__(self, store: MessagingStore):
        self.store = store

    async def notify_new_message(
        self,
        conversation_id: int,
        sender_id: int,
        content: str,
        recipient_ids: Optional[List[int]] = None,
    ) -> int:
        """
        Persist and push one notification per other participant.

        Returns:
            Number of recipients whose notification was stored
        """
        if recipient_ids is None:
            participant_ids = await self.store.get_participant_ids(conversation_id)
            recipient_ids = [uid for uid in participant_ids if uid != sender_id]
        if not recipient_ids:
            return 0

        sender = await self.store.get_participant_profile(sender_id)
        fields: Dict[str, Any] = {
            "sender_id": sender_id,
            "title": f"New message from {sender.display_name}",
            "body": preview_text(content),
            "type": NEW_MESSAGE_TYPE,
            "via": "push",
            "action_url": conversation_action_url(conversation_id),
            "data": {
                "screen": "chat",
                "title": sender.display_name,
                "conversationId": str(conversation_id),
            },
        }

        results = await asyncio.gather(
            *(
                self.store.create_and_send_notification(recipient_id, **fields)
                for recipient_id in recipient_ids
            ),
            return_exceptions=True,
        )

        stored = 0
        for recipient_id, result in zip(recipient_ids, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"[FANOUT] Notification to user {recipient_id} for conversation "
                    f"{conversation_id} failed: {result}",
                    extra={"conversation_id": conversation_id, "recipient_id": recipient_id},
                )
            else:
                stored += 1
        logger.debug(
            f"[FANOUT] Stored {stored}/{len(recipient_ids)} notification(s) "
            f"for conversation {conversation_id}"
        )
        return stored
