# backend/sparfinder/services/notification_service.py
"""
Notification Service for the sparring app.

Every notification (new message, sparring request, confirmation, ...)
follows the same contract: the inbox row is persisted and committed first,
then push delivery is attempted on a best-effort basis. A delivery failure
is logged and never rolls back the row or reaches the caller.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService
from .push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """Inbox persistence plus push delivery."""

    def __init__(
        self,
        db: Session,
        notification_repository: Optional[NotificationRepository] = None,
        push_service: Optional[PushNotificationService] = None,
    ):
        super().__init__(db)
        self.notification_repository = (
            notification_repository or RepositoryFactory.create_notification_repository(db)
        )
        self.push_service = push_service or PushNotificationService(
            db, notification_repository=self.notification_repository
        )

    @BaseService.measure_operation("create_and_send_notification")
    def create_and_send(
        self,
        recipient_id: int,
        title: str,
        type: str,
        *,
        sender_id: Optional[int] = None,
        body: Optional[str] = None,
        via: str = "push",
        action_url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Persist a notification, then try to push it.

        The row is committed before delivery is attempted, so it survives any
        delivery failure.
        """
        with self.transaction():
            notification = self.notification_repository.create_notification(
                recipient_id,
                type,
                title,
                sender_id=sender_id,
                body=body,
                via=via,
                action_url=action_url,
                data=data,
            )

        if via != "push":
            return notification

        try:
            result = self.push_service.send_push_notification(
                recipient_id,
                title,
                body or "",
                url=action_url,
                tag=type,
                data=data,
            )
            self.logger.debug(f"[PUSH] Delivery for notification {notification.id}: {result}")
        except Exception as exc:
            self.logger.error(
                f"[PUSH] Delivery failed for notification {notification.id} to user {recipient_id}: {exc}",
                exc_info=True,
            )
        return notification

    def list_notifications(
        self, user_id: int, *, limit: int = 20, offset: int = 0, unread_only: bool = False
    ) -> List[Notification]:
        return self.notification_repository.get_user_notifications(
            user_id, limit=limit, offset=offset, unread_only=unread_only
        )

    def get_notification(self, user_id: int, notification_id: int) -> Notification:
        """Fetch one of the user's notifications; other users' rows are not found."""
        notification = self.notification_repository.get_for_user(user_id, notification_id)
        if notification is None:
            raise NotFoundException("Notification not found", code="NOTIFICATION_NOT_FOUND")
        return notification

    def mark_as_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self.get_notification(user_id, notification_id)
        with self.transaction():
            self.notification_repository.mark_as_read_for_user(user_id, notification_id)
        notification.is_read = True
        return notification

    def delete_notification(self, user_id: int, notification_id: int) -> None:
        with self.transaction():
            deleted = self.notification_repository.delete_notification(user_id, notification_id)
        if not deleted:
            raise NotFoundException("Notification not found", code="NOTIFICATION_NOT_FOUND")
