"""Repository for notification inbox entries and push subscriptions."""

from __future__ import annotations

from typing import Any, List, Optional, cast

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import (
    NOTIFICATION_CHANNELS,
    NOTIFICATION_TYPES,
    Notification,
    PushSubscription,
)
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Data access for notification inbox entries and push subscriptions."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def _validate_type(self, type: str) -> None:
        if type not in NOTIFICATION_TYPES:
            raise RepositoryException(f"Invalid notification type: {type}")

    def _validate_channel(self, via: str) -> None:
        if via not in NOTIFICATION_CHANNELS:
            raise RepositoryException(f"Invalid notification channel: {via}")

    # Notifications
    def create_notification(
        self,
        recipient_id: int,
        type: str,
        title: str,
        *,
        sender_id: int | None = None,
        body: str | None = None,
        via: str = "push",
        action_url: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        self._validate_type(type)
        self._validate_channel(via)
        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            title=title,
            body=body,
            via=via,
            action_url=action_url,
            data=data,
            is_read=False,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def get_user_notifications(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.recipient_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        query = (
            query.order_by(Notification.sent_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return cast(List[Notification], query.all())

    def get_for_user(self, user_id: int, notification_id: int) -> Optional[Notification]:
        return cast(
            Optional[Notification],
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.recipient_id == user_id)
            .first(),
        )

    def mark_as_read_for_user(self, user_id: int, notification_id: int) -> bool:
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .update({"is_read": True}, synchronize_session="fetch")
        )
        return bool(updated)

    def delete_notification(self, user_id: int, notification_id: int) -> bool:
        deleted = (
            self.db.query(Notification)
            .filter(
                Notification.recipient_id == user_id,
                Notification.id == notification_id,
            )
            .delete(synchronize_session=False)
        )
        return bool(deleted)

    # Push Subscriptions
    def create_subscription(
        self,
        user_id: int,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        query = self.db.query(PushSubscription).filter(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        existing = cast(Optional[PushSubscription], query.first())
        if existing is not None:
            existing.p256dh_key = p256dh_key
            existing.auth_key = auth_key
            existing.user_agent = user_agent
            self.db.flush()
            return existing

        subscription = PushSubscription(
            user_id=user_id,
            endpoint=endpoint,
            p256dh_key=p256dh_key,
            auth_key=auth_key,
            user_agent=user_agent,
        )
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def get_user_subscriptions(self, user_id: int) -> List[PushSubscription]:
        query = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.created_at.desc(), PushSubscription.id.desc())
        )
        return cast(List[PushSubscription], query.all())

    def delete_subscription(self, user_id: int, endpoint: str) -> bool:
        deleted = (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
            .delete(synchronize_session=False)
        )
        return bool(deleted)

    def delete_subscription_by_id(self, subscription_id: int) -> bool:
        deleted = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.id == subscription_id)
            .delete(synchronize_session=False)
        )
        return bool(deleted)


__all__ = ["NotificationRepository"]
