# backend/sparfinder/services/push_notification_service.py
"""
Push notification service for web push subscriptions and delivery.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.notification import PushSubscription
from ..repositories.factory import RepositoryFactory
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/icons/icon-192x192.png"

SENT = "sent"
FAILED = "failed"
EXPIRED = "expired"


class PushNotificationService(BaseService):
    """Service for managing web push subscriptions and delivering pushes."""

    def __init__(
        self,
        db: Session,
        notification_repository: Optional[NotificationRepository] = None,
    ) -> None:
        super().__init__(db)
        self.notification_repository = (
            notification_repository or RepositoryFactory.create_notification_repository(db)
        )
        self._frontend_base = settings.frontend_url.rstrip("/")

    def _resolve_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not self._frontend_base:
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._frontend_base}{path}"

    @BaseService.measure_operation("subscribe")
    def subscribe(
        self,
        user_id: int,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """
        Store a push subscription for a user.

        Handles duplicate subscriptions gracefully (upsert by endpoint).
        """
        with self.transaction():
            return self.notification_repository.create_subscription(
                user_id=user_id,
                endpoint=endpoint,
                p256dh_key=p256dh_key,
                auth_key=auth_key,
                user_agent=user_agent,
            )

    @BaseService.measure_operation("unsubscribe")
    def unsubscribe(self, user_id: int, endpoint: str) -> bool:
        """Remove a push subscription. Returns True if one was deleted."""
        with self.transaction():
            return self.notification_repository.delete_subscription(user_id, endpoint)

    def get_user_subscriptions(self, user_id: int) -> List[PushSubscription]:
        return self.notification_repository.get_user_subscriptions(user_id)

    @BaseService.measure_operation("send_push_notification")
    def send_push_notification(
        self,
        user_id: int,
        title: str,
        body: str,
        url: Optional[str] = None,
        tag: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, int]:
        """
        Send a push notification to all of a user's subscribed devices.

        Args:
            user_id: Target user
            title: Notification title
            body: Notification body text
            url: Path or URL to open when the notification is clicked
            tag: Tag for notification grouping/replacement
            data: Additional data payload

        Returns:
            dict with 'sent', 'failed', 'expired' counts
        """
        counts = {SENT: 0, FAILED: 0, EXPIRED: 0}
        if not self.is_configured():
            self.logger.warning("[PUSH] Push notifications not configured; skipping send")
            return counts

        subscriptions = self.get_user_subscriptions(user_id)
        if not subscriptions:
            return counts

        payload = self._build_payload(title=title, body=body, url=url, tag=tag, data=data)
        for subscription in subscriptions:
            counts[self._send_to_subscription(subscription, payload)] += 1
        return counts

    def _send_to_subscription(self, subscription: PushSubscription, payload: str) -> str:
        """
        Send push to a single subscription.

        Expired or invalid subscriptions (404/410 from the push service) are
        deleted.
        """
        private_key = settings.vapid_private_key
        try:
            webpush(
                subscription_info={
                    "endpoint": subscription.endpoint,
                    "keys": {
                        "p256dh": subscription.p256dh_key,
                        "auth": subscription.auth_key,
                    },
                },
                data=payload,
                vapid_private_key=private_key.get_secret_value().strip() if private_key else "",
                vapid_claims={"sub": settings.vapid_claims_email},
                ttl=settings.push_ttl_seconds,
            )
            return SENT
        except WebPushException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            if status_code in (404, 410):
                self.logger.info(
                    f"[PUSH] Subscription expired; deleting endpoint={subscription.endpoint} "
                    f"user_id={subscription.user_id}"
                )
                with self.transaction():
                    self.notification_repository.delete_subscription_by_id(subscription.id)
                return EXPIRED

            self.logger.error(f"[PUSH] Push send failed: {exc}")
            return FAILED

    def _build_payload(
        self,
        title: str,
        body: str,
        url: Optional[str] = None,
        tag: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Build JSON payload for push notification."""
        payload_data: Dict[str, Any] = {}
        if data:
            payload_data.update(data)
        if url:
            payload_data.setdefault("url", self._resolve_url(url))

        payload: Dict[str, Any] = {
            "title": title,
            "body": body,
            "icon": self._resolve_url(DEFAULT_ICON),
            "tag": tag,
            "data": payload_data or None,
        }

        cleaned = {key: value for key, value in payload.items() if value is not None}
        return json.dumps(cleaned)

    @staticmethod
    def is_configured() -> bool:
        """Check if VAPID keys are configured."""
        return settings.push_configured
