"""Schemas for notifications and push subscriptions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.timezone_utils import ensure_utc
from ._strict_base import StrictModel, StrictRequestModel


class NotificationResponse(StrictModel):
    """Inbox entry."""

    id: int
    recipient_id: int
    sender_id: Optional[int] = None
    title: str
    body: Optional[str] = None
    type: str
    via: str
    action_url: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    sent_at: datetime

    model_config = ConfigDict(from_attributes=True, **StrictModel.model_config)

    @field_validator("sent_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class NotificationListResponse(StrictModel):
    notifications: List[NotificationResponse]


class NotificationEnvelope(StrictModel):
    notification: NotificationResponse


class NotificationDeletedResponse(StrictModel):
    message: str = "Notification deleted successfully"


class PushSubscribeRequest(StrictRequestModel):
    """Request to subscribe to push notifications."""

    endpoint: str = Field(
        ...,
        description="Push service endpoint URL",
        max_length=2048,
    )
    p256dh_key: str = Field(
        ...,
        alias="p256dh",
        description="Public encryption key",
        max_length=512,
    )
    auth_key: str = Field(
        ...,
        alias="auth",
        description="Auth secret",
        max_length=512,
    )
    user_agent: Optional[str] = Field(None, description="Browser/device info")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Push endpoint must use HTTPS")
        return value


class PushUnsubscribeRequest(StrictRequestModel):
    """Request to unsubscribe from push notifications."""

    endpoint: str = Field(..., description="Push service endpoint URL to remove")


class PushSubscriptionResponse(StrictModel):
    """Push subscription details."""

    id: int
    endpoint: str
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, **StrictModel.model_config)


class PushStatusResponse(StrictModel):
    """Response after subscribe/unsubscribe."""

    success: bool
    message: str
