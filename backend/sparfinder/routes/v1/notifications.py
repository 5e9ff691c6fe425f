# backend/sparfinder/routes/v1/notifications.py
"""
Notification inbox and push subscription routes - API v1

Endpoints:
    GET /                       -> List the caller's notifications, newest first
    POST /push-subscriptions    -> Register (or refresh) a push subscription
    DELETE /push-subscriptions  -> Remove a push subscription
    GET /{notification_id}      -> Fetch one notification
    PATCH /{notification_id}/read -> Mark a notification as read
    DELETE /{notification_id}   -> Delete a notification

Another user's notification is reported as not found.
"""

import logging

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies.auth import get_current_user_id
from ...api.dependencies.ids import parse_id
from ...api.dependencies.services import get_notification_service, get_push_service
from ...core.exceptions import DomainException
from ...schemas.notification import (
    NotificationDeletedResponse,
    NotificationEnvelope,
    NotificationListResponse,
    NotificationResponse,
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
)
from ...services.notification_service import NotificationService
from ...services.push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications-v1"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    notifications = service.list_notifications(
        current_user_id, limit=limit, offset=offset, unread_only=unread_only
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications]
    )


# ============================================================================
# Push subscriptions (static paths before /{notification_id})
# ============================================================================


@router.post(
    "/push-subscriptions",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def subscribe_to_push(
    request: PushSubscribeRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: PushNotificationService = Depends(get_push_service),
) -> PushSubscriptionResponse:
    """
    Subscribe a browser/device to push notifications.

    Subscribing the same endpoint twice refreshes its keys.
    """
    subscription = service.subscribe(
        current_user_id,
        endpoint=request.endpoint,
        p256dh_key=request.p256dh_key,
        auth_key=request.auth_key,
        user_agent=request.user_agent,
    )
    return PushSubscriptionResponse.model_validate(subscription)


@router.delete("/push-subscriptions", response_model=PushStatusResponse)
def unsubscribe_from_push(
    request: PushUnsubscribeRequest = Body(...),
    current_user_id: int = Depends(get_current_user_id),
    service: PushNotificationService = Depends(get_push_service),
) -> PushStatusResponse:
    removed = service.unsubscribe(current_user_id, request.endpoint)
    if removed:
        return PushStatusResponse(success=True, message="Unsubscribed from push notifications")
    return PushStatusResponse(success=False, message="Subscription not found")


# ============================================================================
# Notification-specific routes
# ============================================================================


@router.get("/{notification_id}", response_model=NotificationEnvelope)
def get_notification(
    notification_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationEnvelope:
    try:
        notification = service.get_notification(
            current_user_id, parse_id(notification_id, label="notification ID")
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return NotificationEnvelope(notification=NotificationResponse.model_validate(notification))


@router.patch("/{notification_id}/read", response_model=NotificationEnvelope)
def mark_notification_read(
    notification_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationEnvelope:
    try:
        notification = service.mark_as_read(
            current_user_id, parse_id(notification_id, label="notification ID")
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return NotificationEnvelope(notification=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=NotificationDeletedResponse)
def delete_notification(
    notification_id: str,
    current_user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationDeletedResponse:
    try:
        service.delete_notification(
            current_user_id, parse_id(notification_id, label="notification ID")
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    return NotificationDeletedResponse()
