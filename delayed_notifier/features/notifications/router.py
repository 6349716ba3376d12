"""Notification scheduling endpoints.

- POST   /notify                    Schedule a notification
- GET    /notify/{notification_id}  Read its status
- DELETE /notify/{notification_id}  Remove it before dispatch
"""

from __future__ import annotations

from datetime import timedelta
import logging

from fastapi import APIRouter, status

from delayed_notifier.features.notifications.dependencies import (  # noqa: TC001
    NotificationSchedulerDep,
)
from delayed_notifier.features.notifications.schemas import (
    CreateNotificationRequest,
    CreateNotificationResponse,
    MessageResponse,
    NotificationStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notify", tags=["notifications"])


@router.post(
    "",
    response_model=CreateNotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a notification",
    description="Accept a message for delivery to its channels after the given delay",
    responses={503: {"description": "Store unavailable"}},
)
async def create_notification(
    payload: CreateNotificationRequest,
    scheduler: NotificationSchedulerDep,
) -> CreateNotificationResponse:
    notification_id = await scheduler.schedule_notification(
        payload.notification,
        timedelta(seconds=payload.delay_seconds),
        payload.channels.to_channels(),
    )
    return CreateNotificationResponse(uid=notification_id)


@router.get(
    "/{notification_id}",
    response_model=NotificationStatusResponse,
    summary="Get notification status",
    description="One of scheduled, sending, sent or failed",
    responses={404: {"description": "Unknown or expired notification"}},
)
async def get_notification_status(
    notification_id: str,
    scheduler: NotificationSchedulerDep,
) -> NotificationStatusResponse:
    current = await scheduler.get_notification_status(notification_id)
    return NotificationStatusResponse(status=current)


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    summary="Remove a scheduled notification",
    description="Only notifications that are still scheduled can be removed",
    responses={
        404: {"description": "Unknown or expired notification"},
        409: {"description": "Notification already dispatched"},
    },
)
async def delete_notification(
    notification_id: str,
    scheduler: NotificationSchedulerDep,
) -> MessageResponse:
    """Remove a notification that has not been dispatched yet.

    Once the poller has claimed it the removal is refused with 409; the
    notification then runs to ``sent`` or ``failed``.
    """
    await scheduler.remove_notification(notification_id)
    return MessageResponse(message="notification deleted")
