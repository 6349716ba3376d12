"""FastAPI dependencies for the notification endpoints.

The runtime is created by the application lifespan and kept on
``app.state.runtime``; route handlers reach the scheduler through it.

Usage:
    from delayed_notifier.features.notifications.dependencies import (
        NotificationSchedulerDep,
    )

    @router.get("/{notification_id}")
    async def get_status(notification_id: str, scheduler: NotificationSchedulerDep):
        return await scheduler.get_notification_status(notification_id)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from delayed_notifier.core.exceptions import ServiceUnavailableException
from delayed_notifier.features.notifications.runtime import NotificationRuntime
from delayed_notifier.features.notifications.service import NotificationScheduler


def get_runtime(request: Request) -> NotificationRuntime:
    """Return the runtime started by the application lifespan.

    Raises:
        ServiceUnavailableException: If the application has not started it.
    """
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise ServiceUnavailableException("notification runtime is not running")
    return runtime


def get_scheduler(
    runtime: Annotated[NotificationRuntime, Depends(get_runtime)],
) -> NotificationScheduler:
    return runtime.scheduler


NotificationRuntimeDep = Annotated[NotificationRuntime, Depends(get_runtime)]
"""Notification runtime dependency."""

NotificationSchedulerDep = Annotated[NotificationScheduler, Depends(get_scheduler)]
"""Notification scheduler dependency."""
