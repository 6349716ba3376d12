"""Scheduling, status lookup and removal of delayed notifications."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from delayed_notifier.core.exceptions import (
    KeyNotFoundError,
    NotificationConflictError,
    NotificationNotFoundError,
    StoreError,
)
from delayed_notifier.core.settings import get_notifier_settings
from delayed_notifier.features.notifications.models import (
    DelayedNotification,
    NotificationStatus,
    dispatch_attempts_key,
    payload_key,
    status_key,
    utc_now,
)
from delayed_notifier.infra.metrics.tracking import (
    track_notification_removed,
    track_notification_scheduled,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from delayed_notifier.core.settings.notifier import NotifierSettings
    from delayed_notifier.features.notifications.models import Channels
    from delayed_notifier.infra.store.base import NotificationStore

logger = logging.getLogger(__name__)


class NotificationScheduler:
    """Creates notification records and answers questions about them.

    Scheduling writes three records: the serialized payload, the ``scheduled``
    status and the due index entry. The writes are not transactional; when
    the index insert fails the payload and status are deleted again on a
    best-effort basis before the error is raised.
    """

    def __init__(
        self,
        store: NotificationStore,
        settings: NotifierSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.settings = settings or get_notifier_settings()
        self._clock = clock

    async def schedule_notification(
        self,
        body: str,
        delay: timedelta,
        channels: Channels | None = None,
    ) -> str:
        """Persist a notification due ``delay`` from now and return its id.

        Raises:
            StoreError: If any of the writes failed.
        """
        notification = DelayedNotification.create(body, delay, channels, now=self._clock())
        notification_id = notification.id

        await self.store.add(payload_key(notification_id), notification.to_payload())

        try:
            await self.store.add(status_key(notification_id), NotificationStatus.SCHEDULED.value)
            await self.store.sorted_set_add(
                self.settings.delayed_set_name,
                notification_id,
                notification.due_score,
            )
        except StoreError:
            await self._discard_records(notification_id)
            raise

        track_notification_scheduled()
        logger.info(
            "Notification scheduled",
            extra={
                "notification_id": notification_id,
                "due_at": notification.due_at.isoformat(),
                "channels": [name for name, _ in notification.channels.destinations()],
            },
        )
        return notification_id

    async def get_notification_status(self, notification_id: str) -> NotificationStatus:
        """Return the current status.

        Raises:
            NotificationNotFoundError: If no status record exists.
            StoreError: On store failure.
        """
        try:
            raw = await self.store.get(status_key(notification_id))
        except KeyNotFoundError:
            raise NotificationNotFoundError(notification_id) from None

        try:
            return NotificationStatus(raw)
        except ValueError as exc:
            msg = f"unknown status {raw!r} stored for notification {notification_id}"
            raise StoreError(msg) from exc

    async def remove_notification(self, notification_id: str) -> None:
        """Delete a notification that has not been dispatched yet.

        The id is taken out of the due index first. If it is already gone the
        poller has claimed it and the removal is refused.

        Raises:
            NotificationNotFoundError: If no status record exists.
            NotificationConflictError: If the notification is no longer scheduled.
            StoreError: On store failure.
        """
        status = await self.get_notification_status(notification_id)
        if status is not NotificationStatus.SCHEDULED:
            raise NotificationConflictError(notification_id)

        removed = await self.store.sorted_set_remove(self.settings.delayed_set_name, notification_id)
        if not removed:
            raise NotificationConflictError(notification_id, reason="is being dispatched")

        await self.store.remove(
            payload_key(notification_id),
            status_key(notification_id),
            dispatch_attempts_key(notification_id),
        )

        track_notification_removed()
        logger.info("Notification removed", extra={"notification_id": notification_id})

    async def _discard_records(self, notification_id: str) -> None:
        try:
            await self.store.remove(payload_key(notification_id), status_key(notification_id))
        except StoreError as exc:
            logger.error(
                "Failed to clean up records of unscheduled notification",
                extra={"notification_id": notification_id, "error": str(exc)},
            )
