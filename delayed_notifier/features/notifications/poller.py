"""Due poller: moves notifications whose time has come from the index to the queue.

Every tick the poller reads up to ``batch_size`` ids with a score at or below
the current time, in ascending score order, and handles each one on its own:

- payload missing: the index entry is an orphan and is dropped
- payload unreadable for another reason: left alone until the next tick
- publish failed: the id is pushed back by ``publish_retry_delay`` and a
  per-id attempt counter is incremented; after ``max_publish_attempts`` the
  notification is retired and marked ``failed``
- published: removing the id from the index claims it; the payload and the
  counter are deleted and the status moves from ``scheduled`` to ``sending``.
  A consumer can finish the send before that write, so it is a compare-and-set
  that leaves a final status in place.

The status stays ``scheduled`` while publish retries are pending.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
import logging
import time
from typing import TYPE_CHECKING, Protocol

from delayed_notifier.core.exceptions import KeyNotFoundError, QueueError, StoreError
from delayed_notifier.core.settings import get_notifier_settings
from delayed_notifier.features.notifications.models import (
    NotificationStatus,
    dispatch_attempts_key,
    payload_key,
    status_key,
    to_score,
    utc_now,
)
from delayed_notifier.infra.logging import log_context
from delayed_notifier.infra.metrics.tracking import (
    track_dispatch,
    track_final_status,
    track_scan_duration,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from delayed_notifier.core.settings.notifier import NotifierSettings
    from delayed_notifier.infra.store.base import NotificationStore

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, payload: str) -> None: ...


class DuePoller:
    """Scans the due index on a fixed interval and publishes due notifications."""

    def __init__(
        self,
        store: NotificationStore,
        queue: Publisher,
        settings: NotifierSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.queue = queue
        self.settings = settings or get_notifier_settings()
        self._clock = clock

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick every ``poll_interval`` until ``stop_event`` is set.

        Scans never overlap: a scan that outlasts the interval delays the next
        tick instead of running concurrently with it. A scan in progress when
        the stop event is set is allowed to finish.
        """
        interval = self.settings.poll_interval
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval

        logger.info(
            "Due poller started",
            extra={"interval_ms": self.settings.poll_interval_ms, "batch_size": self.settings.batch_size},
        )
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(next_tick - loop.time(), 0))
            except TimeoutError:
                pass
            if stop_event.is_set():
                break

            try:
                await self.scan()
            except Exception:
                logger.exception("Due index scan failed")

            next_tick += interval
            if next_tick < loop.time():
                next_tick = loop.time()

        logger.info("Due poller stopped")

    async def scan(self) -> list[str]:
        """Handle one batch of due notifications.

        Returns:
            Ids published to the queue during this scan.
        """
        start = time.perf_counter()
        now = self._clock()

        try:
            due_ids = await self.store.sorted_set_range_by_score(
                self.settings.delayed_set_name,
                "-inf",
                to_score(now),
                0,
                self.settings.batch_size,
            )
        except StoreError as exc:
            logger.error("Failed to read due index", extra={"error": str(exc)})
            track_scan_duration(time.perf_counter() - start)
            return []

        published: list[str] = []
        for notification_id in due_ids:
            with log_context(notification_id=notification_id):
                try:
                    if await self._dispatch(notification_id, now):
                        published.append(notification_id)
                except Exception:
                    logger.exception("Failed to dispatch due notification")

        track_scan_duration(time.perf_counter() - start)
        if due_ids:
            logger.debug(
                "Due index scan finished",
                extra={"due": len(due_ids), "published": len(published)},
            )
        return published

    async def _dispatch(self, notification_id: str, now: datetime) -> bool:
        try:
            payload = await self.store.get(payload_key(notification_id))
        except KeyNotFoundError:
            await self.store.sorted_set_remove(self.settings.delayed_set_name, notification_id)
            track_dispatch("orphaned")
            logger.warning("Dropped due index entry without payload")
            return False
        except StoreError as exc:
            track_dispatch("fetch_failed")
            logger.warning("Failed to fetch payload, retrying next tick", extra={"error": str(exc)})
            return False

        try:
            await self.queue.publish(payload)
        except QueueError as exc:
            await self._handle_publish_failure(notification_id, now, exc)
            return False

        track_dispatch("published")
        claimed = await self.store.sorted_set_remove(self.settings.delayed_set_name, notification_id)
        if not claimed:
            logger.warning("Notification was removed while being published")
            return True

        await self.store.remove(payload_key(notification_id), dispatch_attempts_key(notification_id))
        # A consumer may already have stored the final status
        marked = await self.store.compare_and_set(
            status_key(notification_id),
            NotificationStatus.SENDING.value,
            expected=NotificationStatus.sources_of(NotificationStatus.SENDING),
        )
        if marked:
            logger.info("Notification dispatched")
        else:
            logger.info("Notification dispatched, status already advanced by a consumer")
        return True

    async def _handle_publish_failure(
        self,
        notification_id: str,
        now: datetime,
        error: QueueError,
    ) -> None:
        attempts = await self.store.increment(dispatch_attempts_key(notification_id))

        if attempts < self.settings.max_publish_attempts:
            retry_at = now + timedelta(seconds=self.settings.publish_retry_delay)
            await self.store.sorted_set_add(
                self.settings.delayed_set_name,
                notification_id,
                to_score(retry_at),
            )
            track_dispatch("publish_failed")
            logger.warning(
                "Publish failed, notification rescheduled",
                extra={
                    "attempt": attempts,
                    "max_attempts": self.settings.max_publish_attempts,
                    "retry_at": retry_at.isoformat(),
                    "error": str(error),
                },
            )
            return

        claimed = await self.store.sorted_set_remove(self.settings.delayed_set_name, notification_id)
        if not claimed:
            return

        await self.store.remove(payload_key(notification_id), dispatch_attempts_key(notification_id))
        await self.store.add(
            status_key(notification_id),
            NotificationStatus.FAILED.value,
            ttl=self.settings.status_ttl_seconds,
        )
        track_dispatch("abandoned")
        track_final_status(NotificationStatus.FAILED.value)
        logger.error(
            "Publish attempts exhausted, notification marked failed",
            extra={"attempts": attempts, "error": str(error)},
        )
