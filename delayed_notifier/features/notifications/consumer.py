"""Worker pool draining the inbox fed by the queue."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from delayed_notifier.core.exceptions import NotificationDeliveryError, SerializationError
from delayed_notifier.features.notifications.models import DelayedNotification
from delayed_notifier.infra.logging import log_context, set_log_context
from delayed_notifier.infra.metrics.tracking import track_consumed_message

if TYPE_CHECKING:
    from delayed_notifier.features.notifications.models import NotificationStatus

logger = logging.getLogger(__name__)


class Sender(Protocol):
    async def send(self, notification: DelayedNotification) -> NotificationStatus: ...


class NotificationConsumer:
    """Fixed pool of workers reading one shared inbox.

    Empty messages are ignored and malformed ones are logged and dropped.
    Delivery errors are logged only; retrying is the sender's job. Messages
    are not ordered across workers.
    """

    def __init__(
        self,
        inbox: asyncio.Queue[str],
        sender: Sender,
        workers: int = 4,
        poll_timeout: float = 0.5,
    ) -> None:
        if workers < 1:
            msg = "workers must be at least 1"
            raise ValueError(msg)
        self.inbox = inbox
        self.sender = sender
        self.workers = workers
        self.poll_timeout = poll_timeout

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run the pool until ``stop_event`` is set and the inbox is empty.

        Messages already in the inbox when the event is set are still sent;
        this returns after every in-flight send has finished.
        """
        tasks = [
            asyncio.create_task(self._worker(index, stop_event), name=f"consumer-worker-{index}")
            for index in range(self.workers)
        ]
        logger.info("Consumer pool started", extra={"workers": self.workers})
        await asyncio.gather(*tasks)
        logger.info("Consumer pool stopped")

    async def _worker(self, index: int, stop_event: asyncio.Event) -> None:
        set_log_context(worker=index)
        while not (stop_event.is_set() and self.inbox.empty()):
            try:
                message = await asyncio.wait_for(self.inbox.get(), timeout=self.poll_timeout)
            except TimeoutError:
                continue

            try:
                await self.handle_message(message)
            finally:
                self.inbox.task_done()

    async def handle_message(self, message: str | bytes) -> None:
        """Decode one message and send it."""
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        if not message.strip():
            track_consumed_message("empty")
            return

        try:
            notification = DelayedNotification.from_payload(message)
        except SerializationError as exc:
            track_consumed_message("malformed")
            logger.error(
                "Dropping malformed message",
                extra={"error": str(exc), "payload": message[:200]},
            )
            return

        with log_context(notification_id=notification.id):
            try:
                await self.sender.send(notification)
            except NotificationDeliveryError as exc:
                track_consumed_message("failed")
                logger.error(
                    "Notification delivery failed",
                    extra={"status": exc.status.value, "error": str(exc)},
                )
                return
            except Exception:
                track_consumed_message("failed")
                logger.exception("Unexpected error while sending notification")
                return

        track_consumed_message("processed")
