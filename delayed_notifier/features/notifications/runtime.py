"""Wiring of the store, queue, poller, consumer pool and sender.

Startup order: store, queue (with retry), consume loop, poller, consumer pool.
Shutdown first stops the queue subscriber, then sets the stop event and waits
for the poller's current scan, the messages left in the inbox and every
in-flight send (including its status write). Only then are the queue, the
transports and the store closed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from delayed_notifier.core.settings import (
    get_email_settings,
    get_notifier_settings,
    get_rabbit_settings,
    get_telegram_settings,
)
from delayed_notifier.features.notifications.channels import build_transports
from delayed_notifier.features.notifications.consumer import NotificationConsumer
from delayed_notifier.features.notifications.poller import DuePoller
from delayed_notifier.features.notifications.sender import NotificationSender, RetryPolicy
from delayed_notifier.features.notifications.service import NotificationScheduler
from delayed_notifier.infra.messaging import NotificationQueue
from delayed_notifier.infra.store import RedisStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from delayed_notifier.core.settings.notifier import NotifierSettings
    from delayed_notifier.core.settings.rabbit import RabbitSettings
    from delayed_notifier.features.notifications.channels.base import ChannelTransport
    from delayed_notifier.infra.store.base import NotificationStore

logger = logging.getLogger(__name__)


class NotificationRuntime:
    """Owns every long-lived component of the service."""

    def __init__(
        self,
        store: NotificationStore | None = None,
        queue: NotificationQueue | None = None,
        transports: Mapping[str, ChannelTransport] | None = None,
        settings: NotifierSettings | None = None,
        rabbit_settings: RabbitSettings | None = None,
    ) -> None:
        self.settings = settings or get_notifier_settings()
        self.rabbit_settings = rabbit_settings or get_rabbit_settings()

        self.store: NotificationStore = store if store is not None else RedisStore()
        self.queue = queue if queue is not None else NotificationQueue(self.rabbit_settings)
        self.transports = dict(
            transports
            if transports is not None
            else build_transports(get_email_settings(), get_telegram_settings()),
        )

        self.inbox: asyncio.Queue[str] = asyncio.Queue(maxsize=self.settings.inbox_size)
        self.scheduler = NotificationScheduler(self.store, self.settings)
        self.sender = NotificationSender(
            self.transports,
            self.store,
            retry_policy=RetryPolicy.from_settings(self.settings),
            status_ttl=self.settings.status_ttl_seconds,
        )
        self.poller = DuePoller(self.store, self.queue, self.settings)
        self.consumer = NotificationConsumer(
            self.inbox,
            self.sender,
            workers=self.settings.consumer_workers,
        )

        self._stop_event = asyncio.Event()
        self._consume_task: asyncio.Task[None] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._started = False

    @property
    def pipeline_running(self) -> bool:
        return bool(self._workers) and not self._stop_event.is_set()

    async def start(self, *, pipeline: bool = True) -> None:
        """Connect to the store and, unless ``pipeline`` is False, start dispatching.

        Raises:
            StoreError: If Redis is unreachable.
            QueueConnectionError: If RabbitMQ stayed unreachable for every attempt.
        """
        if self._started:
            return
        self._started = True

        await self.store.connect()
        if not pipeline:
            logger.info("Notification runtime started without pipeline")
            return

        await self.queue.connect_with_retry(
            self.rabbit_settings.connect_attempts,
            self.rabbit_settings.connect_pause,
        )
        self._consume_task = asyncio.create_task(self.queue.consume(self.inbox), name="queue-consume")
        self._workers = [
            asyncio.create_task(self.poller.run(self._stop_event), name="due-poller"),
            asyncio.create_task(self.consumer.run(self._stop_event), name="consumer-pool"),
        ]
        logger.info(
            "Notification runtime started",
            extra={
                "channels": sorted(self.transports),
                "workers": self.settings.consumer_workers,
            },
        )

    async def stop(self) -> None:
        """Stop dispatching, drain in-flight work and release connections."""
        if not self._started:
            return
        self._started = False

        # No new deliveries may be acknowledged once the workers start winding down
        if self._consume_task is not None:
            await self.queue.stop_consuming()
        self._stop_event.set()

        for result in await asyncio.gather(*self._workers, return_exceptions=True):
            if isinstance(result, BaseException):
                logger.error("Pipeline task ended with error", extra={"error": repr(result)})
        self._workers = []

        await self.queue.close()
        if self._consume_task is not None:
            result = (await asyncio.gather(self._consume_task, return_exceptions=True))[0]
            if isinstance(result, BaseException):
                logger.error("Consume loop ended with error", extra={"error": repr(result)})
            self._consume_task = None

        if not self.inbox.empty():
            logger.warning("Dropping undelivered messages at shutdown", extra={"count": self.inbox.qsize()})

        for channel, transport in self.transports.items():
            try:
                await transport.close()
            except Exception:
                logger.exception("Failed to close transport", extra={"channel": channel})

        await self.store.disconnect()
        logger.info("Notification runtime stopped")

    async def health(self) -> dict[str, bool]:
        """Liveness of the backing services."""
        return {
            "redis": await self.store.ping(),
            "rabbitmq": self.queue.is_connected,
        }
