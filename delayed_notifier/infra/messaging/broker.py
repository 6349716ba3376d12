"""RabbitMQ queue between the due poller and the consumer pool.

:class:`NotificationQueue` wraps a FastStream ``RabbitBroker`` bound to one
durable queue:

- ``connect_with_retry`` opens the connection, pausing between attempts
- ``publish`` hands one serialized notification to RabbitMQ
- ``consume`` pushes every received body into an ``asyncio.Queue`` and blocks
  until the queue is closed
- ``stop_consuming`` stops the subscriber ahead of shutdown so nothing is
  acknowledged that the workers will not get to
- ``close`` stops the broker and releases ``consume``

A message is acknowledged as soon as its body has been put into the inbox,
before a worker has sent it. A crash between hand-off and delivery loses that
message; a crash between publish and index cleanup duplicates it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from faststream.exceptions import NackMessage
from faststream.rabbit import RabbitBroker, RabbitQueue

from delayed_notifier.core.exceptions import QueueConnectionError, QueuePublishError
from delayed_notifier.core.settings import get_rabbit_settings

if TYPE_CHECKING:
    from delayed_notifier.core.settings.rabbit import RabbitSettings

logger = logging.getLogger(__name__)


class NotificationQueue:
    """Durable RabbitMQ queue carrying due notifications."""

    def __init__(
        self,
        settings: RabbitSettings | None = None,
        broker: RabbitBroker | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            settings: RabbitMQ settings; loaded from the environment when omitted.
            broker: Pre-built broker, mainly for tests.
        """
        self.settings = settings or get_rabbit_settings()
        self.broker = broker or RabbitBroker(
            self.settings.url,
            graceful_timeout=self.settings.graceful_timeout,
            max_consumers=self.settings.prefetch_count,
            logger=logger,
        )
        self.queue = RabbitQueue(name=self.settings.queue_name, durable=True, auto_delete=False)
        self._connected = False
        self._consuming = False
        self._draining = False
        self._subscriber: Any = None
        self._handoffs = 0
        self._handoffs_done = asyncio.Event()
        self._handoffs_done.set()
        self._closed = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._connected and not self._closed.is_set()

    async def connect_with_retry(
        self,
        attempts: int | None = None,
        pause: float | None = None,
    ) -> None:
        """Connect to RabbitMQ, trying up to ``attempts`` times.

        Args:
            attempts: Maximum number of connection attempts (settings default).
            pause: Fixed pause in seconds between attempts (settings default).

        Raises:
            QueueConnectionError: If every attempt failed.
        """
        attempts = attempts if attempts is not None else self.settings.connect_attempts
        pause = pause if pause is not None else self.settings.connect_pause
        if attempts < 1:
            msg = "attempts must be at least 1"
            raise ValueError(msg)

        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(
                    self.broker.connect(),
                    timeout=self.settings.connection_timeout,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "RabbitMQ connection attempt failed",
                    extra={
                        "host": self.settings.host,
                        "port": self.settings.port,
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "error": str(e) or type(e).__name__,
                    },
                )
                if attempt < attempts:
                    await asyncio.sleep(pause)
                continue

            self._connected = True
            logger.info(
                "Connected to RabbitMQ",
                extra={"host": self.settings.host, "queue": self.queue.name, "attempt": attempt},
            )
            return

        msg = f"could not connect to RabbitMQ after {attempts} attempts: {last_error}"
        raise QueueConnectionError(msg) from last_error

    async def publish(self, payload: str) -> None:
        """Enqueue one message.

        Raises:
            QueuePublishError: If the queue is not connected or the broker
                rejected the message.
        """
        if not self.is_connected:
            msg = "queue is not connected"
            raise QueuePublishError(msg)

        try:
            await self.broker.publish(payload, queue=self.queue, persist=True)
        except Exception as e:
            msg = f"publish to {self.queue.name} failed: {e}"
            raise QueuePublishError(msg) from e

    async def consume(self, inbox: asyncio.Queue[str]) -> None:
        """Feed every received message body into ``inbox`` until :meth:`close`.

        The handler returns, and the message is acknowledged, once the body
        is in ``inbox``; a full inbox therefore throttles the broker. After
        :meth:`stop_consuming` new deliveries are nacked back to the queue.

        Raises:
            QueueConnectionError: If the subscriber could not be started.
        """
        if self._consuming:
            msg = "consume() is already running"
            raise RuntimeError(msg)
        self._consuming = True

        async def hand_off(body: str) -> None:
            if self._draining:
                raise NackMessage(requeue=True)
            self._handoffs += 1
            self._handoffs_done.clear()
            try:
                await inbox.put(body)
            finally:
                self._handoffs -= 1
                if not self._handoffs:
                    self._handoffs_done.set()

        self._subscriber = self.broker.subscriber(self.queue)
        self._subscriber(hand_off)

        try:
            await self.broker.start()
        except Exception as e:
            self._consuming = False
            msg = f"could not start consuming from {self.queue.name}: {e}"
            raise QueueConnectionError(msg) from e

        logger.info("Consuming notifications", extra={"queue": self.queue.name})
        try:
            await self._closed.wait()
        finally:
            self._consuming = False
            logger.info("Stopped consuming notifications", extra={"queue": self.queue.name})

    async def stop_consuming(self) -> None:
        """Stop taking deliveries and wait for pending hand-offs to reach the inbox.

        The connection stays open so the poller can keep publishing. Hand-offs
        blocked on a full inbox finish as soon as workers make room, so the
        workers must still be running when this is awaited.
        """
        if self._draining:
            return
        self._draining = True

        if self._subscriber is not None:
            try:
                await self._subscriber.close()
            except Exception as e:
                logger.exception("Error stopping RabbitMQ subscriber", extra={"error": str(e)})

        try:
            await asyncio.wait_for(self._handoffs_done.wait(), timeout=self.settings.graceful_timeout)
        except TimeoutError:
            logger.warning(
                "Hand-offs still pending after graceful timeout",
                extra={"pending": self._handoffs, "timeout": self.settings.graceful_timeout},
            )
        else:
            logger.info("Stopped taking deliveries", extra={"queue": self.queue.name})

    async def close(self) -> None:
        """Stop the broker. Safe to call more than once."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._connected = False

        try:
            await self.broker.close()
            logger.info("RabbitMQ broker stopped")
        except Exception as e:
            logger.exception("Error stopping RabbitMQ broker", extra={"error": str(e)})
