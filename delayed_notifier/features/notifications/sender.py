"""Multi-channel delivery with per-channel retry and status persistence.

``NotificationSender.send`` starts one task per destination of a
notification. Each task calls its channel transport through
:func:`~delayed_notifier.utils.retry.retry_call` without jitter, so attempt
``k`` starts no earlier than ``delay * backoff ** (k - 2)`` after attempt
``k - 1`` failed. When all tasks are done the outcome is collapsed into one
status: ``sent`` if every channel succeeded, ``failed`` otherwise (a
notification delivered on one channel but not the other is ``failed``).

The status is always written, including when no channel is configured (the
notification is trivially ``sent``) and when the send is cancelled: outstanding
channel tasks are cancelled, ``failed`` is written behind
:func:`asyncio.shield` and awaited to completion, and only then is the
cancellation propagated.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from delayed_notifier.core.exceptions import (
    ChannelNotConfiguredError,
    NotificationDeliveryError,
    StoreError,
    TransportError,
)
from delayed_notifier.features.notifications.models import NotificationStatus, status_key
from delayed_notifier.infra.logging import log_context
from delayed_notifier.infra.metrics.tracking import track_channel_delivery, track_final_status
from delayed_notifier.utils.retry import RetryError, retry_call

if TYPE_CHECKING:
    from collections.abc import Mapping

    from delayed_notifier.core.settings.notifier import NotifierSettings
    from delayed_notifier.features.notifications.channels.base import ChannelTransport
    from delayed_notifier.features.notifications.models import DelayedNotification
    from delayed_notifier.infra.store.base import NotificationStore

logger = logging.getLogger(__name__)

DEFAULT_STATUS_TTL = 168 * 3600


@dataclass(frozen=True)
class RetryPolicy:
    """Per-channel retry budget.

    Attributes:
        attempts: Total attempts per channel, including the first one.
        delay: Pause after the first failure, in seconds.
        backoff: Factor applied to the pause after every further failure.
    """

    attempts: int = 10
    delay: float = 2.0
    backoff: float = 2.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            msg = "attempts must be at least 1"
            raise ValueError(msg)
        if self.delay < 0:
            msg = "delay must not be negative"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: NotifierSettings) -> RetryPolicy:
        return cls(
            attempts=settings.sender_retry_attempts,
            delay=settings.sender_retry_delay,
            backoff=settings.sender_retry_backoff,
        )


class NotificationSender:
    """Delivers notifications to their channels and records the outcome."""

    def __init__(
        self,
        transports: Mapping[str, ChannelTransport],
        store: NotificationStore,
        retry_policy: RetryPolicy | None = None,
        status_ttl: int | None = DEFAULT_STATUS_TTL,
    ) -> None:
        """Initialize the sender.

        Args:
            transports: Transport per channel name (``email``, ``telegram``).
            store: Store receiving the final status.
            retry_policy: Retry budget applied to every channel.
            status_ttl: Lifetime of the final status record in seconds.
        """
        self.transports = dict(transports)
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()
        self.status_ttl = status_ttl

    async def send(self, notification: DelayedNotification) -> NotificationStatus:
        """Deliver ``notification`` on every channel and persist the final status.

        Returns:
            ``NotificationStatus.SENT`` when every channel succeeded and the
            status was stored.

        Raises:
            NotificationDeliveryError: If a channel exhausted its retries or the
                status could not be stored. The error lists every failure and
                the status that was determined.
            asyncio.CancelledError: If cancelled; ``failed`` has been stored
                (or the attempt to store it has finished) by then.
        """
        with log_context(notification_id=notification.id):
            deliveries = list(notification.channels.destinations())
            tasks = [
                asyncio.create_task(
                    self._deliver(channel, destination, notification.notification),
                    name=f"deliver-{channel}-{notification.id}",
                )
                for channel, destination in deliveries
            ]

            try:
                results = await asyncio.gather(*tasks, return_exceptions=True)
            except asyncio.CancelledError:
                await self._record_cancellation(notification.id, tasks)
                raise

            errors: list[BaseException] = []
            for (channel, _destination), result in zip(deliveries, results, strict=True):
                track_channel_delivery(channel, success=result is None)
                if isinstance(result, BaseException):
                    errors.append(result)
                    logger.warning(
                        "Channel delivery failed",
                        extra={"channel": channel, "error": str(result)},
                    )

            status = NotificationStatus.FAILED if errors else NotificationStatus.SENT
            try:
                await self._store_status(notification.id, status)
            except StoreError as exc:
                errors.append(exc)
                logger.error("Failed to store final status", extra={"status": status.value, "error": str(exc)})

            if errors:
                raise NotificationDeliveryError(notification.id, status, errors)

            logger.info("Notification sent", extra={"channels": [c for c, _ in deliveries]})
            return status

    async def _deliver(self, channel: str, destination: str, body: str) -> None:
        transport = self.transports.get(channel)
        if transport is None:
            raise ChannelNotConfiguredError(channel)

        policy = self.retry_policy
        try:
            await retry_call(
                lambda: transport.send(destination, body),
                max_attempts=policy.attempts,
                initial_delay=policy.delay,
                exponential_base=policy.backoff,
                max_delay=None,
                jitter=False,
                operation=f"send_{channel}",
            )
        except RetryError as exc:
            msg = f"gave up after {exc.attempts} attempts: {exc.last_exception}"
            raise TransportError(channel, msg) from exc

    async def _record_cancellation(
        self,
        notification_id: str,
        tasks: list[asyncio.Task[None]],
    ) -> None:
        for task in tasks:
            task.cancel()

        logger.warning("Send cancelled, recording notification as failed")
        try:
            await self._store_status(notification_id, NotificationStatus.FAILED)
        except StoreError as exc:
            logger.error("Failed to store status after cancellation", extra={"error": str(exc)})

    async def _store_status(self, notification_id: str, status: NotificationStatus) -> None:
        """Write the final status, waiting for the write even if cancelled meanwhile."""
        write = asyncio.ensure_future(
            self.store.add(status_key(notification_id), status.value, ttl=self.status_ttl),
        )
        cancelled = False
        while True:
            try:
                await asyncio.shield(write)
                break
            except asyncio.CancelledError:
                if write.done():
                    break
                cancelled = True

        write.result()
        track_final_status(status.value)
        if cancelled:
            raise asyncio.CancelledError
