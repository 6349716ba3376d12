"""Tests for NotificationSender: per-channel retry and final status."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from delayed_notifier.core.exceptions import (
    ChannelNotConfiguredError,
    NotificationDeliveryError,
    StoreError,
    TransportError,
)
from delayed_notifier.features.notifications.models import (
    Channels,
    DelayedNotification,
    EmailChannel,
    NotificationStatus,
    TelegramChannel,
    status_key,
)
from delayed_notifier.features.notifications.sender import NotificationSender, RetryPolicy

FAST_RETRY = RetryPolicy(attempts=3, delay=0.001, backoff=2.0)


def _notification(email: str | None = "a@example.com", chat_id: str | None = "42") -> DelayedNotification:
    channels = Channels(
        email=EmailChannel(email=email) if email else None,
        telegram=TelegramChannel(chat_id=chat_id) if chat_id else None,
    )
    return DelayedNotification.create("hello", timedelta(seconds=1), channels)


@pytest.mark.unit
class TestSend:
    @pytest.mark.asyncio
    async def test_all_channels_succeed(self, store, transport_factory):
        email, telegram = transport_factory(), transport_factory()
        sender = NotificationSender({"email": email, "telegram": telegram}, store, FAST_RETRY, status_ttl=60)
        notification = _notification()

        assert await sender.send(notification) is NotificationStatus.SENT

        assert email.sent == [("a@example.com", "hello")]
        assert telegram.sent == [("42", "hello")]
        assert store.values[status_key(notification.id)] == "sent"
        assert store.ttls[status_key(notification.id)] == 60

    @pytest.mark.asyncio
    async def test_no_channels_is_trivially_sent(self, store):
        sender = NotificationSender({}, store, FAST_RETRY)
        notification = _notification(email=None, chat_id=None)

        assert await sender.send(notification) is NotificationStatus.SENT
        assert store.values[status_key(notification.id)] == "sent"

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, store, transport_factory):
        email = transport_factory(failures=2)
        sender = NotificationSender({"email": email}, store, FAST_RETRY)
        notification = _notification(chat_id=None)

        assert await sender.send(notification) is NotificationStatus.SENT
        assert email.attempts == 3

    @pytest.mark.asyncio
    async def test_one_failed_channel_marks_notification_failed(self, store, transport_factory):
        email, telegram = transport_factory(), transport_factory(failures=99)
        sender = NotificationSender({"email": email, "telegram": telegram}, store, FAST_RETRY)
        notification = _notification()

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await sender.send(notification)

        assert exc_info.value.status is NotificationStatus.FAILED
        assert len(exc_info.value.errors) == 1
        error = exc_info.value.errors[0]
        assert isinstance(error, TransportError)
        assert error.channel == "telegram"
        assert telegram.attempts == FAST_RETRY.attempts
        assert email.sent == [("a@example.com", "hello")]
        assert store.values[status_key(notification.id)] == "failed"

    @pytest.mark.asyncio
    async def test_unconfigured_channel_fails_without_retry(self, store, transport_factory):
        sender = NotificationSender({"email": transport_factory()}, store, FAST_RETRY)
        notification = _notification()

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await sender.send(notification)

        assert any(isinstance(e, ChannelNotConfiguredError) for e in exc_info.value.errors)
        assert store.values[status_key(notification.id)] == "failed"

    @pytest.mark.asyncio
    async def test_status_write_failure_is_reported(self, store, transport_factory):
        store.fail["add"] = StoreError("redis down")
        sender = NotificationSender({"email": transport_factory()}, store, FAST_RETRY)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await sender.send(_notification(chat_id=None))

        assert exc_info.value.status is NotificationStatus.SENT
        assert isinstance(exc_info.value.errors[0], StoreError)

    @pytest.mark.asyncio
    async def test_channels_are_delivered_concurrently(self, store, transport_factory):
        email, telegram = transport_factory(delay=0.1), transport_factory(delay=0.1)
        sender = NotificationSender({"email": email, "telegram": telegram}, store, FAST_RETRY)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await sender.send(_notification())

        assert loop.time() - started < 0.19


@pytest.mark.unit
class TestBackoff:
    @pytest.mark.asyncio
    async def test_retry_pauses_follow_policy(self, store, transport_factory, monkeypatch):
        slept: list[float] = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        email = transport_factory(failures=99)
        sender = NotificationSender({"email": email}, store, RetryPolicy(attempts=4, delay=2.0, backoff=2.0))

        with pytest.raises(NotificationDeliveryError):
            await sender.send(_notification(chat_id=None))

        assert slept == [2.0, 4.0, 8.0]
        assert email.attempts == 4


@pytest.mark.unit
class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_send_records_failed(self, store, transport_factory):
        email = transport_factory(delay=10)
        sender = NotificationSender({"email": email}, store, FAST_RETRY)
        notification = _notification(chat_id=None)

        task = asyncio.create_task(sender.send(notification))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.values[status_key(notification.id)] == "failed"
        assert email.sent == []

    @pytest.mark.asyncio
    async def test_cancellation_during_status_write_waits_for_it(self, store):
        write_started = asyncio.Event()
        release = asyncio.Event()
        original_add = store.add

        async def slow_add(key: str, value: str, ttl: int | None = None) -> None:
            write_started.set()
            await release.wait()
            await original_add(key, value, ttl=ttl)

        store.add = slow_add
        sender = NotificationSender({}, store, FAST_RETRY)
        notification = _notification(email=None, chat_id=None)

        task = asyncio.create_task(sender.send(notification))
        await write_started.wait()
        task.cancel()
        await asyncio.sleep(0.01)
        assert not task.done()

        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.values[status_key(notification.id)] == "sent"


@pytest.mark.unit
def test_retry_policy_validation():
    with pytest.raises(ValueError, match="attempts"):
        RetryPolicy(attempts=0)
    with pytest.raises(ValueError, match="delay"):
        RetryPolicy(delay=-1)
