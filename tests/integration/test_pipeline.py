"""End-to-end tests of the scheduling and delivery pipeline.

The runtime is wired exactly as in production, with the in-memory store and
queue doubles from conftest in place of Redis and RabbitMQ.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from delayed_notifier.core.exceptions import (
    NotificationConflictError,
    NotificationDeliveryError,
    NotificationNotFoundError,
)
from delayed_notifier.core.settings import RabbitSettings
from delayed_notifier.features.notifications.models import (
    Channels,
    DelayedNotification,
    EmailChannel,
    NotificationStatus,
    TelegramChannel,
)
from delayed_notifier.features.notifications.runtime import NotificationRuntime
from delayed_notifier.features.notifications.sender import NotificationSender, RetryPolicy

EMAIL = Channels(email=EmailChannel(email="a@b.com"))


@pytest.fixture
def email_transport(transport_factory):
    return transport_factory()


@pytest.fixture
async def runtime(store, queue, email_transport, notifier_settings):
    runtime = NotificationRuntime(
        store=store,
        queue=queue,
        transports={"email": email_transport},
        settings=notifier_settings,
        rabbit_settings=RabbitSettings(),
    )
    await runtime.start()
    yield runtime
    await runtime.stop()


async def _status(runtime: NotificationRuntime, notification_id: str) -> NotificationStatus | None:
    try:
        return await runtime.scheduler.get_notification_status(notification_id)
    except NotificationNotFoundError:
        return None


@pytest.mark.integration
class TestDelivery:
    @pytest.mark.asyncio
    async def test_scheduled_notification_is_sent_after_delay(self, runtime, email_transport, wait_until):
        loop = asyncio.get_running_loop()
        started = loop.time()
        notification_id = await runtime.scheduler.schedule_notification("hi", timedelta(seconds=1), EMAIL)
        assert await _status(runtime, notification_id) is NotificationStatus.SCHEDULED

        seen: list[NotificationStatus] = []

        async def sent() -> bool:
            current = await _status(runtime, notification_id)
            if current is not None and (not seen or seen[-1] is not current):
                seen.append(current)
            return current is NotificationStatus.SENT

        await wait_until(sent, timeout=3)

        assert loop.time() - started >= 0.9
        assert email_transport.sent == [("a@b.com", "hi")]
        # Statuses only ever move forward
        order = list(NotificationStatus)
        assert seen == sorted(seen, key=order.index)

    @pytest.mark.asyncio
    async def test_unreachable_channel_ends_failed(self, store, transport_factory):
        email = transport_factory(failures=99)
        sender = NotificationSender({"email": email}, store, RetryPolicy(attempts=3, delay=0.01, backoff=1.0))
        notification = DelayedNotification.create("hi", timedelta(seconds=1), EMAIL)

        with pytest.raises(NotificationDeliveryError):
            await sender.send(notification)

        assert email.attempts == 3
        assert store.values[f"notification.status:{notification.id}"] == "failed"

    @pytest.mark.asyncio
    async def test_unconfigured_telegram_fails_whole_notification(self, runtime, email_transport, wait_until):
        channels = Channels(email=EmailChannel(email="a@b.com"), telegram=TelegramChannel(chat_id="42"))
        notification_id = await runtime.scheduler.schedule_notification("hi", timedelta(seconds=1), channels)

        async def failed() -> bool:
            return await _status(runtime, notification_id) is NotificationStatus.FAILED

        await wait_until(failed, timeout=3)
        assert email_transport.sent == [("a@b.com", "hi")]

    @pytest.mark.asyncio
    async def test_publish_outage_delays_but_does_not_lose(
        self, store, queue, email_transport, notifier_settings, wait_until,
    ):
        settings = notifier_settings.model_copy(update={"publish_retry_delay": 0.1})
        queue.fail_publish = 2
        runtime = NotificationRuntime(
            store=store,
            queue=queue,
            transports={"email": email_transport},
            settings=settings,
            rabbit_settings=RabbitSettings(),
        )
        await runtime.start()
        try:
            notification_id = await runtime.scheduler.schedule_notification("hi", timedelta(seconds=1), EMAIL)

            async def sent() -> bool:
                return await _status(runtime, notification_id) is NotificationStatus.SENT

            await wait_until(sent, timeout=3)
        finally:
            await runtime.stop()

        assert store.values[f"notification.status:{notification_id}"] == "sent"
        assert len(queue.published) == 1
        assert email_transport.sent == [("a@b.com", "hi")]


@pytest.mark.integration
class TestRemoval:
    @pytest.mark.asyncio
    async def test_remove_before_dispatch(self, runtime, email_transport):
        notification_id = await runtime.scheduler.schedule_notification("hi", timedelta(seconds=1), EMAIL)

        await runtime.scheduler.remove_notification(notification_id)

        with pytest.raises(NotificationNotFoundError):
            await runtime.scheduler.get_notification_status(notification_id)
        await asyncio.sleep(1.2)
        assert email_transport.sent == []

    @pytest.mark.asyncio
    async def test_remove_after_sent_is_conflict(self, runtime, wait_until):
        notification_id = await runtime.scheduler.schedule_notification("hi", timedelta(seconds=1), EMAIL)

        async def sent() -> bool:
            return await _status(runtime, notification_id) is NotificationStatus.SENT

        await wait_until(sent, timeout=3)

        with pytest.raises(NotificationConflictError):
            await runtime.scheduler.remove_notification(notification_id)

        assert await _status(runtime, notification_id) is NotificationStatus.SENT


@pytest.mark.integration
class TestConcurrentScheduling:
    @pytest.mark.asyncio
    async def test_identical_requests_get_independent_records(self, store, queue, notifier_settings):
        runtime = NotificationRuntime(
            store=store,
            queue=queue,
            transports={},
            settings=notifier_settings,
            rabbit_settings=RabbitSettings(),
        )

        ids = await asyncio.gather(
            *(runtime.scheduler.schedule_notification("same", timedelta(seconds=60), EMAIL) for _ in range(10)),
        )

        assert len(set(ids)) == 10
        operations = [name for name, _args in store.calls]
        assert operations.count("sorted_set_add") == 10
        assert operations.count("add") == 20
        assert set(store.members(notifier_settings.delayed_set_name)) == set(ids)


@pytest.mark.integration
class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_send(
        self, store, queue, transport_factory, notifier_settings, wait_until,
    ):
        slow = transport_factory(delay=0.3)
        runtime = NotificationRuntime(
            store=store,
            queue=queue,
            transports={"email": slow},
            settings=notifier_settings,
            rabbit_settings=RabbitSettings(),
        )
        await runtime.start()
        notification = DelayedNotification.create("hi", timedelta(seconds=1), EMAIL)
        await runtime.inbox.put(notification.to_payload())
        await wait_until(lambda: slow.attempts > 0)

        await runtime.stop()

        assert slow.sent == [("a@b.com", "hi")]
        assert store.values[f"notification.status:{notification.id}"] == "sent"
        assert slow.closed
        assert not store.connected
        assert not queue.is_connected

    @pytest.mark.asyncio
    async def test_messages_handed_off_before_stop_are_all_delivered(
        self, store, queue, transport_factory, notifier_settings, wait_until,
    ):
        slow = transport_factory(delay=0.05)
        runtime = NotificationRuntime(
            store=store,
            queue=queue,
            transports={"email": slow},
            settings=notifier_settings,
            rabbit_settings=RabbitSettings(),
        )
        await runtime.start()
        notifications = [DelayedNotification.create(f"m{i}", timedelta(seconds=1), EMAIL) for i in range(6)]
        for notification in notifications:
            await queue.publish(notification.to_payload())
        await wait_until(lambda: slow.attempts > 0)

        stopping = asyncio.create_task(runtime.stop())
        await wait_until(lambda: queue.draining)
        late = DelayedNotification.create("late", timedelta(seconds=1), EMAIL)
        await queue.publish(late.to_payload())
        await asyncio.wait_for(stopping, timeout=3)

        assert sorted(body for _to, body in slow.sent) == [f"m{i}" for i in range(6)]
        for notification in notifications:
            assert store.values[f"notification.status:{notification.id}"] == "sent"
        # Published after the subscriber stopped, so it stays with the broker
        assert late.to_payload() in queue.published
        assert ("a@b.com", "late") not in slow.sent
        assert runtime.inbox.empty()

    @pytest.mark.asyncio
    async def test_api_only_runtime_does_not_touch_queue(self, store, queue, notifier_settings):
        runtime = NotificationRuntime(
            store=store,
            queue=queue,
            transports={},
            settings=notifier_settings,
            rabbit_settings=RabbitSettings(),
        )

        await runtime.start(pipeline=False)

        assert store.connected
        assert not queue.is_connected
        assert not runtime.pipeline_running
        assert await runtime.health() == {"redis": True, "rabbitmq": False}
        await runtime.stop()
