"""Notification management commands.

These talk to Redis directly through the scheduler, so they work whether or
not the HTTP API is running.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
import sys

import click

from delayed_notifier.cli.utils import coro, error, info, success
from delayed_notifier.core.exceptions import AppException, StoreError
from delayed_notifier.features.notifications.models import (
    Channels,
    EmailChannel,
    TelegramChannel,
)
from delayed_notifier.features.notifications.service import NotificationScheduler
from delayed_notifier.infra.store import RedisStore


@asynccontextmanager
async def _scheduler() -> AsyncIterator[NotificationScheduler]:
    store = RedisStore()
    try:
        await store.connect()
    except StoreError as e:
        error(f"Failed to connect to Redis: {e}")
        sys.exit(1)

    try:
        yield NotificationScheduler(store)
    finally:
        await store.disconnect()


@click.group(name="notify")
def notify() -> None:
    """Schedule, inspect and remove notifications."""


@notify.command()
@click.argument("body")
@click.option("--delay", "delay_seconds", required=True, type=click.IntRange(min=1), help="Delay in seconds")
@click.option("--email", default=None, help="Recipient email address")
@click.option("--telegram", "chat_id", default=None, help="Telegram chat id")
@coro
async def schedule(body: str, delay_seconds: int, email: str | None, chat_id: str | None) -> None:
    """Schedule BODY for delivery after --delay seconds."""
    channels = Channels(
        email=EmailChannel(email=email) if email else None,
        telegram=TelegramChannel(chat_id=chat_id) if chat_id else None,
    )
    async with _scheduler() as scheduler:
        try:
            notification_id = await scheduler.schedule_notification(
                body, timedelta(seconds=delay_seconds), channels,
            )
        except StoreError as e:
            error(f"Failed to schedule notification: {e}")
            sys.exit(1)

    success(f"Scheduled {notification_id}")
    click.echo(notification_id)


@notify.command()
@click.argument("notification_id")
@coro
async def status(notification_id: str) -> None:
    """Show the status of NOTIFICATION_ID."""
    async with _scheduler() as scheduler:
        try:
            current = await scheduler.get_notification_status(notification_id)
        except (AppException, StoreError) as e:
            error(str(e))
            sys.exit(1)

    info(f"{notification_id}: {current}")


@notify.command()
@click.argument("notification_id")
@coro
async def cancel(notification_id: str) -> None:
    """Remove NOTIFICATION_ID before it is dispatched."""
    async with _scheduler() as scheduler:
        try:
            await scheduler.remove_notification(notification_id)
        except (AppException, StoreError) as e:
            error(str(e))
            sys.exit(1)

    success(f"Removed {notification_id}")
