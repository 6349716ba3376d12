"""Notification storage backends."""

from delayed_notifier.infra.store.base import NotificationStore
from delayed_notifier.infra.store.redis import RedisStore

__all__ = ["NotificationStore", "RedisStore"]
