"""Message broker integration (RabbitMQ through FastStream)."""

from __future__ import annotations

from delayed_notifier.infra.messaging.broker import NotificationQueue

__all__ = ["NotificationQueue"]
