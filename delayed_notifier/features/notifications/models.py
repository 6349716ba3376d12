"""Domain model of a delayed notification and its lifecycle status.

A notification moves through a one-directional state machine::

    scheduled ──► sending ──► sent
        │            └──────► failed
        └───────────────────► failed   (dispatch abandoned)

``sent`` and ``failed`` are terminal. A notification may only be removed
while it is still ``scheduled``.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from delayed_notifier.core.exceptions import SerializationError

EMAIL_CHANNEL = "email"
TELEGRAM_CHANNEL = "telegram"

PAYLOAD_KEY_PREFIX = "notification:"
STATUS_KEY_PREFIX = "notification.status:"
DISPATCH_ATTEMPTS_KEY_PREFIX = "notification.dispatch_attempts:"


class NotificationStatus(str, Enum):
    """Lifecycle state of a notification."""

    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (NotificationStatus.SENT, NotificationStatus.FAILED)

    def can_transition_to(self, target: NotificationStatus) -> bool:
        """Return True if moving from this status to ``target`` is allowed."""
        return target in _TRANSITIONS[self]

    @classmethod
    def sources_of(cls, target: NotificationStatus) -> tuple[str, ...]:
        """Values of every status that may move to ``target``."""
        return tuple(status.value for status in cls if status.can_transition_to(target))

    def __str__(self) -> str:
        return self.value


_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.SCHEDULED: frozenset(
        {NotificationStatus.SENDING, NotificationStatus.FAILED},
    ),
    NotificationStatus.SENDING: frozenset({NotificationStatus.SENT, NotificationStatus.FAILED}),
    NotificationStatus.SENT: frozenset(),
    NotificationStatus.FAILED: frozenset(),
}


# ============================================================================
# Channels
# ============================================================================


class EmailChannel(BaseModel):
    """Email destination."""

    model_config = ConfigDict(frozen=True)

    email: str = Field(default="", max_length=320, description="Recipient address")


class TelegramChannel(BaseModel):
    """Telegram chat destination."""

    model_config = ConfigDict(frozen=True)

    chat_id: str = Field(default="", max_length=64, description="Chat id or @channel username")


class Channels(BaseModel):
    """Delivery targets of a notification; either may be absent or empty."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    telegram: TelegramChannel | None = Field(default=None, alias="tg_channel")
    email: EmailChannel | None = Field(default=None, alias="email_channel")

    def destinations(self) -> Iterator[tuple[str, str]]:
        """Yield ``(channel, destination)`` for every non-empty destination."""
        if self.email is not None and self.email.email:
            yield EMAIL_CHANNEL, self.email.email
        if self.telegram is not None and self.telegram.chat_id:
            yield TELEGRAM_CHANNEL, self.telegram.chat_id


# ============================================================================
# Notification
# ============================================================================


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_notification_id() -> str:
    return str(uuid.uuid4())


class DelayedNotification(BaseModel):
    """A notification waiting for, or going through, delivery.

    The JSON form produced by :meth:`to_payload` is what the store keeps under
    the payload key and what travels through the queue.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    notification: str = Field(description="Message body")
    delay: float = Field(ge=0, description="Requested delay in seconds")
    due_at: datetime = Field(description="Absolute due time (UTC)")
    channels: Channels = Field(default_factory=Channels)

    @classmethod
    def create(
        cls,
        body: str,
        delay: timedelta,
        channels: Channels | None = None,
        *,
        now: datetime | None = None,
    ) -> DelayedNotification:
        """Build a new notification with a fresh id and ``due_at = now + delay``."""
        created_at = now or utc_now()
        return cls(
            id=new_notification_id(),
            notification=body,
            delay=delay.total_seconds(),
            due_at=created_at + delay,
            channels=channels or Channels(),
        )

    @property
    def due_score(self) -> int:
        """Due time as Unix milliseconds, the score used in the due index."""
        return to_score(self.due_at)

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_payload(cls, payload: str | bytes) -> DelayedNotification:
        """Decode a stored or queued payload.

        Raises:
            SerializationError: If the payload is not a valid notification.
        """
        try:
            return cls.model_validate_json(payload)
        except ValidationError as exc:
            raise SerializationError(f"invalid notification payload: {exc}") from exc


def to_score(moment: datetime) -> int:
    """Convert a timestamp into a due index score (Unix milliseconds)."""
    return int(moment.timestamp() * 1000)


def payload_key(notification_id: str) -> str:
    return f"{PAYLOAD_KEY_PREFIX}{notification_id}"


def status_key(notification_id: str) -> str:
    return f"{STATUS_KEY_PREFIX}{notification_id}"


def dispatch_attempts_key(notification_id: str) -> str:
    return f"{DISPATCH_ATTEMPTS_KEY_PREFIX}{notification_id}"
