"""Pydantic schemas for the notification HTTP surface."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from delayed_notifier.features.notifications.models import (
    Channels,
    EmailChannel,
    NotificationStatus,
    TelegramChannel,
)

MAX_DELAY_SECONDS = 30 * 24 * 3600


class EmailChannelIn(BaseModel):
    """Email destination as accepted by the API."""

    email: EmailStr = Field(..., description="Recipient address")


class TelegramChannelIn(BaseModel):
    """Telegram destination as accepted by the API."""

    chat_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Numeric chat id or @channel username",
    )


class ChannelsIn(BaseModel):
    """Channel set of a create request."""

    model_config = ConfigDict(populate_by_name=True)

    tg_channel: TelegramChannelIn | None = Field(default=None)
    email_channel: EmailChannelIn | None = Field(default=None)

    def to_channels(self) -> Channels:
        return Channels(
            telegram=TelegramChannel(chat_id=self.tg_channel.chat_id) if self.tg_channel else None,
            email=EmailChannel(email=str(self.email_channel.email)) if self.email_channel else None,
        )


class CreateNotificationRequest(BaseModel):
    """Payload for scheduling a notification."""

    notification: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Message body",
        examples=["Your order has shipped"],
    )
    delay_seconds: int = Field(
        ...,
        ge=1,
        le=MAX_DELAY_SECONDS,
        description="Seconds from now until delivery (1 second to 30 days)",
        examples=[60],
    )
    channels: ChannelsIn = Field(default_factory=ChannelsIn)


class CreateNotificationResponse(BaseModel):
    uid: str = Field(..., description="Identifier of the scheduled notification")


class NotificationStatusResponse(BaseModel):
    status: NotificationStatus


class MessageResponse(BaseModel):
    message: str
