"""Channel transports and their registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from delayed_notifier.features.notifications.channels.base import ChannelTransport
from delayed_notifier.features.notifications.channels.email import (
    ConsoleEmailTransport,
    SMTPEmailTransport,
)
from delayed_notifier.features.notifications.channels.telegram import TelegramTransport
from delayed_notifier.features.notifications.models import EMAIL_CHANNEL, TELEGRAM_CHANNEL

if TYPE_CHECKING:
    from delayed_notifier.core.settings.email import EmailSettings
    from delayed_notifier.core.settings.telegram import TelegramSettings


def build_transports(
    email_settings: EmailSettings,
    telegram_settings: TelegramSettings,
) -> dict[str, ChannelTransport]:
    """Build the channel → transport map from settings.

    Email is always registered (SMTP when enabled, console otherwise);
    Telegram only when a bot token is configured.
    """
    transports: dict[str, ChannelTransport] = {}

    if email_settings.enabled and email_settings.backend == "smtp":
        transports[EMAIL_CHANNEL] = SMTPEmailTransport(email_settings)
    else:
        transports[EMAIL_CHANNEL] = ConsoleEmailTransport(subject=email_settings.subject)

    if telegram_settings.is_configured:
        transports[TELEGRAM_CHANNEL] = TelegramTransport(telegram_settings)

    return transports


__all__ = [
    "ChannelTransport",
    "ConsoleEmailTransport",
    "SMTPEmailTransport",
    "TelegramTransport",
    "build_transports",
]
