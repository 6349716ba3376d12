"""Telegram Bot API transport."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from delayed_notifier.core.exceptions import TransportError
from delayed_notifier.features.notifications.models import TELEGRAM_CHANNEL

if TYPE_CHECKING:
    from delayed_notifier.core.settings.telegram import TelegramSettings

logger = logging.getLogger(__name__)


class TelegramTransport:
    """Sends messages through ``sendMessage`` of the Telegram Bot API."""

    def __init__(
        self,
        settings: TelegramSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not settings.is_configured:
            msg = "Telegram bot token is required for the telegram transport"
            raise ValueError(msg)

        self.settings = settings
        self._token = settings.bot_token.get_secret_value() if settings.bot_token else ""
        self._client = client or httpx.AsyncClient(timeout=settings.timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}/bot{self._token}/sendMessage"

    async def send(self, destination: str, body: str) -> None:
        """Post ``body`` to chat ``destination``.

        Raises:
            TransportError: On network errors, non-2xx responses or a
                response with ``ok: false``.
        """
        try:
            response = await self._client.post(
                self.endpoint,
                json={"chat_id": destination, "text": body},
            )
        except httpx.HTTPError as e:
            # The URL carries the bot token, keep it out of the message
            raise TransportError(TELEGRAM_CHANNEL, f"request failed: {type(e).__name__}") from e

        payload: dict[str, Any] = {}
        try:
            payload = response.json()
        except ValueError:
            pass

        if response.is_error or not payload.get("ok", False):
            description = payload.get("description") or response.reason_phrase
            raise TransportError(
                TELEGRAM_CHANNEL,
                f"chat {destination}: HTTP {response.status_code} {description}",
            )

        logger.debug("Telegram message sent", extra={"chat_id": destination})

    async def close(self) -> None:
        await self._client.aclose()
