"""Telegram channel settings.

Environment variables use TELEGRAM_ prefix.
Example: TELEGRAM_BOT_TOKEN=123456:ABC-DEF
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram Bot API configuration."""

    bot_token: SecretStr | None = Field(
        default=None,
        description="Bot token; the telegram channel is registered only when set",
    )
    api_base_url: str = Field(
        default="https://api.telegram.org",
        pattern=r"^https?://",
        description="Bot API base URL",
    )
    timeout: float = Field(
        default=10.0, ge=0.5, le=120.0, description="HTTP request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        return self.bot_token is not None and bool(self.bot_token.get_secret_value())
