"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from delayed_notifier.core.settings.loader import get_notifier_settings

    settings = get_notifier_settings()  # First call: loads and validates
    settings = get_notifier_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .email import EmailSettings
from .logs import LoggingSettings
from .notifier import NotifierSettings
from .rabbit import RabbitSettings
from .redis import RedisSettings
from .telegram import TelegramSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings.

    Returns:
        Validated and frozen RedisSettings instance.
    """
    return RedisSettings()


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    """Get cached RabbitMQ settings.

    Returns:
        Validated and frozen RabbitSettings instance.
    """
    return RabbitSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notifier_settings() -> NotifierSettings:
    """Get cached scheduling pipeline settings.

    Returns:
        Validated and frozen NotifierSettings instance.
    """
    return NotifierSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached email channel settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_telegram_settings() -> TelegramSettings:
    """Get cached Telegram channel settings."""
    return TelegramSettings()


def clear_all_caches() -> None:
    """Clear every settings cache (useful in tests)."""
    get_app_settings.cache_clear()
    get_redis_settings.cache_clear()
    get_rabbit_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_notifier_settings.cache_clear()
    get_email_settings.cache_clear()
    get_telegram_settings.cache_clear()
