"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app, redis, rabbit, logging, notifier, email,
telegram), loaded from the environment and an optional ``.env`` file, frozen
after validation and cached by the loaders in :mod:`.loader`.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables (production)
    3. .env file (development only)
    4. secrets_dir (Kubernetes/Docker secrets)
"""

from __future__ import annotations

from .app import AppSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_email_settings,
    get_logging_settings,
    get_notifier_settings,
    get_rabbit_settings,
    get_redis_settings,
    get_telegram_settings,
)
from .logs import LoggingSettings
from .notifier import NotifierSettings
from .rabbit import RabbitSettings
from .redis import RedisSettings
from .telegram import TelegramSettings

__all__ = [
    "AppSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotifierSettings",
    "RabbitSettings",
    "RedisSettings",
    "TelegramSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notifier_settings",
    "get_rabbit_settings",
    "get_redis_settings",
    "get_telegram_settings",
]
