"""Scheduling pipeline settings.

Environment variables use NOTIFIER_ prefix.
Example: NOTIFIER_POLL_INTERVAL_MS=500, NOTIFIER_CONSUMER_WORKERS=8
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric


class NotifierSettings(BaseSettings):
    """Settings for the due index, poller, consumer pool and sender."""

    # ─────────────────────────────────────────────────────
    # Store layout
    # ─────────────────────────────────────────────────────
    delayed_set_name: str = Field(
        default="delayed_notifications",
        min_length=1,
        max_length=200,
        description="Sorted set holding pending notification ids scored by due time (ms).",
    )
    status_ttl_seconds: int = Field(
        default=168 * 3600,
        ge=1,
        description="Lifetime of status records in seconds (7 days).",
    )

    # ─────────────────────────────────────────────────────
    # Poller
    # ─────────────────────────────────────────────────────
    poll_interval_ms: int = Field(
        default=1000,
        ge=1,
        le=3_600_000,
        description="Tick interval of the due poller in milliseconds.",
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        le=10_000,
        description="Maximum number of due ids handled per scan.",
    )
    publish_retry_delay: float = Field(
        default=5.0,
        ge=0.0,
        le=3600.0,
        description="Seconds to push a notification back after a failed publish.",
    )
    max_publish_attempts: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Failed publishes tolerated before a notification is marked failed.",
    )

    # ─────────────────────────────────────────────────────
    # Consumer pool
    # ─────────────────────────────────────────────────────
    consumer_workers: int = Field(
        default=4,
        ge=1,
        le=256,
        description="Number of concurrent consumer workers.",
    )
    inbox_size: int = Field(
        default=10,
        ge=1,
        le=10_000,
        description="Capacity of the in-process buffer between broker and workers.",
    )

    # ─────────────────────────────────────────────────────
    # Sender retry policy
    # ─────────────────────────────────────────────────────
    sender_retry_attempts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Delivery attempts per channel.",
    )
    sender_retry_delay: float = Field(
        default=2.0,
        ge=0.0,
        le=600.0,
        description="Pause after the first failed delivery attempt in seconds.",
    )
    sender_retry_backoff: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Multiplicative factor applied to the pause between attempts.",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("status_ttl_seconds", "poll_interval_ms", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments (e.g., "604800  # 7 days")."""
        return sanitize_inline_numeric(value)

    @property
    def poll_interval(self) -> float:
        """Poller tick interval in seconds."""
        return self.poll_interval_ms / 1000
