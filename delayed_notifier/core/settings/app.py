"""Application settings for the HTTP surface."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """FastAPI application settings.

    Environment variables use APP_ prefix.
    Example: APP_DEBUG=true, APP_PORT=8080
    """

    # Service identity
    service_name: str = Field(
        default="delayed-notifier",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Service name for logging (lowercase, hyphens allowed)",
    )
    title: str = Field(
        default="Delayed Notifier API",
        min_length=1,
        max_length=200,
        description="API title displayed in documentation",
    )
    version: str = Field(
        default="1.0.0",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$",
        description="API version (semver format)",
    )
    environment: Environment = Field(
        default="development", description="Environment: development|staging|production|test",
    )
    api_prefix: str = Field(
        default="",
        max_length=255,
        pattern=r"^(/.*)?$",
        description="Base URL prefix for API routes (empty or starting with /)",
    )

    debug: bool = Field(default=False, description="Enable debug mode")
    disable_docs: bool = Field(default=False, description="Disable all API documentation")

    # Server configuration
    host: str = Field(
        default="0.0.0.0", min_length=1, max_length=255, description="Server bind host",
    )
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    # Pipeline toggle (API-only replicas can skip the poller/consumer)
    run_pipeline: bool = Field(
        default=True,
        description="Start the poller and consumer pool inside the API process",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def validate_port_range(self) -> AppSettings:
        """Validate port is not using privileged range in production."""
        if self.environment == "production" and self.port < 1024:
            msg = "Cannot use privileged port (<1024) in production without proper setup"
            raise ValueError(msg)
        return self

    @property
    def docs_url(self) -> str | None:
        return None if self.disable_docs else "/docs"

    @property
    def openapi_url(self) -> str | None:
        return None if self.disable_docs else "/openapi.json"
