"""Email channel settings for SMTP delivery.

Environment variables use EMAIL_ prefix.
Example: EMAIL_ENABLED=true, EMAIL_SMTP_HOST=smtp.example.com
"""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """Email channel configuration.

    Supports two backends:
    - smtp: Standard SMTP/SMTPS delivery
    - console: Log emails instead of sending them (development)
    """

    enabled: bool = Field(default=False, description="Register the email channel transport")
    backend: Literal["smtp", "console"] = Field(
        default="smtp",
        description="Email backend: smtp (production), console (dev)",
    )

    # SMTP Configuration
    smtp_host: str = Field(
        default="localhost", min_length=1, max_length=255, description="SMTP server hostname",
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for TLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(
        default=None, max_length=255, description="SMTP authentication username",
    )
    smtp_password: SecretStr | None = Field(
        default=None, description="SMTP authentication password",
    )

    # TLS/SSL Configuration
    use_tls: bool = Field(
        default=True,
        description="Use STARTTLS (port 587). Set False for SSL (port 465) or plain (port 25)",
    )
    use_ssl: bool = Field(
        default=False,
        description="Use implicit SSL/TLS (port 465). Mutually exclusive with use_tls",
    )
    validate_certs: bool = Field(default=True, description="Validate SSL/TLS certificates")

    # Sender Configuration
    default_from_email: EmailStr = Field(
        default="noreply@example.com", description="Sender email address",
    )
    default_from_name: str = Field(
        default="Delayed Notifier", max_length=100, description="Sender display name",
    )
    subject: str = Field(
        default="Уведомление",
        min_length=1,
        max_length=255,
        description="Subject line used for every notification email",
    )

    timeout: float = Field(
        default=30.0, ge=1.0, le=300.0, description="SMTP connection timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def validate_tls_ssl_exclusive(self) -> EmailSettings:
        """Ensure TLS and SSL are mutually exclusive."""
        if self.use_tls and self.use_ssl:
            msg = "use_tls and use_ssl are mutually exclusive"
            raise ValueError(msg)
        return self

    @property
    def from_address(self) -> str:
        """Formatted From header value."""
        return f"{self.default_from_name} <{self.default_from_email}>"
