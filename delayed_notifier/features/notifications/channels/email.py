"""Email transports: SMTP through aiosmtplib and a console fallback."""

from __future__ import annotations

from email.message import EmailMessage
from email.utils import make_msgid
import logging
import ssl
from typing import TYPE_CHECKING

import aiosmtplib

from delayed_notifier.core.exceptions import TransportError
from delayed_notifier.features.notifications.models import EMAIL_CHANNEL

if TYPE_CHECKING:
    from delayed_notifier.core.settings.email import EmailSettings

logger = logging.getLogger(__name__)


class SMTPEmailTransport:
    """SMTP email transport using native async aiosmtplib.

    Supports STARTTLS (port 587), implicit SSL/TLS (port 465) and plain
    SMTP (port 25), with optional LOGIN/PLAIN authentication. A new
    connection is opened per message.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings
        logger.info(
            "SMTP email transport initialized",
            extra={
                "host": settings.smtp_host,
                "port": settings.smtp_port,
                "use_tls": settings.use_tls,
                "use_ssl": settings.use_ssl,
            },
        )

    def _create_ssl_context(self) -> ssl.SSLContext | None:
        if not (self.settings.use_tls or self.settings.use_ssl):
            return None

        context = ssl.create_default_context()
        if not self.settings.validate_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def build_message(self, destination: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.from_address
        message["To"] = destination
        message["Subject"] = self.settings.subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)
        return message

    async def send(self, destination: str, body: str) -> None:
        """Send one plain-text email.

        Raises:
            TransportError: If the server refused the message or the
                connection failed.
        """
        message = self.build_message(destination, body)
        smtp = aiosmtplib.SMTP(
            hostname=self.settings.smtp_host,
            port=self.settings.smtp_port,
            use_tls=self.settings.use_ssl,
            start_tls=self.settings.use_tls,
            tls_context=self._create_ssl_context(),
            timeout=self.settings.timeout,
        )

        try:
            async with smtp:
                if self.settings.smtp_username and self.settings.smtp_password:
                    await smtp.login(
                        self.settings.smtp_username,
                        self.settings.smtp_password.get_secret_value(),
                    )
                errors, _response = await smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            raise TransportError(EMAIL_CHANNEL, f"smtp delivery to {destination} failed: {e}") from e

        if destination in errors:
            raise TransportError(EMAIL_CHANNEL, f"recipient {destination} rejected: {errors[destination]}")

        logger.debug("Email sent", extra={"message_id": message["Message-ID"]})

    async def close(self) -> None:
        return None


class ConsoleEmailTransport:
    """Logs emails instead of sending them. Always succeeds."""

    def __init__(self, subject: str = "Уведомление") -> None:
        self.subject = subject
        logger.info("Console email transport initialized (development mode)")

    async def send(self, destination: str, body: str) -> None:
        logger.info(
            "Email (console transport)",
            extra={"to": destination, "subject": self.subject, "body": body},
        )

    async def close(self) -> None:
        return None
