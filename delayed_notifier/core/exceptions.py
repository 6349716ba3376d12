"""Custom exception classes for the application.

Two families live here:

- ``AppException`` and its subclasses are HTTP-facing and follow RFC 7807
  Problem Details. The API layer renders them directly.
- Infrastructure errors (store, queue, transports, serialization, delivery)
  are plain exceptions raised by the pipeline components and handled by
  their immediate callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from delayed_notifier.features.notifications.models import NotificationStatus


class AppException(Exception):
    """Base application exception.

    All HTTP-facing exceptions inherit from this class.
    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code.

        Args:
            status_code: HTTP status code.

        Returns:
            Human-readable title for the status code.
        """
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """Exception raised for resource conflicts."""

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


class ServiceUnavailableException(AppException):
    """Exception raised when a backing service cannot be reached."""

    def __init__(
        self,
        detail: str,
        type: str = "service-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


# ============================================================================
# Notification domain
# ============================================================================


class NotificationNotFoundError(NotFoundException):
    """No status record exists for the notification id."""

    def __init__(self, notification_id: str) -> None:
        self.notification_id = notification_id
        super().__init__(
            detail=f"notification {notification_id} not found",
            type="notification-not-found",
            extra={"notification_id": notification_id},
        )


class NotificationConflictError(ConflictException):
    """The notification is no longer in a state that allows the operation."""

    def __init__(self, notification_id: str, reason: str = "already processed") -> None:
        self.notification_id = notification_id
        self.reason = reason
        super().__init__(
            detail=f"notification {notification_id} {reason}",
            type="notification-conflict",
            extra={"notification_id": notification_id},
        )


# ============================================================================
# Infrastructure
# ============================================================================


class StoreError(Exception):
    """A key-value or sorted-set operation failed."""


class KeyNotFoundError(StoreError):
    """The requested key does not exist in the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"key {key!r} not found")


class QueueError(Exception):
    """Base class for broker failures."""


class QueueConnectionError(QueueError):
    """The broker could not be reached within the allowed attempts."""


class QueuePublishError(QueueError):
    """A message could not be handed to the broker."""


class SerializationError(Exception):
    """A payload could not be decoded into a notification."""


class TransportError(Exception):
    """A channel transport rejected or failed to deliver a message."""

    def __init__(self, channel: str, message: str) -> None:
        self.channel = channel
        super().__init__(f"{channel}: {message}")


class ChannelNotConfiguredError(TransportError):
    """No transport is registered for a channel named by a notification."""

    def __init__(self, channel: str) -> None:
        super().__init__(channel, "no transport configured")


class NotificationDeliveryError(Exception):
    """Sending a notification did not fully succeed.

    Carries every per-channel error and, when it happened, the status
    persistence error, together with the status that was determined.
    """

    def __init__(
        self,
        notification_id: str,
        status: NotificationStatus,
        errors: Sequence[BaseException],
    ) -> None:
        self.notification_id = notification_id
        self.status = status
        self.errors = list(errors)
        joined = "; ".join(str(err) for err in self.errors)
        super().__init__(f"notification {notification_id} finished as {status}: {joined}")
