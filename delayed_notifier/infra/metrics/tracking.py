"""Thin helpers for recording pipeline metrics.

Call sites use these functions instead of touching the Prometheus objects
directly so label names stay consistent.
"""

from __future__ import annotations

from delayed_notifier.infra.metrics import prometheus

# ============================================================================
# Scheduling Tracking
# ============================================================================


def track_notification_scheduled() -> None:
    """Track a notification accepted by the scheduler."""
    prometheus.notifications_scheduled_total.inc()


def track_notification_removed() -> None:
    """Track a notification removed while still scheduled."""
    prometheus.notifications_removed_total.inc()


# ============================================================================
# Poller Tracking
# ============================================================================


def track_scan_duration(duration: float) -> None:
    """Record how long one due-index scan took.

    Args:
        duration: Scan duration in seconds
    """
    prometheus.poller_scan_duration_seconds.observe(duration)


def track_dispatch(result: str) -> None:
    """Track the poller outcome for a single due notification.

    Args:
        result: One of published, publish_failed, abandoned, orphaned, fetch_failed

    Example:
            track_dispatch("published")
    """
    prometheus.poller_dispatch_total.labels(result=result).inc()


# ============================================================================
# Delivery Tracking
# ============================================================================


def track_channel_delivery(channel: str, success: bool) -> None:
    """Track the final outcome of one channel after its retries."""
    prometheus.notification_deliveries_total.labels(
        channel=channel,
        result="success" if success else "failure",
    ).inc()


def track_final_status(status: str) -> None:
    """Track a terminal status write."""
    prometheus.notification_final_status_total.labels(status=status).inc()


def track_consumed_message(result: str) -> None:
    """Track a message handled by a consumer worker."""
    prometheus.consumer_messages_total.labels(result=result).inc()


# ============================================================================
# Retry Tracking
# ============================================================================


def track_retry_attempt(operation: str, attempt_number: int) -> None:
    """Track a retry attempt.

    Args:
        operation: Name of the operation being retried
        attempt_number: Current attempt number (1-indexed)

    Example:
            track_retry_attempt("send_email", 2)
    """
    prometheus.retry_attempts_total.labels(
        operation=operation,
        attempt_number=str(attempt_number),
    ).inc()


def track_retry_exhausted(operation: str) -> None:
    """Track when all retry attempts are exhausted.

    Args:
        operation: Name of the operation that failed
    """
    prometheus.retry_exhausted_total.labels(operation=operation).inc()


def track_retry_success(operation: str, attempts_needed: int) -> None:
    """Track successful operation after retries.

    Args:
        operation: Name of the operation
        attempts_needed: Number of attempts needed to succeed
    """
    prometheus.retry_success_after_failure_total.labels(
        operation=operation,
        attempts_needed=str(attempts_needed),
    ).inc()


# ============================================================================
# Store Tracking
# ============================================================================


def track_store_operation(operation: str, duration: float, success: bool = True) -> None:
    """Record duration of a store operation and count it if it failed."""
    prometheus.store_operation_duration_seconds.labels(operation=operation).observe(duration)
    if not success:
        prometheus.store_errors_total.labels(operation=operation).inc()


# ============================================================================
# HTTP Error Tracking
# ============================================================================


def track_error(error_type: str, status_code: int) -> None:
    """Track an error response rendered by the exception handlers.

    Args:
        error_type: Problem type (e.g. notification-not-found, internal-error)
        status_code: HTTP status code returned
    """
    prometheus.http_errors_total.labels(error_type=error_type, status_code=str(status_code)).inc()
