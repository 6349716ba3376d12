"""Logging infrastructure.

Structured logging built on the standard library:
- JSONL format for log aggregation
- Automatic context injection (notification_id, worker, ...)
- QueueHandler + QueueListener for non-blocking I/O
- OpenTelemetry trace correlation

Basic usage:
    from delayed_notifier.infra.logging import log_context
    import logging

    logger = logging.getLogger(__name__)

    with log_context(notification_id="0c6f..."):
        logger.info("Sending notification")  # record carries notification_id
"""

from delayed_notifier.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from delayed_notifier.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from delayed_notifier.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
