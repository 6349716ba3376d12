"""Context management for structured logging.

Fields such as ``notification_id`` or ``worker`` are kept in a contextvar and
copied onto every log record by :class:`ContextInjectingFilter`. Each asyncio
task gets its own copy of the context, so a consumer worker can bind the id of
the notification it is handling without passing it to every log call.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(worker=3)
        logger.info("Waiting for messages")  # record carries worker=3
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Drop every field from the logging context of the current task."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind fields for the duration of a block and restore the previous context.

    Example:
        ```python
        with log_context(notification_id=notification.id):
            await sender.send(notification)
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    token = _log_context.set(current)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copy contextvar fields onto each LogRecord.

    Installed on the root queue handler by :func:`configure_logging`; fields already
    present on the record (e.g. passed via ``extra=``) are never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True

