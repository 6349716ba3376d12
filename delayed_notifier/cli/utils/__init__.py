"""CLI utilities for running async operations and formatting output."""

from delayed_notifier.cli.utils.async_runner import coro
from delayed_notifier.cli.utils.formatters import error, info, success, warning

__all__ = [
    "coro",
    "error",
    "info",
    "success",
    "warning",
]
