"""CLI command modules."""

from delayed_notifier.cli.commands import notifications, server

__all__ = [
    "notifications",
    "server",
]
