"""Clean up raw environment values before pydantic parses them."""

from __future__ import annotations

from typing import Any


def strip_inline_comment(value: str) -> str:
    """Drop a trailing ``# comment`` from an env value.

    Some env-file loaders keep inline comments, so ``NOTIFIER_POLL_INTERVAL=1.0  # seconds``
    reaches us verbatim. A ``#`` only starts a comment when whitespace precedes
    it; ``chat#1`` is left alone.
    """
    idx = value.find("#")
    if idx == 0:
        return ""
    if idx == -1 or not value[idx - 1].isspace():
        return value.strip()
    return value[:idx].strip()


def sanitize_inline_numeric(value: Any) -> Any:
    """Strip inline comments from numeric settings given as strings."""
    if isinstance(value, str):
        cleaned = strip_inline_comment(value)
        if cleaned:
            return cleaned
    return value
