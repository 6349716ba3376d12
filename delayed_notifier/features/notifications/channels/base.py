"""Base protocol for channel transports."""

from __future__ import annotations

from typing import Protocol


class ChannelTransport(Protocol):
    """Delivers a message body to one destination of a channel.

    ``send`` returns on success and raises on failure; the sender treats every
    exception as a failed attempt and retries it according to its policy.
    """

    async def send(self, destination: str, body: str) -> None:
        """Send ``body`` to ``destination`` (an email address, a chat id, ...)."""
        ...

    async def close(self) -> None:
        """Release network resources held by the transport."""
        ...
