"""Storage contract shared by the scheduler, the poller and the sender."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Collection

Score = float | int | str


class NotificationStore(Protocol):
    """Key-value storage with a score-ordered set.

    Implementations raise :class:`~delayed_notifier.core.exceptions.KeyNotFoundError`
    from :meth:`get` for absent keys and
    :class:`~delayed_notifier.core.exceptions.StoreError` for any other failure.
    """

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def ping(self) -> bool: ...

    async def add(self, key: str, value: str, ttl: int | None = None) -> None:
        """Set ``key`` to ``value``, expiring after ``ttl`` seconds when given."""
        ...

    async def get(self, key: str) -> str:
        ...

    async def remove(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    async def increment(self, key: str) -> int:
        """Atomically add one to an integer counter and return the new value."""
        ...

    async def compare_and_set(
        self,
        key: str,
        value: str,
        expected: Collection[str],
        ttl: int | None = None,
    ) -> bool:
        """Set ``key`` to ``value`` only if its current value is in ``expected``.

        The check and the write are atomic. Returns True when the value was written.
        """
        ...

    async def sorted_set_add(self, name: str, member: str, score: Score) -> None:
        ...

    async def sorted_set_range_by_score(
        self,
        name: str,
        min_score: Score,
        max_score: Score,
        offset: int = 0,
        count: int | None = None,
    ) -> list[str]:
        """Members with ``min_score <= score <= max_score`` in ascending score order."""
        ...

    async def sorted_set_remove(self, name: str, member: str) -> bool:
        """Remove ``member``; True when it was present."""
        ...
