"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings defaults so no test reaches real infrastructure
    - Store Fixtures: in-memory NotificationStore and a fake redis.asyncio client
    - Queue Fixtures: in-memory publisher/consumer standing in for RabbitMQ
    - Transport Fixtures: recording channel transports
    - Settings Fixtures: fast notifier settings for pipeline tests
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Collection
from datetime import UTC, datetime, timedelta
import inspect
import os
from typing import Any

import pytest

from delayed_notifier.core.exceptions import KeyNotFoundError, QueuePublishError
from delayed_notifier.core.settings import NotifierSettings, clear_all_caches

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Store Fixtures
# ============================================================================


class InMemoryStore:
    """Dict-backed NotificationStore.

    ``fail`` maps an operation name to an exception raised on its next calls;
    ``ttls`` records the TTL passed with every ``add``.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.sorted_sets: dict[str, dict[str, float]] = {}
        self.fail: dict[str, Exception] = {}
        self.connected = False
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _check(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        error = self.fail.get(operation)
        if error is not None:
            raise error

    async def connect(self) -> None:
        self._check("connect")
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        return self.connected and "ping" not in self.fail

    async def add(self, key: str, value: str, ttl: int | None = None) -> None:
        self._check("add", key, value)
        self.values[key] = value
        self.ttls[key] = ttl

    async def get(self, key: str) -> str:
        self._check("get", key)
        if key not in self.values:
            raise KeyNotFoundError(key)
        return self.values[key]

    async def remove(self, *keys: str) -> int:
        self._check("remove", *keys)
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def increment(self, key: str) -> int:
        self._check("increment", key)
        value = int(self.values.get(key, "0")) + 1
        self.values[key] = str(value)
        return value

    async def compare_and_set(
        self,
        key: str,
        value: str,
        expected: Collection[str],
        ttl: int | None = None,
    ) -> bool:
        self._check("compare_and_set", key, value)
        if self.values.get(key) not in expected:
            return False
        self.values[key] = value
        self.ttls[key] = ttl
        return True

    async def sorted_set_add(self, name: str, member: str, score: float | int | str) -> None:
        self._check("sorted_set_add", name, member)
        self.sorted_sets.setdefault(name, {})[member] = float(score)

    async def sorted_set_range_by_score(
        self,
        name: str,
        min_score: float | int | str,
        max_score: float | int | str,
        offset: int = 0,
        count: int | None = None,
    ) -> list[str]:
        self._check("sorted_set_range_by_score", name)
        low, high = float(min_score), float(max_score)
        members = sorted(
            (score, member)
            for member, score in self.sorted_sets.get(name, {}).items()
            if low <= score <= high
        )
        ids = [member for _score, member in members][offset:]
        return ids if count is None else ids[:count]

    async def sorted_set_remove(self, name: str, member: str) -> bool:
        self._check("sorted_set_remove", name, member)
        return self.sorted_sets.get(name, {}).pop(member, None) is not None

    def members(self, name: str) -> dict[str, float]:
        return dict(self.sorted_sets.get(name, {}))


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


class FakeRedis:
    """Subset of redis.asyncio.Redis with decode_responses=True semantics."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.closed = False
        self.errors: list[Exception] = []
        self.scripts: list[str] = []

    def _maybe_fail(self) -> None:
        if self.errors:
            raise self.errors.pop(0)

    async def ping(self) -> bool:
        self._maybe_fail()
        return True

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._maybe_fail()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        self._maybe_fail()
        return self.data.get(key)

    async def delete(self, *keys: str) -> int:
        self._maybe_fail()
        removed = 0
        for key in keys:
            if key in self.data or key in self.zsets:
                removed += 1
            self.data.pop(key, None)
            self.zsets.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        self._maybe_fail()
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    async def eval(self, script: str, numkeys: int, *keys_and_args: str) -> int:
        """Runs the store's compare-and-set script."""
        self._maybe_fail()
        self.scripts.append(script)
        key = keys_and_args[0]
        value, ttl, *expected = keys_and_args[numkeys:]
        if key not in self.data or self.data[key] not in expected:
            return 0
        self.data[key] = value
        self.expiry[key] = int(ttl) if ttl else None
        return 1

    async def zadd(self, name: str, mapping: dict[str, float]) -> int:
        self._maybe_fail()
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrangebyscore(
        self,
        name: str,
        min: Any,
        max: Any,
        start: int | None = None,
        num: int | None = None,
    ) -> list[str]:
        self._maybe_fail()
        low, high = float(min), float(max)
        ordered = sorted(
            (score, member) for member, score in self.zsets.get(name, {}).items() if low <= score <= high
        )
        members = [member for _score, member in ordered]
        if start is not None and num is not None:
            members = members[start:] if num < 0 else members[start : start + num]
        return members

    async def zrem(self, name: str, *members: str) -> int:
        self._maybe_fail()
        zset = self.zsets.get(name, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ============================================================================
# Queue Fixtures
# ============================================================================


class FakeQueue:
    """In-process stand-in for NotificationQueue."""

    def __init__(self) -> None:
        self.published: list[str] = []
        self.fail_publish = 0
        self.is_connected = False
        self.draining = False
        self._inbox: asyncio.Queue[str] | None = None
        self._closed = asyncio.Event()

    async def connect_with_retry(self, attempts: int | None = None, pause: float | None = None) -> None:
        self.is_connected = True

    async def publish(self, payload: str) -> None:
        if self.fail_publish:
            self.fail_publish -= 1
            msg = "broker unavailable"
            raise QueuePublishError(msg)
        self.published.append(payload)
        if self._inbox is not None and not self.draining:
            await self._inbox.put(payload)

    async def consume(self, inbox: asyncio.Queue[str]) -> None:
        self._inbox = inbox
        await self._closed.wait()

    async def stop_consuming(self) -> None:
        self.draining = True

    async def close(self) -> None:
        self.is_connected = False
        self._closed.set()


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


# ============================================================================
# Transport Fixtures
# ============================================================================


class RecordingTransport:
    """Records deliveries; ``failures`` leading calls raise ``error``."""

    def __init__(self, failures: int = 0, error: Exception | None = None, delay: float = 0.0) -> None:
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0
        self.failures = failures
        self.error = error or ConnectionError("transport down")
        self.delay = delay
        self.closed = False

    async def send(self, destination: str, body: str) -> None:
        self.attempts += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.attempts <= self.failures:
            raise self.error
        self.sent.append((destination, body))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport_factory() -> Callable[..., RecordingTransport]:
    return RecordingTransport


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def notifier_settings() -> NotifierSettings:
    """Notifier settings with short intervals for tests."""
    return NotifierSettings(
        poll_interval_ms=20,
        batch_size=10,
        publish_retry_delay=5.0,
        max_publish_attempts=3,
        consumer_workers=2,
        inbox_size=10,
        sender_retry_attempts=3,
        sender_retry_delay=0.01,
        sender_retry_backoff=2.0,
    )


async def _wait_until(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return
        if loop.time() > deadline:
            msg = "condition not met in time"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Poll a (sync or async) predicate until it holds or the timeout elapses."""
    return _wait_until
