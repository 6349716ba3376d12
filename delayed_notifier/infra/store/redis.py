"""Redis implementation of the notification store.

Features:
- Connection pooling driven by :class:`RedisSettings`
- Automatic retry with exponential backoff on connection and timeout errors
- Optional key prefix applied to every key and sorted set name
- Prometheus timing per operation
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, TypeVar, cast

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from delayed_notifier.core.exceptions import KeyNotFoundError, StoreError
from delayed_notifier.core.settings import get_redis_settings
from delayed_notifier.infra.metrics.tracking import track_store_operation
from delayed_notifier.utils.retry import RetryError, retry_call

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection

    from delayed_notifier.core.settings.redis import RedisSettings
    from delayed_notifier.infra.store.base import Score

logger = logging.getLogger(__name__)

T = TypeVar("T")

# KEYS[1] = key, ARGV[1] = new value, ARGV[2] = ttl or "", ARGV[3..] = accepted current values
COMPARE_AND_SET_SCRIPT = """
local current = redis.call("GET", KEYS[1])
if not current then
    return 0
end
for i = 3, #ARGV do
    if current == ARGV[i] then
        if ARGV[2] == "" then
            redis.call("SET", KEYS[1], ARGV[1])
        else
            redis.call("SET", KEYS[1], ARGV[1], "EX", ARGV[2])
        end
        return 1
    end
end
return 0
"""


class RedisStore:
    """Notification store backed by Redis strings and sorted sets.

    Example:
        store = RedisStore()
        await store.connect()

        await store.add("notification.status:42", "scheduled", ttl=3600)
        await store.sorted_set_add("delayed_notifications", "42", 1735689600000)
        due = await store.sorted_set_range_by_score("delayed_notifications", "-inf", 1735689600000)

        await store.disconnect()
    """

    def __init__(
        self,
        settings: RedisSettings | None = None,
        client: Redis | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Redis settings; loaded from the environment when omitted.
            client: Pre-built client. When given, :meth:`connect` only pings it
                and :meth:`disconnect` leaves it open.
        """
        self.settings = settings or get_redis_settings()
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = client
        self._owns_client = client is None

    async def connect(self) -> None:
        """Create the connection pool and verify connectivity.

        Raises:
            StoreError: If Redis cannot be reached.
        """
        if self._client is None:
            logger.info(
                "Connecting to Redis",
                extra={
                    "host": self.settings.host,
                    "port": self.settings.port,
                    "db": self.settings.db,
                    "max_connections": self.settings.max_connections,
                },
            )
            self._pool = ConnectionPool.from_url(
                self.settings.url,
                **self.settings.connection_pool_kwargs(),
            )
            self._client = Redis(connection_pool=self._pool)

        if not await self.ping():
            msg = f"Redis at {self.settings.host}:{self.settings.port} is unreachable"
            raise StoreError(msg)

        logger.info("Redis connection established successfully")

    async def disconnect(self) -> None:
        """Close the client and the connection pool."""
        if not self._owns_client:
            return

        if self._client is not None:
            await cast("Any", self._client).aclose()
            self._client = None

        if self._pool is not None:
            await cast("Any", self._pool).aclose()
            self._pool = None

        logger.info("Redis connection closed")

    @property
    def client(self) -> Redis:
        """Get the Redis client instance.

        Raises:
            RuntimeError: If not connected.
        """
        if self._client is None:
            msg = "Redis client not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def ping(self) -> bool:
        """Return True when Redis answers PING."""
        if self._client is None:
            return False
        try:
            return bool(await cast("Awaitable[bool]", self._client.ping()))
        except RedisError as exc:
            logger.warning("Redis ping failed", extra={"error": str(exc)})
            return False

    def _key(self, key: str) -> str:
        return f"{self.settings.key_prefix}{key}"

    async def _execute(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run one Redis command with retry, timing and error translation."""
        start = time.perf_counter()
        try:
            result = await retry_call(
                func,
                max_attempts=self.settings.max_retries,
                initial_delay=self.settings.retry_delay,
                max_delay=5.0,
                exceptions=(RedisConnectionError, RedisTimeoutError),
                stop_after_delay=self.settings.retry_timeout,
                operation=f"redis_{operation}",
            )
        except RetryError as exc:
            track_store_operation(operation, time.perf_counter() - start, success=False)
            msg = f"redis {operation} failed after {exc.attempts} attempts: {exc.last_exception}"
            raise StoreError(msg) from exc
        except RedisError as exc:
            track_store_operation(operation, time.perf_counter() - start, success=False)
            msg = f"redis {operation} failed: {exc}"
            raise StoreError(msg) from exc

        track_store_operation(operation, time.perf_counter() - start)
        return result

    # ──────────────────────────────────────────────────────────────
    # Key-value operations
    # ──────────────────────────────────────────────────────────────

    async def add(self, key: str, value: str, ttl: int | None = None) -> None:
        full_key = self._key(key)
        await self._execute("set", lambda: self.client.set(full_key, value, ex=ttl))

    async def get(self, key: str) -> str:
        """Return the value stored under ``key``.

        Raises:
            KeyNotFoundError: If the key does not exist.
            StoreError: On any other failure.
        """
        value = await self._execute("get", lambda: self.client.get(self._key(key)))
        if value is None:
            raise KeyNotFoundError(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def remove(self, *keys: str) -> int:
        if not keys:
            return 0
        full_keys = [self._key(key) for key in keys]
        return int(await self._execute("delete", lambda: self.client.delete(*full_keys)))

    async def increment(self, key: str) -> int:
        return int(await self._execute("incr", lambda: self.client.incr(self._key(key))))

    async def compare_and_set(
        self,
        key: str,
        value: str,
        expected: Collection[str],
        ttl: int | None = None,
    ) -> bool:
        """Write ``value`` only while the key holds one of ``expected``.

        Runs as a Lua script so no other client can write between the read
        and the write.
        """
        if not expected:
            return False
        full_key = self._key(key)
        args = [value, "" if ttl is None else str(ttl), *expected]
        written = await self._execute(
            "compare_and_set",
            lambda: cast("Awaitable[int]", self.client.eval(COMPARE_AND_SET_SCRIPT, 1, full_key, *args)),
        )
        return int(written) == 1

    # ──────────────────────────────────────────────────────────────
    # Sorted set operations
    # ──────────────────────────────────────────────────────────────

    async def sorted_set_add(self, name: str, member: str, score: Score) -> None:
        full_name = self._key(name)
        await self._execute("zadd", lambda: self.client.zadd(full_name, {member: score}))

    async def sorted_set_range_by_score(
        self,
        name: str,
        min_score: Score,
        max_score: Score,
        offset: int = 0,
        count: int | None = None,
    ) -> list[str]:
        """Members scored within ``[min_score, max_score]``, lowest score first.

        ``min_score``/``max_score`` accept ``"-inf"`` and ``"+inf"``.
        """
        full_name = self._key(name)
        kwargs: dict[str, Any] = {}
        if count is not None:
            kwargs = {"start": offset, "num": count}
        elif offset:
            kwargs = {"start": offset, "num": -1}

        members = await self._execute(
            "zrangebyscore",
            lambda: self.client.zrangebyscore(full_name, min_score, max_score, **kwargs),
        )
        return [m.decode("utf-8") if isinstance(m, bytes) else m for m in members]

    async def sorted_set_remove(self, name: str, member: str) -> bool:
        full_name = self._key(name)
        removed = await self._execute("zrem", lambda: self.client.zrem(full_name, member))
        return int(removed) > 0
