from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, TypeVar

from delayed_notifier.infra.metrics.tracking import (
    track_retry_attempt,
    track_retry_exhausted,
    track_retry_success,
)

from .exceptions import RetryError, RetryStatistics
from .strategies import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

R = TypeVar("R")


async def retry_call(
    func: Callable[[], Awaitable[R]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float | None = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = False,
    jitter_range: tuple[float, float] = (0.5, 1.5),
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    stop_after_delay: float | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    operation: str | None = None,
) -> R:
    """Await ``func()`` until it succeeds or the attempt budget is spent.

    Attempt ``k`` (k >= 2) starts no earlier than
    ``initial_delay * exponential_base ** (k - 2)`` seconds after attempt ``k - 1``
    failed (capped by ``max_delay`` when set, scaled by jitter when enabled).

    Args:
        func: Zero-argument coroutine factory to call on every attempt.
        max_attempts: Total number of attempts, including the first one.
        initial_delay: Pause after the first failure in seconds.
        max_delay: Upper bound for a single pause, ``None`` for no bound.
        exponential_base: Multiplicative backoff factor between pauses.
        jitter: Randomize each pause within ``jitter_range``.
        jitter_range: Multiplier range applied when jitter is enabled.
        exceptions: Exception types that are retried; others propagate at once.
        retry_if: Predicate overriding ``exceptions`` when given.
        stop_after_delay: Give up once this many seconds have elapsed.
        on_retry: Callback invoked with the error and the failed attempt number.
        operation: Name used in logs and metrics.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        RetryError: If every attempt failed with a retryable exception.
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        jitter_range=jitter_range,
        exceptions=exceptions,
        retry_if=retry_if,
        stop_after_delay=stop_after_delay,
    )
    name = operation or getattr(func, "__name__", "operation")
    statistics = RetryStatistics(start_time=time.monotonic())

    for attempt in range(max_attempts):
        try:
            result = await func()
            if statistics.attempts > 0:
                track_retry_success(name, statistics.attempts + 1)
            return result
        except Exception as e:
            if not strategy.should_retry(e):
                logger.warning(
                    f"Non-retryable exception in {name}: {e}",
                    extra={"function": name, "exception": str(e)},
                )
                raise

            elapsed = time.monotonic() - statistics.start_time
            if stop_after_delay is not None and elapsed >= stop_after_delay:
                statistics.end_time = time.monotonic()
                raise RetryError(e, attempt + 1, statistics) from e

            if attempt >= max_attempts - 1:
                statistics.end_time = time.monotonic()
                track_retry_exhausted(name)
                logger.error(
                    f"All retry attempts exhausted for {name}",
                    extra={
                        "function": name,
                        "attempts": attempt + 1,
                        "last_exception": str(e),
                        "total_delay": statistics.total_delay,
                        "duration": statistics.duration,
                    },
                )
                raise RetryError(e, attempt + 1, statistics) from e

            delay = strategy.calculate_delay(attempt)
            statistics.attempts += 1
            statistics.total_delay += delay
            statistics.exceptions.append(type(e).__name__)

            track_retry_attempt(name, attempt + 2)

            logger.warning(
                f"Retrying {name} after {delay:.2f}s (attempt {attempt + 1}/{max_attempts})",
                extra={
                    "function": name,
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "delay": delay,
                    "exception": str(e),
                },
            )

            if on_retry:
                on_retry(e, attempt + 1)

            await asyncio.sleep(delay)

    msg = "Retry logic error: exhausted all attempts"
    raise RuntimeError(msg)

