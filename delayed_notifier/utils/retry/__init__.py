from __future__ import annotations

from delayed_notifier.utils.retry.call import retry_call
from delayed_notifier.utils.retry.exceptions import RetryError, RetryStatistics
from delayed_notifier.utils.retry.strategies import RetryStrategy

__all__ = ["retry_call", "RetryError", "RetryStatistics", "RetryStrategy"]
