"""Utility modules for common operations.

This package provides reusable utilities for:
- Retry patterns with exponential backoff
"""

from delayed_notifier.utils.retry import RetryError, RetryStrategy, retry_call

__all__ = ["RetryError", "RetryStrategy", "retry_call"]
