"""Resilience helpers (retry with backoff)."""

from telehealth_cache.core.resilience.retry import (
    RetryPolicy,
    is_network_error,
    retry_with_policy,
    with_retry,
)

__all__ = ["RetryPolicy", "is_network_error", "retry_with_policy", "with_retry"]
