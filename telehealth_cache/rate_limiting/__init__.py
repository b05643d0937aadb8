"""Sliding-window rate limiting and route decorators."""

from telehealth_cache.rate_limiting.middleware import (
    RateLimitMiddleware,
    default_limit_exceeded_response,
    get_request_identity,
    route_bucket,
    with_rate_limit,
)
from telehealth_cache.rate_limiting.rate_limiter import (
    RateLimitPreset,
    RateLimitPresets,
    RateLimitResult,
    SlidingWindowRateLimiter,
    get_rate_limiter,
)

__all__ = [
    "RateLimitMiddleware",
    "default_limit_exceeded_response",
    "get_request_identity",
    "route_bucket",
    "with_rate_limit",
    "RateLimitPreset",
    "RateLimitPresets",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "get_rate_limiter",
]
