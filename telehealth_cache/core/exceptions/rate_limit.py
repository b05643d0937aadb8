"""
Rate Limiting Exceptions
"""

from typing import Any

from telehealth_cache.core.exceptions.base import TelehealthCacheError


class RateLimitError(TelehealthCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when an identity has used up its quota for an endpoint.

    Raised by service-level callers (e.g. the cached AI flows) that cannot
    short-circuit with an HTTP response themselves. The API layer turns it into
    a 429 with a ``Retry-After`` header.
    """

    def __init__(
        self,
        message: str,
        limit: int,
        retry_after: int,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            request_id=request_id,
            details={"limit": limit, "retry_after": retry_after, **(details or {})},
        )
        self.limit = limit
        self.retry_after = retry_after
