"""
Cache-Related Exceptions

Errors raised by the KV store layer. Callers above the KV adapter normally
never see these: the adapter absorbs them and returns the caller's fallback.
"""

from telehealth_cache.core.exceptions.base import TelehealthCacheError


class CacheError(TelehealthCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when the KV store cannot be reached.

    Common causes:
    - Store endpoint down or unreachable
    - Wrong URL or expired access token
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a single KV command fails.

    Common causes:
    - Operation timeout
    - Wrong value type stored under the key
    - Store memory limit exceeded
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a cached payload cannot be decoded into the expected type."""
    pass
