"""
Exception Module

Structured exception hierarchy for the caching and rate-limiting layer.

Module Structure:
-----------------
- **base.py**: TelehealthCacheError base class + ConfigurationError
- **cache.py**: KV store exceptions
- **rate_limit.py**: Quota exceptions
- **backend.py**: Backing store exceptions

Usage:
------
```python
from telehealth_cache.core.exceptions import CacheKeyError, RateLimitExceededError
```
"""

from telehealth_cache.core.exceptions.backend import (
    BackendError,
    BackendNotConfiguredError,
    BackendTransientError,
)
from telehealth_cache.core.exceptions.base import ConfigurationError, TelehealthCacheError
from telehealth_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)
from telehealth_cache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    # Base
    "TelehealthCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Backend
    "BackendError",
    "BackendTransientError",
    "BackendNotConfiguredError",
]
