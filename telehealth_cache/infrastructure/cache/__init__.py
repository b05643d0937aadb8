"""
Cache infrastructure: fail-open KV adapter, cache-aside manager, key registry
and content-addressed AI keys.
"""

from telehealth_cache.infrastructure.cache.cache_manager import (
    CacheManager,
    close_cache,
    get_cache_manager,
)
from telehealth_cache.infrastructure.cache.keys import CacheKeys, CacheTTL, canonicalize_filters
from telehealth_cache.infrastructure.cache.redis_client import (
    RedisClient,
    close_redis,
    get_redis_client,
    init_redis,
)

__all__ = [
    "CacheManager",
    "get_cache_manager",
    "close_cache",
    "CacheKeys",
    "CacheTTL",
    "canonicalize_filters",
    "RedisClient",
    "get_redis_client",
    "init_redis",
    "close_redis",
]
