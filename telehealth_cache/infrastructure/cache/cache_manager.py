"""
Cache-Aside Manager

Architecture:
    CacheManager (Public API)
        ├── RedisClient (fail-open KV adapter)
        ├── CacheObserver (metrics & logging)
        └── background write tasks (fire-and-forget population)

Values are stored as UTF-8 text: strings raw, everything else (including
pydantic models) as JSON via orjson. Reads that are not valid JSON come back
as the raw string.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any, TypeVar

import orjson
from pydantic import BaseModel

from telehealth_cache.core.config.constants import Stage
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.exceptions import CacheSerializationError
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.infrastructure.cache.keys import CacheKeys, key_namespace
from telehealth_cache.infrastructure.cache.redis_client import (
    TTL_ABSENT,
    TTL_NO_EXPIRY,
    RedisClient,
    get_redis_client,
)
from telehealth_cache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

logger = get_logger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T] | T]
Decoder = Callable[[Any], T]

_MISSING = object()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def serialize(value: Any) -> str:
    """
    Encode a value for storage.

    Raises:
        CacheSerializationError: If the value cannot be encoded as JSON
    """
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return orjson.dumps(value, default=_json_default).decode("utf-8")
    except TypeError as e:
        raise CacheSerializationError(
            message=f"Value is not serializable: {e}",
            details={"value_type": type(value).__name__},
        ) from e


def deserialize(raw: str) -> Any:
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """Records hits, misses and write failures, and logs cache operations."""

    def __init__(self, metrics: MetricsCollector):
        self._metrics = metrics

    def record_hit(self, key: str) -> None:
        self._metrics.record_cache_hit(key_namespace(key))
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key=key)

    def record_miss(self, key: str) -> None:
        self._metrics.record_cache_miss(key_namespace(key))
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache miss", level="debug", cache_key=key)

    def record_set(self, key: str, ttl: int) -> None:
        log_stage(logger, Stage.CACHE_WRITE, "Cache set", level="debug", cache_key=key, ttl=ttl)

    def record_write_failure(self, key: str, reason: str) -> None:
        self._metrics.record_write_failure(key_namespace(key))
        log_stage(
            logger, Stage.CACHE_WRITE, "Background cache write failed",
            level="warning", cache_key=key, reason=reason,
        )

    def record_invalidation(self, keys: Iterable[str]) -> None:
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache invalidated", keys=list(keys))

    def stats(self) -> dict[str, Any]:
        return self._metrics.snapshot()


# =============================================================================
# PUBLIC API
# =============================================================================


class CacheManager:
    """
    Cache-aside orchestrator over the fail-open KV adapter.

    Usage:
        cache = CacheManager()
        profile = await cache.get_or_compute(
            CacheKeys.user_profile(user_id),
            lambda: repository.fetch_user(user_id),
            ttl=CacheTTL.USER_PROFILE,
            decoder=UserProfile.model_validate,
        )
    """

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        metrics: MetricsCollector | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._redis = redis_client or get_redis_client()
        self._metrics = metrics or get_metrics_collector()
        self._observer = CacheObserver(self._metrics)
        self._default_ttl = self._settings.cache.CACHE_DEFAULT_TTL
        self._caching_enabled = self._settings.cache.CACHE_ENABLED
        self._pending_writes: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        """Caching is active only when switched on and the store is configured."""
        return self._caching_enabled and self._redis.is_configured()

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def redis(self) -> RedisClient:
        return self._redis

    # -------------------------------------------------------------------------
    # Core Cache Operations
    # -------------------------------------------------------------------------

    async def _lookup(self, key: str, decoder: Decoder | None) -> Any:
        raw = await self._redis.get(key)
        if raw is None:
            self._observer.record_miss(key)
            return _MISSING

        value = deserialize(raw)
        if decoder is not None:
            try:
                value = decoder(value)
            except (ValueError, TypeError) as e:
                # pydantic.ValidationError is a ValueError
                logger.warning(
                    "Treating undecodable cache entry as a miss",
                    stage=Stage.CACHE_LOOKUP.value,
                    cache_key=key,
                    error=str(e),
                )
                self._observer.record_miss(key)
                return _MISSING

        self._observer.record_hit(key)
        return value

    async def get(self, key: str, decoder: Decoder | None = None) -> Any | None:
        """Cached value for ``key``, or None on miss, outage or disabled cache."""
        if not self.enabled:
            return None
        value = await self._lookup(key, decoder)
        return None if value is _MISSING else value

    async def set(
        self, key: str, value: Any, ttl: int | None = None, tags: Iterable[str] = ()
    ) -> bool:
        """
        Store ``value`` under ``key`` and register it in each tag index.

        Returns:
            True if the value reached the store
        """
        if not self.enabled:
            return False

        ttl = int(ttl or self._default_ttl)
        payload = serialize(value)
        stored = await self._redis.set(key, payload, ttl=ttl)
        if stored:
            self._observer.record_set(key, ttl)
            for tag in tags:
                await self._index(tag, key, ttl)
        return stored

    async def _index(self, tag: str, key: str, ttl: int) -> None:
        tag_key = CacheKeys.tag(tag)
        await self._redis.sadd(tag_key, key)
        remaining = await self._redis.ttl(tag_key)
        if remaining == TTL_NO_EXPIRY or remaining == TTL_ABSENT or remaining < ttl:
            await self._redis.expire(tag_key, ttl)

    async def delete(self, *keys: str) -> int:
        if not self.enabled or not keys:
            return 0
        deleted = await self._redis.delete(*keys)
        self._observer.record_invalidation(keys)
        return deleted

    async def exists(self, key: str) -> bool:
        if not self.enabled:
            return False
        return await self._redis.exists(key)

    async def ttl(self, key: str) -> int:
        """Seconds remaining, -1 if absent, -2 if the key has no expiry."""
        if not self.enabled:
            return TTL_ABSENT
        return await self._redis.ttl(key)

    async def increment(self, key: str, amount: int = 1) -> int | None:
        if not self.enabled:
            return None
        return await self._redis.increment(key, amount)

    async def invalidate_tag(self, tag: str) -> int:
        """
        Delete every key registered under ``tag`` plus the index itself.

        Returns:
            Number of member keys deleted
        """
        if not self.enabled:
            return 0
        tag_key = CacheKeys.tag(tag)
        members = await self._redis.smembers(tag_key)
        deleted = await self._redis.delete(*members) if members else 0
        await self._redis.delete(tag_key)
        log_stage(
            logger, Stage.CACHE_INVALIDATION, "Tag invalidated",
            tag=tag, members=len(members), deleted=deleted,
        )
        return deleted

    # -------------------------------------------------------------------------
    # Cache-aside
    # -------------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        producer: Producer,
        ttl: int | None = None,
        decoder: Decoder | None = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.

        STAGE-2.5: Cache-aside

        - A store failure during lookup is treated as a miss.
        - Errors raised by ``producer`` propagate unchanged and nothing is cached.
        - The computed value is returned without waiting for the write; the
          write runs as a tracked background task.
        - A None result is returned but not cached.

        Concurrent misses on the same key each run ``producer``.
        """
        if self.enabled:
            cached = await self._lookup(key, decoder)
            if cached is not _MISSING:
                return cached

        result = producer()
        if inspect.isawaitable(result):
            result = await result

        if result is not None and self.enabled:
            self._schedule_write(key, result, ttl, tuple(tags))

        return result

    def _schedule_write(self, key: str, value: Any, ttl: int | None, tags: tuple[str, ...]) -> None:
        try:
            payload = serialize(value)
        except CacheSerializationError as e:
            self._observer.record_write_failure(key, e.message)
            return

        task = asyncio.create_task(self._background_write(key, payload, ttl, tags))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _background_write(
        self, key: str, payload: str, ttl: int | None, tags: tuple[str, ...]
    ) -> None:
        try:
            stored = await self.set(key, payload, ttl=ttl, tags=tags)
        except Exception as e:
            # Task boundary: nothing may escape a fire-and-forget write
            self._observer.record_write_failure(key, f"{type(e).__name__}: {e}")
            return
        if not stored:
            self._observer.record_write_failure(key, "store unavailable")

    async def wait_for_pending_writes(self) -> None:
        """Block until every background write scheduled so far has finished."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        return {
            **self._observer.stats(),
            "caching_enabled": self.enabled,
            "pending_writes": self.pending_writes,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    async def health_check(self) -> dict[str, Any]:
        kv_health = await self._redis.health_check()
        status = "healthy" if kv_health["status"] == "healthy" else "degraded"
        return {"status": status, "caching_enabled": self.enabled, "kv_store": kv_health}


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_manager: CacheManager | None = None


def get_cache_manager() -> CacheManager:
    global _cache_manager

    if _cache_manager is None:
        _cache_manager = CacheManager()

    return _cache_manager


async def close_cache() -> None:
    """Drain pending writes and drop the global cache manager."""
    global _cache_manager

    if _cache_manager:
        await _cache_manager.wait_for_pending_writes()
        _cache_manager = None
