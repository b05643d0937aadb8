"""
Sliding-Window Rate Limiter

Per (endpoint, identity) quota backed by a Redis sorted set. Every check runs
one MULTI/EXEC batch:

1. ZREMRANGEBYSCORE drops tokens at or before ``now - window``
2. ZCARD counts the tokens still inside the window
3. ZADD inserts a token for this request (``<now_ms>-<random>``)
4. EXPIRE lets the set lapse once the identity goes idle

The count is taken before the insert, so exactly ``limit`` requests are
admitted per window. The token is inserted whether or not the request is
admitted; a client that keeps hammering keeps its window full.

When the store is unconfigured or the batch fails the request is admitted with
full quota (fail-open).
"""

import math
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from telehealth_cache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_RETRY_AFTER,
    RateLimitDecision,
    Stage,
)
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.infrastructure.cache.keys import CacheKeys
from telehealth_cache.infrastructure.cache.redis_client import RedisClient, get_redis_client
from telehealth_cache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPreset:
    limit: int
    window: int  # seconds


class RateLimitPresets:
    """Named quotas per traffic class."""

    AI_ANALYSIS = RateLimitPreset(limit=10, window=3600)
    FILE_UPLOAD = RateLimitPreset(limit=20, window=3600)
    API_DEFAULT = RateLimitPreset(limit=100, window=60)
    STRICT = RateLimitPreset(limit=5, window=60)
    GENEROUS = RateLimitPreset(limit=1000, window=3600)


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of a quota check.

    ``reset`` is a unix timestamp in seconds; ``retry_after`` is set only for
    rejected (or exhausted) quotas.
    """

    success: bool
    limit: int
    remaining: int
    reset: int
    retry_after: int | None = None
    decision: RateLimitDecision = RateLimitDecision.ADMITTED

    def headers(self) -> dict[str, str]:
        headers = {
            HEADER_RATE_LIMIT: str(self.limit),
            HEADER_RATE_REMAINING: str(self.remaining),
            HEADER_RATE_RESET: str(self.reset),
        }
        if self.retry_after is not None:
            headers[HEADER_RETRY_AFTER] = str(self.retry_after)
        return headers


def _mask(identity: str) -> str:
    return f"{identity[:8]}..." if len(identity) > 8 else identity


class SlidingWindowRateLimiter:
    """
    Usage:
        limiter = SlidingWindowRateLimiter()
        result = await limiter.check(limit=10, window=3600, identity="u1", endpoint="/ai")
        if not result.success:
            ...  # 429 with result.retry_after
    """

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.time,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._redis = redis_client or get_redis_client()
        self._metrics = metrics or get_metrics_collector()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._settings.rate_limit.RATE_LIMIT_ENABLED and self._redis.is_configured()

    def _open(self, limit: int, window: int, now: float, endpoint: str) -> RateLimitResult:
        self._metrics.record_rate_limit(RateLimitDecision.FAIL_OPEN, endpoint)
        return RateLimitResult(
            success=True,
            limit=limit,
            remaining=limit,
            reset=math.ceil(now + window),
            decision=RateLimitDecision.FAIL_OPEN,
        )

    async def check(self, limit: int, window: int, identity: str, endpoint: str) -> RateLimitResult:
        """
        Consume one request from the (endpoint, identity) quota.

        STAGE-3.1: Sliding window check
        """
        now = self._clock()

        if not self.enabled:
            log_stage(
                logger, Stage.RATE_LIMITING, "Rate limiting unavailable, admitting request",
                level="debug", endpoint=endpoint,
            )
            return self._open(limit, window, now, endpoint)

        key = CacheKeys.rate_limit(endpoint, identity)
        now_ms = int(now * 1000)
        window_start_ms = now_ms - window * 1000
        member = f"{now_ms}-{secrets.token_hex(6)}"

        def build(pipe) -> None:
            pipe.zremrangebyscore(key, "-inf", window_start_ms)
            pipe.zcard(key)
            pipe.zadd(key, {member: now_ms})
            pipe.expire(key, window)

        results = await self._redis.execute_pipeline(build, None)
        if results is None:
            log_stage(
                logger, Stage.RATE_LIMITING, "Rate limit check failed, admitting request",
                level="error", endpoint=endpoint, identity=_mask(identity),
            )
            return self._open(limit, window, now, endpoint)

        count = int(results[1] or 0)
        reset = math.ceil(now + window)

        if count >= limit:
            self._metrics.record_rate_limit(RateLimitDecision.REJECTED, endpoint)
            log_stage(
                logger, Stage.RATE_LIMITING, "Rate limit exceeded",
                level="warning", endpoint=endpoint, identity=_mask(identity),
                count=count, limit=limit,
            )
            return RateLimitResult(
                success=False,
                limit=limit,
                remaining=0,
                reset=reset,
                retry_after=math.ceil(window),
                decision=RateLimitDecision.REJECTED,
            )

        self._metrics.record_rate_limit(RateLimitDecision.ADMITTED, endpoint)
        log_stage(
            logger, Stage.RATE_LIMITING, "Request admitted",
            level="debug", endpoint=endpoint, identity=_mask(identity),
            count=count + 1, limit=limit,
        )
        return RateLimitResult(
            success=True,
            limit=limit,
            remaining=max(0, limit - count - 1),
            reset=reset,
        )

    async def status(self, limit: int, window: int, identity: str, endpoint: str) -> RateLimitResult:
        """Current quota for (endpoint, identity) without consuming a token."""
        now = self._clock()
        reset = math.ceil(now + window)
        full = RateLimitResult(success=True, limit=limit, remaining=limit, reset=reset)

        if not self.enabled:
            return full

        key = CacheKeys.rate_limit(endpoint, identity)
        window_start_ms = int(now * 1000) - window * 1000

        def build(pipe) -> None:
            pipe.zremrangebyscore(key, "-inf", window_start_ms)
            pipe.zcard(key)

        results = await self._redis.execute_pipeline(build, None)
        if results is None:
            return full

        remaining = max(0, limit - int(results[1] or 0))
        return RateLimitResult(
            success=remaining > 0,
            limit=limit,
            remaining=remaining,
            reset=reset,
            retry_after=math.ceil(window) if remaining == 0 else None,
        )

    async def reset(self, identity: str, endpoint: str) -> bool:
        """
        Clear the window for (endpoint, identity).

        Returns:
            True when cleared (or nothing to clear), False on store failure
        """
        if not self._redis.is_configured():
            return True

        key = CacheKeys.rate_limit(endpoint, identity)
        deleted = await self._redis.safe_operation(lambda ex: ex.delete(key), None, operation="DEL")
        if deleted is None:
            return False

        log_stage(logger, Stage.RATE_LIMITING, "Rate limit reset", endpoint=endpoint, identity=_mask(identity))
        return True


# Global rate limiter
_rate_limiter: SlidingWindowRateLimiter | None = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter
