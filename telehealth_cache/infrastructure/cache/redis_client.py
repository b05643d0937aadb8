"""
KV Store Adapter over redis.asyncio

Architecture:
    RedisClient (Public, fail-open API)
        ├── ConnectionManager (Connection lifecycle, lazy pooled connect)
        ├── OperationExecutor (Command execution, RedisError -> CacheKeyError)
        └── HealthMonitor (Ping latency and pool metrics)

Every public operation takes a fallback. When the store is not configured or a
transport error occurs, the fallback is returned instead of raising, so cache
and quota outages degrade to "no caching / no limiting" rather than failing the
request.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from telehealth_cache.core.config.constants import Stage
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.exceptions import CacheConnectionError, CacheError, CacheKeyError
from telehealth_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Redis TTL reply codes
_REDIS_TTL_MISSING = -2
_REDIS_TTL_PERSISTENT = -1

# Adapter TTL contract
TTL_ABSENT = -1
TTL_NO_EXPIRY = -2


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages the Redis connection pool.

    The pool is created on first use rather than at import time, so a process
    without credentials never opens a socket.
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._is_connected = client is not None
        self._lock = asyncio.Lock()

    async def connect(self) -> redis.Redis:
        """
        Establish a pooled connection and verify it with PING.

        Raises:
            CacheConnectionError: If the store cannot be reached
        """
        if self._is_connected and self._client:
            return self._client

        async with self._lock:
            if self._is_connected and self._client:
                return self._client

            redis_settings = self._settings.redis
            try:
                self._pool = ConnectionPool.from_url(
                    redis_settings.REDIS_URL,
                    password=redis_settings.REDIS_TOKEN,
                    max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                    socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                    health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                    decode_responses=True,
                )
                self._client = redis.Redis(connection_pool=self._pool)
                await self._client.ping()
            except (ConnectionError, TimeoutError, OSError, ValueError) as e:
                logger.error("Failed to connect to KV store", stage=Stage.KV_STORE.value, error=str(e))
                await self._release()
                raise CacheConnectionError(
                    message=f"Failed to connect to KV store: {e}",
                    details={"max_connections": redis_settings.REDIS_MAX_CONNECTIONS},
                ) from e

            self._is_connected = True
            logger.info(
                "KV store connected",
                stage=Stage.KV_STORE.value,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
            return self._client

    async def _release(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
        self._is_connected = False

    async def disconnect(self) -> None:
        if self._pool is None:
            # Injected client: the owner closes it
            return
        await self._release()
        logger.info("KV store disconnected", stage=Stage.CLEANUP.value)

    async def ping(self) -> bool:
        try:
            if self._client and self._is_connected:
                return bool(await self._client.ping())
        except (ConnectionError, TimeoutError, OSError):
            pass
        return False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTION
# =============================================================================


class OperationExecutor:
    """
    Executes Redis commands with consistent error handling.

    Every RedisError is logged with the command name and key, then re-raised as
    CacheKeyError. Fallback handling lives one layer up in RedisClient.
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def _run(self, command: str, call: Awaitable[T], **context) -> T:
        try:
            return await call
        except RedisError as e:
            logger.error(
                f"Redis {command} failed", stage=f"REDIS.{command}", error=str(e), **context
            )
            raise CacheKeyError(message=f"Redis {command} failed: {e}", details=context) from e

    async def get(self, key: str) -> str | None:
        return await self._run("GET", self._redis.get(key), key=key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        result = await self._run("SET", self._redis.set(key, value, ex=ttl), key=key)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        return await self._run("DEL", self._redis.delete(*keys), keys=list(keys))

    async def exists(self, *keys: str) -> int:
        return await self._run("EXISTS", self._redis.exists(*keys), keys=list(keys))

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._run("EXPIRE", self._redis.expire(key, ttl), key=key))

    async def ttl(self, key: str) -> int:
        return await self._run("TTL", self._redis.ttl(key), key=key)

    async def incrby(self, key: str, amount: int) -> int:
        return await self._run("INCRBY", self._redis.incrby(key, amount), key=key)

    async def sadd(self, key: str, *members: str) -> int:
        return await self._run("SADD", self._redis.sadd(key, *members), key=key)

    async def smembers(self, key: str) -> "set[str]":
        return await self._run("SMEMBERS", self._redis.smembers(key), key=key)

    async def scan_keys(self, pattern: str, count: int = 500) -> list[str]:
        try:
            return [key async for key in self._redis.scan_iter(match=pattern, count=count)]
        except RedisError as e:
            logger.error("Redis SCAN failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise CacheKeyError(message=f"Redis SCAN failed: {e}", details={"pattern": pattern}) from e

    async def flushdb(self) -> bool:
        return bool(await self._run("FLUSHDB", self._redis.flushdb()))

    def pipeline(self, transaction: bool = True):
        """Create a MULTI/EXEC pipeline. Commands queue synchronously; ``execute()`` is awaited."""
        return self._redis.pipeline(transaction=transaction)


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """Reports configuration state, connection state, ping latency and pool utilization."""

    def __init__(self, connection_manager: ConnectionManager, configured: Callable[[], bool]):
        self._conn_mgr = connection_manager
        self._configured = configured

    async def health_check(self) -> dict[str, Any]:
        health: dict[str, Any] = {
            "status": "healthy",
            "configured": self._configured(),
            "connected": self._conn_mgr.is_connected(),
            "ping_latency_ms": None,
            "pool_size": 0,
            "pool_in_use": 0,
        }

        if not health["configured"]:
            health["status"] = "unconfigured"
            return health

        try:
            client = await self._conn_mgr.connect()
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
            health["connected"] = True

            pool = self._conn_mgr.get_pool()
            if pool is not None:
                health["pool_size"] = pool.max_connections
                in_use = getattr(pool, "_in_use_connections", None)
                if in_use is not None:
                    health["pool_in_use"] = len(in_use)
        except (CacheError, RedisError, OSError) as e:
            health["status"] = "unhealthy"
            health["connected"] = False
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Fail-open async KV adapter.

    Usage:
        client = RedisClient()
        if client.is_configured():
            await client.set("user:u1:profile", payload, ttl=3600)
        value = await client.get("user:u1:profile")  # None on miss or outage

    Tests inject a client object directly:
        client = RedisClient(client=InMemoryRedis())
    """

    def __init__(self, settings: Settings | None = None, client: redis.Redis | None = None):
        self._settings = settings or get_settings()
        self._injected = client is not None
        self._conn_mgr = ConnectionManager(self._settings, client=client)
        self._executor: OperationExecutor | None = (
            OperationExecutor(client) if client is not None else None
        )
        self._health_monitor = HealthMonitor(self._conn_mgr, self.is_configured)

        if not self.is_configured():
            logger.info(
                "KV store not configured, caching and rate limiting disabled",
                stage=Stage.INITIALIZATION.value,
            )

    def is_configured(self) -> bool:
        """True when credentials were present at start (or a client was injected)."""
        return self._injected or self._settings.redis.is_configured

    async def connect(self) -> None:
        """
        Open the connection pool eagerly.

        Raises:
            CacheConnectionError: If the store cannot be reached
        """
        await self._ensure_executor()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        if not self._injected:
            self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    async def test_connection(self) -> bool:
        """Round-trip a PING through the fail-open path."""

        async def _ping(_: OperationExecutor) -> bool:
            return await self._conn_mgr.ping()

        return await self.safe_operation(_ping, False, operation="PING")

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()

    async def _ensure_executor(self) -> OperationExecutor:
        if self._executor is None:
            client = await self._conn_mgr.connect()
            self._executor = OperationExecutor(client)
        return self._executor

    async def safe_operation(
        self,
        op: Callable[[OperationExecutor], Awaitable[T]],
        fallback: T,
        operation: str = "operation",
    ) -> T:
        """
        Run ``op`` against the store, returning ``fallback`` on any store failure.

        Unconfigured is an expected state and is not logged as an error.
        """
        if not self.is_configured():
            return fallback

        try:
            executor = await self._ensure_executor()
            return await op(executor)
        except (CacheError, RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning(
                "KV store operation failed, using fallback",
                stage=Stage.KV_STORE.value,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            return fallback

    # -------------------------------------------------------------------------
    # Fail-open primitives
    # -------------------------------------------------------------------------

    async def get(self, key: str, fallback: str | None = None) -> str | None:
        return await self.safe_operation(lambda ex: ex.get(key), fallback, operation="GET")

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self.safe_operation(lambda ex: ex.set(key, value, ttl), False, operation="SET")

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.safe_operation(lambda ex: ex.delete(*keys), 0, operation="DEL")

    async def exists(self, key: str) -> bool:
        count = await self.safe_operation(lambda ex: ex.exists(key), 0, operation="EXISTS")
        return count > 0

    async def ttl(self, key: str) -> int:
        """
        Seconds remaining before ``key`` expires.

        Returns:
            Remaining seconds, -1 if the key is absent, -2 if it has no expiry
        """
        raw = await self.safe_operation(lambda ex: ex.ttl(key), _REDIS_TTL_MISSING, operation="TTL")
        if raw == _REDIS_TTL_MISSING:
            return TTL_ABSENT
        if raw == _REDIS_TTL_PERSISTENT:
            return TTL_NO_EXPIRY
        return raw

    async def increment(self, key: str, amount: int = 1) -> int | None:
        """Increment a counter; None when the store is unavailable."""
        return await self.safe_operation(lambda ex: ex.incrby(key, amount), None, operation="INCRBY")

    async def expire(self, key: str, ttl: int) -> bool:
        return await self.safe_operation(lambda ex: ex.expire(key, ttl), False, operation="EXPIRE")

    async def sadd(self, key: str, *members: str) -> int:
        return await self.safe_operation(lambda ex: ex.sadd(key, *members), 0, operation="SADD")

    async def smembers(self, key: str) -> "set[str]":
        return await self.safe_operation(lambda ex: ex.smembers(key), set(), operation="SMEMBERS")

    async def scan_keys(self, pattern: str) -> list[str]:
        return await self.safe_operation(lambda ex: ex.scan_keys(pattern), [], operation="SCAN")

    async def flushdb(self) -> bool:
        return await self.safe_operation(lambda ex: ex.flushdb(), False, operation="FLUSHDB")

    async def execute_pipeline(self, build: Callable[[Any], Any], fallback: T) -> list[Any] | T:
        """
        Queue commands through ``build(pipe)`` and execute them as one MULTI/EXEC batch.

        Returns:
            The list of command replies, or ``fallback`` if the batch fails
        """

        async def _execute(ex: OperationExecutor) -> list[Any]:
            async with ex.pipeline(transaction=True) as pipe:
                build(pipe)
                return await pipe.execute()

        return await self.safe_operation(_execute, fallback, operation="PIPELINE")


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    global _redis_client

    if _redis_client is None:
        _redis_client = RedisClient()

    return _redis_client


async def init_redis() -> RedisClient:
    """
    Create the global client and try to connect.

    A failed connect is logged, not raised: the adapter keeps failing open and
    retries the connection lazily on the next operation.
    """
    client = get_redis_client()
    if client.is_configured():
        try:
            await client.connect()
        except CacheConnectionError as e:
            logger.warning("KV store unreachable at startup", stage=Stage.INITIALIZATION.value, error=e.message)
    return client


async def close_redis() -> None:
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
