"""
Unit Tests for the Fail-Open KV Adapter

Tests that every primitive works against a reachable store and degrades to its
fallback when the store is unconfigured or failing.
"""

import pytest

from telehealth_cache.core.exceptions import CacheConnectionError
from telehealth_cache.infrastructure.cache.redis_client import (
    TTL_ABSENT,
    TTL_NO_EXPIRY,
    RedisClient,
)


@pytest.mark.unit
class TestRedisClientPrimitives:
    """Test suite for RedisClient against a reachable store."""

    @pytest.mark.asyncio
    async def test_set_get_roundtrip(self, redis_client):
        assert await redis_client.set("user:u1:profile", '{"id":"u1"}', ttl=60) is True
        assert await redis_client.get("user:u1:profile") == '{"id":"u1"}'

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, redis_client):
        """Test that a plain miss is None even when a fallback is given."""
        assert await redis_client.get("missing") is None
        assert await redis_client.get("missing", fallback="default") is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, redis_client, clock):
        """Test that an entry is gone once its TTL elapses."""
        await redis_client.set("k", "v", ttl=10)

        clock.advance(10)

        assert await redis_client.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_counts_removed_keys(self, redis_client):
        await redis_client.set("a", "1")
        await redis_client.set("b", "2")

        assert await redis_client.delete("a", "b", "c") == 2
        assert await redis_client.delete() == 0

    @pytest.mark.asyncio
    async def test_exists(self, redis_client):
        await redis_client.set("a", "1")

        assert await redis_client.exists("a") is True
        assert await redis_client.exists("b") is False

    @pytest.mark.asyncio
    async def test_ttl_translation(self, redis_client):
        """Test the TTL contract: seconds left, -1 absent, -2 no expiry."""
        await redis_client.set("expiring", "1", ttl=120)
        await redis_client.set("forever", "1")

        assert await redis_client.ttl("expiring") == 120
        assert await redis_client.ttl("missing") == TTL_ABSENT == -1
        assert await redis_client.ttl("forever") == TTL_NO_EXPIRY == -2

    @pytest.mark.asyncio
    async def test_increment(self, redis_client):
        assert await redis_client.increment("counter") == 1
        assert await redis_client.increment("counter", 5) == 6

    @pytest.mark.asyncio
    async def test_set_operations(self, redis_client):
        assert await redis_client.sadd("tag:t", "a", "b") == 2
        assert await redis_client.smembers("tag:t") == {"a", "b"}

    @pytest.mark.asyncio
    async def test_scan_keys_matches_pattern(self, redis_client):
        await redis_client.set("doctors:list:all", "[]")
        await redis_client.set("doctors:list:x", "[]")
        await redis_client.set("user:u1:profile", "{}")

        keys = await redis_client.scan_keys("doctors:list:*")

        assert sorted(keys) == ["doctors:list:all", "doctors:list:x"]

    @pytest.mark.asyncio
    async def test_execute_pipeline_returns_replies(self, redis_client):
        def build(pipe):
            pipe.zadd("z", {"m": 1})
            pipe.zcard("z")

        assert await redis_client.execute_pipeline(build, None) == [1, 1]

    @pytest.mark.asyncio
    async def test_test_connection(self, redis_client):
        assert await redis_client.test_connection() is True

    @pytest.mark.asyncio
    async def test_health_check_with_injected_client(self, redis_client):
        health = await redis_client.health_check()

        assert health["status"] == "healthy"
        assert health["configured"] is True
        assert health["ping_latency_ms"] is not None


@pytest.mark.unit
class TestRedisClientFailOpen:
    """Test suite for fallback behavior."""

    @pytest.mark.asyncio
    async def test_unconfigured_returns_fallbacks(self, unconfigured_redis_client):
        """Test that an unconfigured adapter never raises and returns fallbacks."""
        client = unconfigured_redis_client

        assert client.is_configured() is False
        assert await client.get("k") is None
        assert await client.get("k", fallback="fb") == "fb"
        assert await client.set("k", "v") is False
        assert await client.delete("k") == 0
        assert await client.exists("k") is False
        assert await client.ttl("k") == TTL_ABSENT
        assert await client.increment("k") is None
        assert await client.smembers("k") == set()
        assert await client.scan_keys("*") == []
        assert await client.execute_pipeline(lambda pipe: None, "fallback") == "fallback"
        assert await client.test_connection() is False

    @pytest.mark.asyncio
    async def test_unconfigured_health_check(self, unconfigured_redis_client):
        health = await unconfigured_redis_client.health_check()

        assert health["status"] == "unconfigured"
        assert health["configured"] is False

    @pytest.mark.asyncio
    async def test_failing_store_returns_fallbacks(self, failing_redis_client, failing_redis):
        """Test that transport errors are absorbed into fallbacks."""
        client = failing_redis_client

        assert await client.get("k", fallback="fb") == "fb"
        assert await client.set("k", "v", ttl=5) is False
        assert await client.delete("k") == 0
        assert await client.ttl("k") == TTL_ABSENT
        assert await client.increment("k") is None
        assert await client.scan_keys("*") == []
        assert await client.execute_pipeline(lambda pipe: pipe.zcard("z"), None) is None
        assert failing_redis.calls >= 7

    @pytest.mark.asyncio
    async def test_failing_store_connection_test(self, failing_redis_client):
        assert await failing_redis_client.test_connection() is False

    @pytest.mark.asyncio
    async def test_unreachable_url_raises_on_connect(self, settings):
        """Test that an explicit connect to an unreachable store raises CacheConnectionError."""
        client = RedisClient(
            settings=settings.model_copy(
                update={"REDIS_URL": "redis://127.0.0.1:1", "REDIS_TOKEN": "t", "REDIS_SOCKET_CONNECT_TIMEOUT": 0.2}
            )
        )

        with pytest.raises(CacheConnectionError):
            await client.connect()

        # The fail-open path swallows the same failure
        assert await client.get("k", fallback="fb") == "fb"
