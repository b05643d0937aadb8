"""
Unit Tests for the Cache Flush Utility
"""

import pytest

from telehealth_cache.scripts.flush_cache import build_parser, flush, main


@pytest.mark.unit
class TestFlushCommand:
    """Test suite for the flush coroutine."""

    @pytest.mark.asyncio
    async def test_flush_pattern_deletes_matching_keys(self, redis_client, capsys):
        await redis_client.set("doctors:list:all", "[]")
        await redis_client.set("doctors:list:x", "[]")
        await redis_client.set("user:u1:profile", "{}")

        code = await flush(redis_client, pattern="doctors:list:*")

        assert code == 0
        assert await redis_client.exists("doctors:list:all") is False
        assert await redis_client.exists("user:u1:profile") is True
        assert "Deleted 2 key(s)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_flush_pattern_without_matches(self, redis_client, capsys):
        assert await flush(redis_client, pattern="nothing:*") == 0
        assert "No keys matched" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_flush_all(self, redis_client):
        await redis_client.set("a", "1")

        assert await flush(redis_client, flush_all=True) == 0
        assert await redis_client.exists("a") is False

    @pytest.mark.asyncio
    async def test_unconfigured_store_fails(self, unconfigured_redis_client):
        assert await flush(unconfigured_redis_client, pattern="*") == 1

    @pytest.mark.asyncio
    async def test_unreachable_store_fails(self, failing_redis_client):
        assert await flush(failing_redis_client, pattern="*") == 1


@pytest.mark.unit
class TestFlushCli:
    """Test suite for argument handling."""

    def test_pattern_and_all_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--pattern", "x", "--all"])

    def test_target_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_all_requires_confirmation(self, capsys):
        """Test that --all without --yes refuses before touching the store."""
        assert main(["--all"]) == 2
        assert "without --yes" in capsys.readouterr().out
