"""
Unit Tests for UserProfileCache

Tests cached profile reads, invalidation on update and error propagation.
"""

import pytest

from telehealth_cache.core.exceptions import BackendError, BackendTransientError
from telehealth_cache.domain.models import ProfileUpdate, UserProfile
from telehealth_cache.domain.user_cache import UserProfileCache
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.keys import CacheKeys


@pytest.fixture
def user_cache(cache_manager, profile_repository, no_delay_retry):
    return UserProfileCache(cache_manager, profile_repository, no_delay_retry)


@pytest.mark.unit
class TestUserProfileCache:
    """Test suite for UserProfileCache."""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, user_cache, cache_manager, profile_repository):
        """Test that the backing store is queried once for repeated reads."""
        first = await user_cache.get_profile("u1")
        await cache_manager.wait_for_pending_writes()
        second = await user_cache.get_profile("u1")

        assert isinstance(second, UserProfile)
        assert first == second
        assert second.email == "pat@example.com"
        assert profile_repository.calls["fetch_user"] == 1

    @pytest.mark.asyncio
    async def test_profile_cached_for_one_hour(self, user_cache, cache_manager):
        await user_cache.get_profile("u1")
        await cache_manager.wait_for_pending_writes()

        assert await cache_manager.ttl(CacheKeys.user_profile("u1")) == 3600

    @pytest.mark.asyncio
    async def test_missing_user_returns_none_and_is_not_cached(
        self, user_cache, cache_manager, profile_repository
    ):
        assert await user_cache.get_profile("ghost") is None
        await cache_manager.wait_for_pending_writes()
        assert await user_cache.get_profile("ghost") is None

        assert profile_repository.calls["fetch_user"] == 2

    @pytest.mark.asyncio
    async def test_update_invalidates_cached_profile(self, user_cache, cache_manager, profile_repository):
        """Test that a read after an update sees the new value."""
        await user_cache.get_profile("u1")
        await cache_manager.wait_for_pending_writes()

        await user_cache.update_profile("u1", ProfileUpdate(display_name="Patricia"))
        profile = await user_cache.get_profile("u1")

        assert profile.display_name == "Patricia"
        assert profile_repository.updates == [("u1", {"display_name": "Patricia"})]
        assert profile_repository.calls["fetch_user"] == 2

    @pytest.mark.asyncio
    async def test_empty_update_is_skipped(self, user_cache, profile_repository):
        await user_cache.update_profile("u1", ProfileUpdate())

        assert "update_profile" not in profile_repository.calls

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, user_cache, profile_repository):
        profile_repository.failures = [BackendTransientError("upstream 503")]

        profile = await user_cache.get_profile("u1")

        assert profile.id == "u1"
        assert profile_repository.calls["fetch_user"] == 2

    @pytest.mark.asyncio
    async def test_permanent_errors_propagate(self, user_cache, cache_manager, profile_repository):
        """Test that a non-network error surfaces and nothing is cached."""
        profile_repository.failures = [BackendError("Backing store returned 403")]

        with pytest.raises(BackendError):
            await user_cache.get_profile("u1")

        await cache_manager.wait_for_pending_writes()
        assert await cache_manager.exists(CacheKeys.user_profile("u1")) is False
        assert profile_repository.calls["fetch_user"] == 1

    @pytest.mark.asyncio
    async def test_prefetch_warms_cache(self, user_cache, cache_manager):
        await user_cache.prefetch("u1")
        await cache_manager.wait_for_pending_writes()

        assert await cache_manager.exists(CacheKeys.user_profile("u1")) is True

    @pytest.mark.asyncio
    async def test_unavailable_cache_still_serves_profiles(
        self, unconfigured_redis_client, metrics, settings, profile_repository, no_delay_retry
    ):
        cache = CacheManager(redis_client=unconfigured_redis_client, metrics=metrics, settings=settings)
        user_cache = UserProfileCache(cache, profile_repository, no_delay_retry)

        assert (await user_cache.get_profile("u1")).id == "u1"
        assert (await user_cache.get_profile("u1")).id == "u1"
        assert profile_repository.calls["fetch_user"] == 2
