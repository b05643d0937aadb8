"""
User profile cache.

Reads go through the cache-aside manager with a one-hour TTL; writes go to the
backing store first and then drop the cached entry so the next read refetches.
"""

from telehealth_cache.core.config.constants import Stage
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.core.resilience.retry import RetryPolicy, retry_with_policy
from telehealth_cache.domain.models import ProfileUpdate, UserProfile
from telehealth_cache.infrastructure.backend.profile_repository import ProfileRepository
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.keys import CacheKeys, CacheTTL

logger = get_logger(__name__)


class UserProfileCache:
    def __init__(
        self,
        cache: CacheManager,
        repository: ProfileRepository,
        retry_policy: RetryPolicy | None = None,
    ):
        self._cache = cache
        self._repository = repository
        self._retry_policy = retry_policy or RetryPolicy()

    async def get_profile(self, user_id: str) -> UserProfile | None:
        """
        Cached profile for ``user_id``; None if the user does not exist.

        Backing-store errors that survive the retry policy propagate.
        """

        async def fetch() -> UserProfile | None:
            row = await retry_with_policy(
                lambda: self._repository.fetch_user(user_id), self._retry_policy
            )
            return UserProfile.model_validate(row) if row else None

        return await self._cache.get_or_compute(
            CacheKeys.user_profile(user_id),
            fetch,
            ttl=CacheTTL.USER_PROFILE,
            decoder=UserProfile.model_validate,
        )

    async def invalidate(self, user_id: str) -> None:
        await self._cache.delete(CacheKeys.user_profile(user_id))

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> None:
        """Write ``update`` to the backing store, then invalidate the cached profile."""
        changes = update.changes()
        if not changes:
            return
        await self._repository.update_profile(user_id, changes)
        await self.invalidate(user_id)
        log_stage(logger, Stage.CACHE_INVALIDATION, "Profile updated", fields=sorted(changes))

    async def prefetch(self, user_id: str) -> None:
        """Warm the cache ahead of a request that will need the profile."""
        await self.get_profile(user_id)
