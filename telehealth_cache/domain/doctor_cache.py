"""
Doctor listing and doctor profile cache.

Each filter combination gets its own entry (the key encodes the canonical
filter set), and every listing entry is registered under the
``doctors:list`` tag so one call can drop all of them.
"""

from pydantic import TypeAdapter

from telehealth_cache.core.resilience.retry import RetryPolicy, retry_with_policy
from telehealth_cache.domain.models import DoctorListFilters, DoctorProfile
from telehealth_cache.infrastructure.backend.profile_repository import ProfileRepository
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.keys import CacheKeys, CacheTTL

_doctor_list = TypeAdapter(list[DoctorProfile])


class DoctorCache:
    def __init__(
        self,
        cache: CacheManager,
        repository: ProfileRepository,
        retry_policy: RetryPolicy | None = None,
    ):
        self._cache = cache
        self._repository = repository
        self._retry_policy = retry_policy or RetryPolicy()

    async def get_doctor_list(self, filters: DoctorListFilters | None = None) -> list[DoctorProfile]:
        if filters is not None and filters.is_empty():
            filters = None

        async def fetch() -> list[DoctorProfile]:
            rows = await retry_with_policy(
                lambda: self._repository.list_doctors(filters), self._retry_policy
            )
            return _doctor_list.validate_python(rows or [])

        return await self._cache.get_or_compute(
            CacheKeys.doctor_list(filters),
            fetch,
            ttl=CacheTTL.DOCTOR_LIST,
            decoder=_doctor_list.validate_python,
            tags=(CacheKeys.DOCTOR_LIST_TAG,),
        )

    async def get_doctor_profile(self, doctor_id: str) -> DoctorProfile | None:
        async def fetch() -> DoctorProfile | None:
            row = await retry_with_policy(
                lambda: self._repository.fetch_doctor(doctor_id), self._retry_policy
            )
            return DoctorProfile.model_validate(row) if row else None

        return await self._cache.get_or_compute(
            CacheKeys.doctor_profile(doctor_id),
            fetch,
            ttl=CacheTTL.USER_PROFILE,
            decoder=DoctorProfile.model_validate,
        )

    async def invalidate_list(self) -> int:
        """
        Drop every cached listing, filtered or not.

        Returns:
            Number of listing entries deleted through the tag index
        """
        deleted = await self._cache.invalidate_tag(CacheKeys.DOCTOR_LIST_TAG)
        # The unfiltered listing goes even if its tag registration was lost
        await self._cache.delete(CacheKeys.doctor_list())
        return deleted

    async def invalidate_doctor(self, doctor_id: str) -> None:
        """A doctor changed: drop their profile and every listing that may include them."""
        await self._cache.delete(CacheKeys.doctor_profile(doctor_id))
        await self.invalidate_list()
