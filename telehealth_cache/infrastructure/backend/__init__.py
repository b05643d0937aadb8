from telehealth_cache.infrastructure.backend.profile_repository import (
    ProfileRepository,
    SupabaseProfileRepository,
    doctor_list_params,
)

__all__ = ["ProfileRepository", "SupabaseProfileRepository", "doctor_list_params"]
