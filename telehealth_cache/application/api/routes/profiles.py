"""
Profile and doctor listing endpoints, served through the domain caches.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request

from telehealth_cache.application.api.dependencies import DoctorCacheDep, UserCacheDep
from telehealth_cache.domain.models import DoctorListFilters, ProfileUpdate
from telehealth_cache.rate_limiting.middleware import RateLimitMiddleware

router = APIRouter(tags=["Profiles"])


@router.get("/users/{user_id}/profile")
@RateLimitMiddleware.api_default
async def get_user_profile(request: Request, user_id: str, user_cache: UserCacheDep):
    profile = await user_cache.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.patch("/users/{user_id}/profile")
@RateLimitMiddleware.strict
async def update_user_profile(
    request: Request,
    user_id: str,
    update: ProfileUpdate,
    user_cache: UserCacheDep,
    doctor_cache: DoctorCacheDep,
):
    await user_cache.update_profile(user_id, update)
    profile = await user_cache.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    if profile.role == "doctor":
        await doctor_cache.invalidate_doctor(user_id)
    return profile


@router.get("/doctors")
@RateLimitMiddleware.api_default
async def list_doctors(
    request: Request,
    doctor_cache: DoctorCacheDep,
    specialization: Annotated[str | None, Query()] = None,
    verified: Annotated[bool | None, Query()] = None,
    min_fee: Annotated[float | None, Query(ge=0)] = None,
    max_fee: Annotated[float | None, Query(ge=0)] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
):
    filters = DoctorListFilters(
        specialization=specialization,
        verified=verified,
        min_fee=min_fee,
        max_fee=max_fee,
        search=search,
    )
    return await doctor_cache.get_doctor_list(filters)


@router.get("/doctors/{doctor_id}")
@RateLimitMiddleware.api_default
async def get_doctor(request: Request, doctor_id: str, doctor_cache: DoctorCacheDep):
    doctor = await doctor_cache.get_doctor_profile(doctor_id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor
