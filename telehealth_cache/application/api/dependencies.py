"""
FastAPI dependencies.

Every service is created once in the application lifespan and stored on
``app.state``; these providers hand them to route handlers. Tests can place
their own instances on ``app.state`` before startup.
"""

from typing import Annotated

from fastapi import Depends, Request

from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.domain.doctor_cache import DoctorCache
from telehealth_cache.domain.user_cache import UserProfileCache
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.redis_client import RedisClient
from telehealth_cache.infrastructure.monitoring.metrics_collector import MetricsCollector


def get_redis(request: Request) -> RedisClient:
    return request.app.state.redis_client


def get_cache(request: Request) -> CacheManager:
    return request.app.state.cache_manager


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_user_cache(request: Request) -> UserProfileCache:
    return request.app.state.user_cache


def get_doctor_cache(request: Request) -> DoctorCache:
    return request.app.state.doctor_cache


SettingsDep = Annotated[Settings, Depends(get_settings)]
RedisDep = Annotated[RedisClient, Depends(get_redis)]
CacheDep = Annotated[CacheManager, Depends(get_cache)]
MetricsDep = Annotated[MetricsCollector, Depends(get_metrics)]
UserCacheDep = Annotated[UserProfileCache, Depends(get_user_cache)]
DoctorCacheDep = Annotated[DoctorCache, Depends(get_doctor_cache)]
