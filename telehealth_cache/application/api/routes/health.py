"""
Health and metrics endpoints.

``/health`` reports the KV store state. A store outage is reported as
"degraded" with status 200: the service keeps answering, just uncached.
"""

from fastapi import APIRouter, Response

from telehealth_cache.application.api.dependencies import CacheDep, MetricsDep, SettingsDep

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(cache: CacheDep, settings: SettingsDep):
    report = await cache.health_check()
    return {
        **report,
        "service": settings.app.APP_NAME,
        "version": settings.app.APP_VERSION,
    }


@router.get("/metrics")
async def metrics(collector: MetricsDep):
    """Prometheus text exposition."""
    return Response(content=collector.export(), media_type=collector.get_content_type())
