"""
Diagnostic endpoints for the KV store, quota headers and cache counters.
"""

from datetime import datetime, timezone

import orjson
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from telehealth_cache.application.api.dependencies import CacheDep, MetricsDep, RedisDep
from telehealth_cache.core.logging.logger import get_logger
from telehealth_cache.rate_limiting.middleware import RateLimitMiddleware

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Diagnostics"])

TEST_KEY = "test:connection"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/redis/test")
async def redis_test(redis_client: RedisDep, metrics: MetricsDep):
    """Write, read back and delete a test value, then report cache counters."""
    if not await redis_client.test_connection():
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "KV store is not configured or connection failed",
                "hint": "Set REDIS_URL and REDIS_TOKEN in .env",
            },
        )

    written = {"message": "Hello from the telehealth cache!", "timestamp": _utcnow()}
    await redis_client.set(TEST_KEY, orjson.dumps(written).decode("utf-8"))
    raw = await redis_client.get(TEST_KEY)
    await redis_client.delete(TEST_KEY)

    if raw is None:
        logger.warning("KV store round-trip failed", key=TEST_KEY)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "KV store test failed"},
        )

    retrieved = orjson.loads(raw)
    snapshot = metrics.snapshot()
    return {
        "success": True,
        "message": "KV store is working correctly",
        "test": {"written": written, "retrieved": retrieved, "match": written == retrieved},
        "metrics": {
            "hits": snapshot["hits"],
            "misses": snapshot["misses"],
            "hitRate": f"{snapshot['hit_rate']:.2f}%",
        },
    }


async def _rate_limit_check(request: Request):
    return {
        "success": True,
        "message": "Rate limit test successful",
        "timestamp": _utcnow(),
        "tip": "Check the X-RateLimit-* headers in the response",
    }


@router.get("/test-rate-limit")
@RateLimitMiddleware.generous
async def test_rate_limit_get(request: Request):
    return await _rate_limit_check(request)


@router.post("/test-rate-limit")
@RateLimitMiddleware.generous
async def test_rate_limit_post(request: Request):
    return await _rate_limit_check(request)


@router.get("/cache/metrics")
async def cache_metrics(cache: CacheDep):
    return cache.stats()


@router.post("/cache/metrics/reset")
async def reset_cache_metrics(metrics: MetricsDep):
    metrics.reset()
    return {"success": True}
