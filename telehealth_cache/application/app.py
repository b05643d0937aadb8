"""
FastAPI Application Entry Point

Wires the KV adapter, cache manager, rate limiter, backing-store repository
and domain caches into the app, plus request-ID correlation and exception
handlers.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from telehealth_cache.application.api.routes.diagnostics import router as diagnostics_router
from telehealth_cache.application.api.routes.health import router as health_router
from telehealth_cache.application.api.routes.profiles import router as profiles_router
from telehealth_cache.core.config.constants import HEADER_REQUEST_ID, HEADER_RETRY_AFTER, Stage
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.exceptions import (
    BackendError,
    BackendNotConfiguredError,
    CacheConnectionError,
    RateLimitExceededError,
    TelehealthCacheError,
)
from telehealth_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)
from telehealth_cache.core.resilience.retry import RetryPolicy
from telehealth_cache.domain.doctor_cache import DoctorCache
from telehealth_cache.domain.user_cache import UserProfileCache
from telehealth_cache.infrastructure.backend.profile_repository import SupabaseProfileRepository
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.redis_client import get_redis_client
from telehealth_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector
from telehealth_cache.rate_limiting.rate_limiter import SlidingWindowRateLimiter

logger = get_logger(__name__)


# ============================================================================
# Service wiring
# ============================================================================


def install_services(app: FastAPI, settings: Settings) -> None:
    """
    Put every service on ``app.state``.

    Anything already present (e.g. a test double) is kept.
    """
    state = app.state

    def ensure(name: str, factory):
        if getattr(state, name, None) is None:
            setattr(state, name, factory())
        return getattr(state, name)

    redis_client = ensure("redis_client", get_redis_client)
    metrics = ensure("metrics", get_metrics_collector)
    cache = ensure(
        "cache_manager",
        lambda: CacheManager(redis_client=redis_client, metrics=metrics, settings=settings),
    )
    ensure(
        "rate_limiter",
        lambda: SlidingWindowRateLimiter(redis_client=redis_client, metrics=metrics, settings=settings),
    )
    repository = ensure("profile_repository", lambda: SupabaseProfileRepository(settings=settings))
    retry_policy = RetryPolicy.from_settings(settings)
    ensure("user_cache", lambda: UserProfileCache(cache, repository, retry_policy))
    ensure("doctor_cache", lambda: DoctorCache(cache, repository, retry_policy))


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting telehealth cache service",
        stage=Stage.INITIALIZATION.value,
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    install_services(app, settings)
    redis_client = app.state.redis_client

    if redis_client.is_configured():
        try:
            await redis_client.connect()
        except CacheConnectionError as e:
            # Fail open: operations retry the connection lazily
            logger.warning("KV store unreachable at startup", stage=Stage.INITIALIZATION.value, error=e.message)

    try:
        yield
    finally:
        logger.info("Shutting down", stage=Stage.CLEANUP.value)
        await app.state.cache_manager.wait_for_pending_writes()
        close = getattr(app.state.profile_repository, "aclose", None)
        if close is not None:
            await close()
        await redis_client.disconnect()
        logger.info("Shutdown complete", stage=Stage.CLEANUP.value)


# ============================================================================
# Exception Handlers
# ============================================================================


def _request_id_headers() -> dict[str, str]:
    request_id = get_request_id()
    return {HEADER_REQUEST_ID: request_id} if request_id else {}


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError):
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded", "message": exc.message},
        headers={HEADER_RETRY_AFTER: str(exc.retry_after), **_request_id_headers()},
    )


async def backend_not_configured_handler(request: Request, exc: BackendNotConfiguredError):
    logger.error("Backing store not configured", path=request.url.path)
    return JSONResponse(status_code=503, content=exc.to_dict(), headers=_request_id_headers())


async def backend_error_handler(request: Request, exc: BackendError):
    logger.error("Backing store error", error=exc.message, error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(status_code=502, content=exc.to_dict(), headers=_request_id_headers())


async def project_error_handler(request: Request, exc: TelehealthCacheError):
    logger.error("Unhandled service error", error=exc.message, error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(status_code=500, content=exc.to_dict(), headers=_request_id_headers())


# ============================================================================
# Application Factory
# ============================================================================


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Caching and rate-limiting layer for the telehealth application",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Bind X-Request-ID (incoming or generated) for log correlation and echo it back."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(BackendNotConfiguredError, backend_not_configured_handler)
    app.add_exception_handler(BackendError, backend_error_handler)
    app.add_exception_handler(TelehealthCacheError, project_error_handler)

    app.include_router(health_router)
    app.include_router(diagnostics_router)
    app.include_router(profiles_router, prefix=settings.app.API_BASE_PATH)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.app.API_HOST, port=settings.app.API_PORT)
