"""
Rate-limit decorators for FastAPI routes.

The decorated route must accept a ``request: Request`` argument. On rejection
the route body never runs; on admission the quota headers are attached to its
response.

Usage:
    @router.post("/analyze")
    @RateLimitMiddleware.ai_analysis
    async def analyze(request: Request, body: AnalyzeRequest):
        ...

    @router.get("/things")
    @with_rate_limit(limit=30, window=60)
    async def list_things(request: Request):
        ...
"""

import functools
import hashlib
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address

from telehealth_cache.core.config.constants import (
    HEADER_FORWARDED_FOR,
    HEADER_REAL_IP,
    HEADER_RETRY_AFTER,
    HEADER_USER_ID,
    Stage,
)
from telehealth_cache.core.config.settings import get_settings
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.rate_limiting.rate_limiter import (
    RateLimitPreset,
    RateLimitPresets,
    RateLimitResult,
    SlidingWindowRateLimiter,
    get_rate_limiter,
)

logger = get_logger(__name__)

IdentifierFunc = Callable[[Request], str | Awaitable[str]]
LimitExceededHandler = Callable[[Request, RateLimitResult], Response | Awaitable[Response]]


def get_request_identity(request: Request) -> str:
    """
    Identity used as the quota bucket.

    Priority: authenticated user (request.state.user_id) > X-User-ID header >
    hashed bearer token > client address (X-Forwarded-For first hop,
    X-Real-IP, socket peer).
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"

    user_id = request.headers.get(HEADER_USER_ID)
    if user_id:
        return f"user:{user_id}"

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        # Never key on the raw credential
        token_hash = hashlib.sha256(auth_header.encode()).hexdigest()[:16]
        return f"token:{token_hash}"

    forwarded = request.headers.get(HEADER_FORWARDED_FOR)
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    real_ip = request.headers.get(HEADER_REAL_IP)
    if real_ip:
        return f"ip:{real_ip.strip()}"

    return f"ip:{get_remote_address(request)}"


def default_limit_exceeded_response(
    request: Request,
    result: RateLimitResult,
    error: str = "Rate limit exceeded",
    message: str = "Too many requests. Please try again later.",
) -> JSONResponse:
    """429 with ``{error, message}`` and a Retry-After header."""
    headers = result.headers()
    headers[HEADER_RETRY_AFTER] = str(result.retry_after or 0)
    return JSONResponse(status_code=429, content={"error": error, "message": message}, headers=headers)


def route_bucket(request: Request) -> str:
    """
    Quota bucket for a request: method plus the matched route template.

    Path parameters stay unexpanded, so every id under one route shares a
    quota and the metrics label set stays bounded.
    """
    path = getattr(request.scope.get("route"), "path", None) or request.url.path
    return f"{request.method}:{path}"


def _find_request(args: tuple, kwargs: dict[str, Any]) -> Request:
    for value in (*kwargs.values(), *args):
        if isinstance(value, Request):
            return value
    raise TypeError("Rate-limited routes must declare a `request: Request` parameter")


def _resolve_limiter(request: Request) -> SlidingWindowRateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    return limiter or get_rate_limiter()


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def with_rate_limit(
    limit: int | None = None,
    window: int | None = None,
    preset: RateLimitPreset | None = None,
    identifier: IdentifierFunc | None = None,
    on_limit_exceeded: LimitExceededHandler | None = None,
    endpoint: str | None = None,
):
    """
    Decorate a route with a sliding-window quota.

    Args:
        limit: Requests per window (overrides the preset)
        window: Window length in seconds (overrides the preset)
        preset: Named quota; defaults to the configured default quota
        identifier: Custom identity function, sync or async
        on_limit_exceeded: Custom rejection response builder, sync or async
        endpoint: Quota bucket name; defaults to the method and route template
    """

    def decorator(handler: Callable[..., Any]):
        @functools.wraps(handler)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)

            if preset is not None:
                base = preset
            else:
                settings = get_settings().rate_limit
                base = RateLimitPreset(
                    limit=settings.RATE_LIMIT_DEFAULT_LIMIT, window=settings.RATE_LIMIT_DEFAULT_WINDOW
                )
            effective_limit = limit if limit is not None else base.limit
            effective_window = window if window is not None else base.window

            identity = await _maybe_await((identifier or get_request_identity)(request))
            bucket = endpoint or route_bucket(request)

            result = await _resolve_limiter(request).check(
                limit=effective_limit, window=effective_window, identity=identity, endpoint=bucket,
            )

            if not result.success:
                log_stage(
                    logger, Stage.RATE_LIMITING, "Request rejected", level="info",
                    endpoint=bucket, method=request.method, retry_after=result.retry_after,
                )
                if on_limit_exceeded is not None:
                    return await _maybe_await(on_limit_exceeded(request, result))
                return default_limit_exceeded_response(request, result)

            response = await _maybe_await(handler(*args, **kwargs))
            if not isinstance(response, Response):
                response = JSONResponse(content=jsonable_encoder(response))

            for name, value in result.headers().items():
                response.headers[name] = value
            return response

        return wrapper

    return decorator


def _preset_rejection(error: str, message: str) -> LimitExceededHandler:
    def handler(request: Request, result: RateLimitResult) -> JSONResponse:
        return default_limit_exceeded_response(request, result, error=error, message=message)

    return handler


class RateLimitMiddleware:
    """Preset decorators per traffic class."""

    @staticmethod
    def ai_analysis(handler: Callable[..., Any]):
        """10 requests per hour."""
        return with_rate_limit(
            preset=RateLimitPresets.AI_ANALYSIS,
            on_limit_exceeded=_preset_rejection(
                "AI Analysis rate limit exceeded",
                "You have reached the maximum number of AI analyses per hour. Please try again later.",
            ),
        )(handler)

    @staticmethod
    def file_upload(handler: Callable[..., Any]):
        """20 uploads per hour."""
        return with_rate_limit(
            preset=RateLimitPresets.FILE_UPLOAD,
            on_limit_exceeded=_preset_rejection(
                "Upload rate limit exceeded",
                "You have uploaded too many files. Please try again later.",
            ),
        )(handler)

    @staticmethod
    def strict(handler: Callable[..., Any]):
        """5 requests per minute, for sensitive mutations."""
        return with_rate_limit(preset=RateLimitPresets.STRICT)(handler)

    @staticmethod
    def generous(handler: Callable[..., Any]):
        """1000 requests per hour, for reads."""
        return with_rate_limit(preset=RateLimitPresets.GENEROUS)(handler)

    @staticmethod
    def api_default(handler: Callable[..., Any]):
        """100 requests per minute."""
        return with_rate_limit(preset=RateLimitPresets.API_DEFAULT)(handler)
