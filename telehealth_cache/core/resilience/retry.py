"""
Retry with exponential backoff (Tenacity).

Backing-store reads are retried only on network-level failures. Validation,
permission and not-found errors are surfaced immediately.

Default schedule: 2 retries after the first attempt, waiting 1s then 2s.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from telehealth_cache.core.config.constants import (
    MAX_RETRIES,
    RETRY_BACKOFF_FACTOR,
    RETRY_BASE_DELAY,
)
from telehealth_cache.core.config.settings import Settings
from telehealth_cache.core.exceptions import BackendTransientError

T = TypeVar("T")

std_logger = logging.getLogger(__name__)  # Tenacity needs std lib logger

_NETWORK_ERROR_MARKERS = (
    "network",
    "fetch failed",
    "connection refused",
    "connection reset",
    "timed out",
    "timeout",
    "econnrefused",
    "econnreset",
    "etimedout",
    "socketerror",
    "other side closed",
)


def is_network_error(exc: BaseException) -> bool:
    """True when ``exc`` looks like a transient transport failure."""
    if isinstance(
        exc,
        (BackendTransientError, httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError),
    ):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _NETWORK_ERROR_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry schedule: ``retries`` extra attempts, delays ``delay * backoff_factor**n``."""

    retries: int = MAX_RETRIES
    delay: float = RETRY_BASE_DELAY
    backoff_factor: float = RETRY_BACKOFF_FACTOR

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        backend = settings.backend
        return cls(
            retries=backend.BACKEND_RETRIES,
            delay=backend.BACKEND_RETRY_DELAY,
            backoff_factor=backend.BACKEND_RETRY_BACKOFF,
        )


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    retries: int = MAX_RETRIES,
    delay: float = RETRY_BASE_DELAY,
    backoff_factor: float = RETRY_BACKOFF_FACTOR,
    should_retry: Callable[[BaseException], bool] = is_network_error,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> T:
    """
    Run ``fn`` and retry it while ``should_retry`` accepts the raised error.

    The last error is re-raised once the attempts are exhausted or as soon as an
    error is not retryable.

    Usage:
        profile = await with_retry(lambda: repository.fetch_user(user_id))
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=delay, exp_base=backoff_factor, min=0),
        retry=retry_if_exception(should_retry),
        before_sleep=before_sleep_log(std_logger, logging.WARNING),
        reraise=True,
        sleep=sleep or asyncio.sleep,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
    raise AssertionError("unreachable")  # pragma: no cover


async def retry_with_policy(fn: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    return await with_retry(
        fn, retries=policy.retries, delay=policy.delay, backoff_factor=policy.backoff_factor
    )
