"""
Cached AI flows.

The paid model is called only on a cache miss. Keys are content-addressed, so
the same image (and answers) from any user is served from cache for 30 days.
When a user id is given the AI_ANALYSIS quota is checked first.
"""

import math
from collections.abc import Awaitable, Callable
from typing import Any

from telehealth_cache.core.config.constants import Stage
from telehealth_cache.core.exceptions import RateLimitExceededError
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.domain.models import (
    DetectDiseaseNameInput,
    DetectDiseaseNameOutput,
    FinalEvaluationInput,
    FinalEvaluationOutput,
)
from telehealth_cache.infrastructure.cache.ai_cache import (
    detect_disease_cache_key,
    final_evaluation_cache_key,
    hash_image_data_uri,
    truncate_data_uri,
)
from telehealth_cache.infrastructure.cache.cache_manager import CacheManager
from telehealth_cache.infrastructure.cache.keys import CacheTTL
from telehealth_cache.rate_limiting.rate_limiter import RateLimitPresets, SlidingWindowRateLimiter

logger = get_logger(__name__)

DETECT_DISEASE_ENDPOINT = "ai-detect-disease"
FINAL_EVALUATION_ENDPOINT = "ai-final-evaluation"

DetectDiseaseFlow = Callable[[DetectDiseaseNameInput], Awaitable[Any]]
FinalEvaluationFlow = Callable[[FinalEvaluationInput], Awaitable[Any]]


class CachedAIFlows:
    """
    Usage:
        flows = CachedAIFlows(cache, limiter, detect_disease_name=call_model, final_evaluation=call_model2)
        result = await flows.detect_disease_name(DetectDiseaseNameInput(photo_data_uri=uri), user_id="u1")
    """

    def __init__(
        self,
        cache: CacheManager,
        limiter: SlidingWindowRateLimiter,
        detect_disease_name: DetectDiseaseFlow,
        final_evaluation: FinalEvaluationFlow,
    ):
        self._cache = cache
        self._limiter = limiter
        self._detect_disease_name = detect_disease_name
        self._final_evaluation = final_evaluation

    async def _enforce_quota(self, user_id: str | None, endpoint: str) -> None:
        if not user_id:
            return
        preset = RateLimitPresets.AI_ANALYSIS
        result = await self._limiter.check(
            limit=preset.limit, window=preset.window, identity=user_id, endpoint=endpoint
        )
        if not result.success:
            minutes = math.ceil((result.retry_after or preset.window) / 60)
            raise RateLimitExceededError(
                f"Rate limit exceeded. You can make {result.limit} AI analyses per hour. "
                f"Please try again in {minutes} minutes.",
                limit=result.limit,
                retry_after=result.retry_after or preset.window,
                details={"endpoint": endpoint},
            )

    async def detect_disease_name(
        self, data: DetectDiseaseNameInput, user_id: str | None = None
    ) -> DetectDiseaseNameOutput:
        await self._enforce_quota(user_id, DETECT_DISEASE_ENDPOINT)

        image_hash = hash_image_data_uri(data.photo_data_uri)
        log_stage(logger, Stage.AI_CACHE, "Detect disease lookup", image_hash=image_hash[:16])

        async def call_model() -> DetectDiseaseNameOutput:
            log_stage(
                logger, Stage.AI_CACHE, "AI cache miss, calling model",
                flow="detect-disease", image=truncate_data_uri(data.photo_data_uri),
            )
            return DetectDiseaseNameOutput.model_validate(await self._detect_disease_name(data))

        return await self._cache.get_or_compute(
            detect_disease_cache_key(image_hash),
            call_model,
            ttl=CacheTTL.AI_ANALYSIS,
            decoder=DetectDiseaseNameOutput.model_validate,
        )

    async def final_evaluation(
        self, data: FinalEvaluationInput, user_id: str | None = None
    ) -> FinalEvaluationOutput:
        await self._enforce_quota(user_id, FINAL_EVALUATION_ENDPOINT)

        image_hash = hash_image_data_uri(data.photo_data_uri)
        log_stage(logger, Stage.AI_CACHE, "Final evaluation lookup", image_hash=image_hash[:16])

        async def call_model() -> FinalEvaluationOutput:
            log_stage(
                logger, Stage.AI_CACHE, "AI cache miss, calling model",
                flow="final-eval", initial_condition=data.initial_condition,
                answers_length=len(data.user_answers),
            )
            return FinalEvaluationOutput.model_validate(await self._final_evaluation(data))

        return await self._cache.get_or_compute(
            final_evaluation_cache_key(image_hash, data.user_answers),
            call_model,
            ttl=CacheTTL.AI_ANALYSIS,
            decoder=FinalEvaluationOutput.model_validate,
        )
