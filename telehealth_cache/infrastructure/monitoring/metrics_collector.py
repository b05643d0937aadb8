"""
Metrics Collector with Prometheus Integration

Cache hit/miss counters, background write failures and rate-limit decisions.

Each collector owns its own CollectorRegistry instead of registering on the
process-global default, so tests can create, inspect and reset a collector
without leaking counts into one another.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Info,
    generate_latest,
)

from telehealth_cache.core.config.constants import RateLimitDecision, Stage
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.logging.logger import get_logger

logger = get_logger(__name__)


def _counter_total(counter: Counter) -> float:
    total = 0.0
    for metric in counter.collect():
        for sample in metric.samples:
            if sample.name.endswith("_total"):
                total += sample.value
    return total


class MetricsCollector:
    """
    Process-local, injectable metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.record_cache_hit("user")
        metrics.snapshot()  # {"hits": 1, "misses": 0, "total": 1, "hit_rate": 100.0}
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._build()
        logger.debug("Metrics collector initialized", stage=Stage.METRICS.value)

    def _build(self) -> None:
        self.registry = CollectorRegistry()

        self._cache_hits = Counter(
            "telehealth_cache_hits_total",
            "Total cache hits",
            ["namespace"],
            registry=self.registry,
        )
        self._cache_misses = Counter(
            "telehealth_cache_misses_total",
            "Total cache misses",
            ["namespace"],
            registry=self.registry,
        )
        self._write_failures = Counter(
            "telehealth_cache_write_failures_total",
            "Background cache writes that did not reach the store",
            ["namespace"],
            registry=self.registry,
        )
        self._rate_limit_decisions = Counter(
            "telehealth_rate_limit_decisions_total",
            "Rate limit checks by outcome",
            ["decision", "endpoint"],
            registry=self.registry,
        )
        app_info = Info("telehealth_cache_app", "Application information", registry=self.registry)
        app_info.info({
            "version": self.settings.app.APP_VERSION,
            "environment": self.settings.app.ENVIRONMENT,
            "app_name": self.settings.app.APP_NAME,
        })

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, namespace: str = "default") -> None:
        self._cache_hits.labels(namespace=namespace).inc()

    def record_cache_miss(self, namespace: str = "default") -> None:
        self._cache_misses.labels(namespace=namespace).inc()

    def record_write_failure(self, namespace: str = "default") -> None:
        self._write_failures.labels(namespace=namespace).inc()

    # =========================================================================
    # Rate Limiting Metrics
    # =========================================================================

    def record_rate_limit(self, decision: RateLimitDecision | str, endpoint: str) -> None:
        if isinstance(decision, RateLimitDecision):
            decision = decision.value
        self._rate_limit_decisions.labels(decision=decision, endpoint=endpoint).inc()

    def rate_limit_count(self, decision: RateLimitDecision | str) -> float:
        """Number of checks recorded with ``decision`` across all endpoints."""
        if isinstance(decision, RateLimitDecision):
            decision = decision.value
        total = 0.0
        for metric in self._rate_limit_decisions.collect():
            for sample in metric.samples:
                if sample.name.endswith("_total") and sample.labels.get("decision") == decision:
                    total += sample.value
        return total

    # =========================================================================
    # Snapshot / Reset / Export
    # =========================================================================

    def snapshot(self) -> dict[str, float]:
        """
        Hit/miss totals and hit rate.

        Returns:
            Dict with hits, misses, total, hit_rate (percentage, 0 when empty)
            and write_failures
        """
        hits = int(_counter_total(self._cache_hits))
        misses = int(_counter_total(self._cache_misses))
        total = hits + misses
        hit_rate = round(hits / total * 100, 2) if total else 0.0
        return {
            "hits": hits,
            "misses": misses,
            "total": total,
            "hit_rate": hit_rate,
            "write_failures": int(_counter_total(self._write_failures)),
        }

    def reset(self) -> None:
        """Drop every counter by rebuilding the registry."""
        self._build()
        logger.info("Metrics reset", stage=Stage.METRICS.value)

    def export(self) -> bytes:
        """Prometheus text exposition of this collector's registry."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
