"""
Unit Tests for Monitoring Infrastructure

Tests the Prometheus-backed metrics collector.
"""

import pytest

from telehealth_cache.core.config.constants import RateLimitDecision
from telehealth_cache.infrastructure.monitoring.metrics_collector import MetricsCollector


@pytest.mark.unit
class TestMetricsCollector:
    """Test suite for MetricsCollector."""

    def test_empty_snapshot(self, metrics):
        assert metrics.snapshot() == {
            "hits": 0,
            "misses": 0,
            "total": 0,
            "hit_rate": 0.0,
            "write_failures": 0,
        }

    def test_hit_rate_percentage(self, metrics):
        """Test that hit_rate is a percentage rounded to two places."""
        metrics.record_cache_hit("user")
        metrics.record_cache_hit("doctors")
        metrics.record_cache_miss("user")

        snapshot = metrics.snapshot()

        assert snapshot["hits"] == 2
        assert snapshot["misses"] == 1
        assert snapshot["total"] == 3
        assert snapshot["hit_rate"] == 66.67

    def test_reset_clears_counters(self, metrics):
        metrics.record_cache_hit()
        metrics.record_write_failure()

        metrics.reset()

        assert metrics.snapshot()["hits"] == 0
        assert metrics.snapshot()["write_failures"] == 0

    def test_collectors_are_isolated(self, settings):
        """Test that two collectors do not share counts."""
        first = MetricsCollector(settings)
        second = MetricsCollector(settings)

        first.record_cache_hit()

        assert first.snapshot()["hits"] == 1
        assert second.snapshot()["hits"] == 0

    def test_rate_limit_decisions(self, metrics):
        metrics.record_rate_limit(RateLimitDecision.ADMITTED, "/ai")
        metrics.record_rate_limit(RateLimitDecision.ADMITTED, "/other")
        metrics.record_rate_limit("rejected", "/ai")

        assert metrics.rate_limit_count(RateLimitDecision.ADMITTED) == 2
        assert metrics.rate_limit_count(RateLimitDecision.REJECTED) == 1
        assert metrics.rate_limit_count(RateLimitDecision.FAIL_OPEN) == 0

    def test_export_prometheus_text(self, metrics):
        metrics.record_cache_hit("user")

        body = metrics.export().decode()

        assert 'telehealth_cache_hits_total{namespace="user"} 1.0' in body
        assert metrics.get_content_type().startswith("text/plain")
