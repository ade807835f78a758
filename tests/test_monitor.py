"""Tests for semspine.monitor: statistics, the four checks and the sweep."""

import math
from datetime import UTC, datetime

import pytest
from conftest import FakeClock

from semspine.core.errors import ConflictError, NotFoundError
from semspine.core.timestamps import to_iso8601, utc_now
from semspine.jobs.repository import JobRepository
from semspine.llm.protocol import TokenUsage
from semspine.llm.usage import LLMUsageRepository
from semspine.monitor.checks import (
    check_error_spike,
    check_latency_degradation,
    check_quota,
    check_throughput_drop,
)
from semspine.monitor.config import MonitorConfig
from semspine.monitor.models import AnomalyState, Severity
from semspine.monitor.monitor import AnomalyMonitor
from semspine.monitor.repository import AnomalyRepository
from semspine.monitor.stats import iqr_bounds, mean, stddev, zscore
from semspine.monitor.telemetry import TelemetryRepository

CONFIG = MonitorConfig()


class TestStats:
    def test_mean_and_stddev(self):
        values = [2, 4, 4, 4, 5, 5, 7, 9]
        assert mean(values) == 5
        assert stddev(values) == pytest.approx(math.sqrt(32 / 7))

    def test_degenerate_input(self):
        assert mean([]) == 0.0
        assert stddev([3.0]) == 0.0
        assert zscore(10, 5, 0) == 0.0

    def test_iqr_bounds(self):
        bounds = iqr_bounds([0.02, 0.0, 0.01, 0.01])
        assert (bounds.q1, bounds.q3) == (0.01, 0.02)
        assert bounds.upper(1.5) == pytest.approx(0.035)
        assert iqr_bounds([]).iqr == 0.0


class TestThroughputDrop:
    def test_collapse_is_critical(self):
        candidate = check_throughput_drop([10, 10, 10, 10, 1], CONFIG)
        assert candidate.severity == Severity.CRITICAL
        assert candidate.expected_value == 10
        assert candidate.actual_value == 1

    def test_moderate_drop_is_warning(self):
        candidate = check_throughput_drop([100, 110, 90, 105, 80], CONFIG)
        assert candidate.severity == Severity.WARNING
        assert candidate.deviation_score == pytest.approx(-2.488, abs=0.01)

    def test_flat_series_is_quiet(self):
        assert check_throughput_drop([10, 10, 10, 10, 10], CONFIG) is None

    def test_increase_is_quiet(self):
        assert check_throughput_drop([10, 12, 11, 50], CONFIG) is None

    def test_needs_history(self):
        assert check_throughput_drop([10, 1], CONFIG) is None
        assert check_throughput_drop([0, 0, 0, 0], CONFIG) is None


class TestErrorSpike:
    HISTORY = [0.0, 0.01, 0.02, 0.01]

    def test_critical_above_half(self):
        candidate = check_error_spike([*self.HISTORY, 0.6], CONFIG)
        assert candidate.severity == Severity.CRITICAL
        assert candidate.expected_value == 0.02
        assert candidate.context["threshold"] == pytest.approx(0.035)

    def test_warning(self):
        assert check_error_spike([*self.HISTORY, 0.2], CONFIG).severity == Severity.WARNING

    def test_within_fence(self):
        assert check_error_spike([*self.HISTORY, 0.03], CONFIG) is None

    def test_all_zero_history(self):
        assert check_error_spike([0.0, 0.0, 0.0, 0.0], CONFIG) is None


class TestLatencyDegradation:
    def test_critical(self):
        candidate = check_latency_degradation([100, 110, 90, 105, 500], CONFIG)
        assert candidate.severity == Severity.CRITICAL

    def test_warning(self):
        candidate = check_latency_degradation([100, 110, 90, 105, 127], CONFIG)
        assert candidate.severity == Severity.WARNING

    def test_faster_is_quiet(self):
        assert check_latency_degradation([100, 110, 90, 105, 50], CONFIG) is None

    def test_zero_hours_ignored(self):
        assert check_latency_degradation([0, 0, 100, 500], CONFIG) is None


class TestQuota:
    @pytest.mark.parametrize(
        "used, severity",
        [(500_000, None), (850_000, Severity.WARNING), (960_000, Severity.CRITICAL)],
    )
    def test_thresholds(self, used, severity):
        candidate = check_quota(used, CONFIG)
        assert (candidate.severity if candidate else None) == severity

    def test_disabled_without_limit(self):
        assert check_quota(10**9, MonitorConfig(daily_token_limit=0)) is None

    def test_context(self):
        candidate = check_quota(850_000, CONFIG)
        assert candidate.context["usage_percent"] == 85.0
        assert candidate.to_dict()["check_name"] == "quota_warning"


class TestTelemetry:
    NOW = datetime(2026, 3, 2, 12, 30, tzinfo=UTC)

    def _chunk(self, jobs, job_id, hour, minute, words, failed=0):
        jobs.record_chunk(
            job_id,
            words_processed=words,
            words_failed=failed,
            cached_words=0,
            duration_ms=10.0,
            recorded_at=to_iso8601(datetime(2026, 3, 2, hour, minute, tzinfo=UTC)),
        )

    def test_hourly_words_zero_filled(self, conn):
        jobs = JobRepository(conn)
        self._chunk(jobs, "j1", 9, 10, 5)
        self._chunk(jobs, "j1", 11, 20, 7)
        self._chunk(jobs, "j1", 12, 10, 100)
        telemetry = TelemetryRepository(conn)
        assert telemetry.hourly_words_processed(self.NOW, 4) == [5.0, 0.0, 7.0]

    def test_hourly_words_empty(self, conn):
        assert TelemetryRepository(conn).hourly_words_processed(self.NOW, 4) == []

    def test_error_ratios_by_last_activity(self, conn):
        jobs = JobRepository(conn)
        self._chunk(jobs, "late", 11, 0, 10, failed=5)
        self._chunk(jobs, "early", 10, 0, 10, failed=1)
        telemetry = TelemetryRepository(conn)
        assert telemetry.job_error_ratios(self.NOW, 24) == [0.1, 0.5]

    def test_tokens_used(self, conn):
        usage = LLMUsageRepository(conn)
        usage.record(model="m", purpose="t", usage=TokenUsage.of(30, 12), latency_ms=5, success=True)
        usage.record(model="m", purpose="t", usage=None, latency_ms=5, success=False, error="x")
        assert TelemetryRepository(conn).tokens_used(utc_now(), 24) == 42

    def test_tokens_used_empty(self, conn):
        assert TelemetryRepository(conn).tokens_used(utc_now(), 24) == 0


def _monitor(conn, clock, telemetry=None, **config):
    return AnomalyMonitor(
        telemetry or TelemetryRepository(conn),
        AnomalyRepository(conn),
        config=MonitorConfig(**config),
        clock=clock,
    )


def _spend(conn, tokens):
    LLMUsageRepository(conn).record(
        model="m", purpose="cascade_batch", usage=TokenUsage.of(tokens, 0), latency_ms=100.0, success=True
    )


class TestSweep:
    def test_quiet_without_telemetry(self, conn):
        result = _monitor(conn, FakeClock(utc_now())).sweep()
        assert result.anomalies == []
        assert result.errors == {}

    def test_dedup_and_auto_resolve(self, conn):
        _spend(conn, 99)
        clock = FakeClock(utc_now())
        monitor = _monitor(conn, clock, daily_token_limit=100)

        first = monitor.sweep()
        assert [a.check_name for a in first.anomalies] == ["quota_warning"]
        assert first.anomalies[0].severity == Severity.CRITICAL
        assert first.anomalies[0].action_required

        second = monitor.sweep()
        assert second.anomalies == []
        assert second.skipped_duplicates == ["quota_warning"]

        clock.advance(hours=3)
        third = monitor.sweep()
        assert len(third.anomalies) == 1
        assert third.auto_resolved == 1

        feed = AnomalyRepository(conn)
        open_items, open_total = feed.list_anomalies(state=AnomalyState.OPEN)
        assert open_total == 1
        assert open_items[0].id == third.anomalies[0].id
        resolved, _ = feed.list_anomalies(state=AnomalyState.RESOLVED)
        assert resolved[0].auto_resolved
        assert feed.list_anomalies(state=AnomalyState.ALL)[1] == 2

    def test_failing_check_is_isolated(self, conn):
        class BrokenLatency(TelemetryRepository):
            def hourly_llm_latency(self, now, hours):
                raise RuntimeError("telemetry offline")

        _spend(conn, 99)
        result = _monitor(conn, FakeClock(utc_now()), BrokenLatency(conn), daily_token_limit=100).sweep()
        assert result.errors == {"latency_degradation": "telemetry offline"}
        assert [a.check_name for a in result.anomalies] == ["quota_warning"]


class TestFeedActions:
    def _raise_one(self, conn, clock):
        _spend(conn, 99)
        return _monitor(conn, clock, daily_token_limit=100).sweep().anomalies[0]

    def test_acknowledge(self, conn):
        clock = FakeClock(utc_now())
        anomaly = self._raise_one(conn, clock)
        acked = AnomalyRepository(conn).acknowledge(anomaly.id, "ana", clock())
        assert acked.acknowledged_by == "ana"
        assert acked.acknowledged_at is not None
        assert not acked.is_resolved

    def test_resolve_once(self, conn):
        clock = FakeClock(utc_now())
        anomaly = self._raise_one(conn, clock)
        feed = AnomalyRepository(conn)
        resolved = feed.resolve(anomaly.id, clock(), notes="quota aumentada")
        assert resolved.is_resolved
        assert resolved.resolution_notes == "quota aumentada"
        assert not resolved.auto_resolved
        assert not resolved.action_required
        with pytest.raises(ConflictError):
            feed.resolve(anomaly.id, clock())

    def test_dismiss(self, conn):
        clock = FakeClock(utc_now())
        anomaly = self._raise_one(conn, clock)
        dismissed = AnomalyRepository(conn).dismiss(anomaly.id, clock())
        assert dismissed.auto_resolved
        assert dismissed.resolution_notes == "dismissed"

    def test_unknown(self, conn):
        feed = AnomalyRepository(conn)
        with pytest.raises(NotFoundError):
            feed.acknowledge("nope", "ana", utc_now())
        with pytest.raises(NotFoundError):
            feed.resolve("nope", utc_now())

    def test_message_and_action(self, conn):
        anomaly = self._raise_one(conn, FakeClock(utc_now()))
        data = anomaly.to_dict()
        assert data["message"] == "Quota de API próxima do limite"
        assert data["suggested_action"]
        assert data["context"]["daily_limit"] == 100
