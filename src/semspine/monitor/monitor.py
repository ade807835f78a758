"""
Anomaly Monitor: periodic statistical sweep over pipeline telemetry.

Manifesto:
    The monitor watches; it never steers. It reads the same tables the
    jobs write (chunk telemetry, LLM usage) and records alerts in its own
    table. It takes no locks and needs no coordination with running jobs.

    Each check is isolated: a check that raises is logged and reported in
    the sweep result while the other checks still run. An alert for a
    check that already has an unresolved alert inside the dedup window is
    skipped. Unresolved alerts older than the auto-resolve age are closed
    with ``auto_resolved``. Nothing is ever deleted.

Architecture:
    ::

        sweep()
          ├─ throughput_drop     ← TelemetryRepository.hourly_words_processed
          ├─ error_spike         ← TelemetryRepository.job_error_ratios
          ├─ latency_degradation ← TelemetryRepository.hourly_llm_latency
          ├─ quota_warning       ← TelemetryRepository.tokens_used
          │     each: try check ─► candidate? ─► dedup ─► AnomalyRepository.record
          ├─ auto_resolve(older than auto_resolve_after_minutes)
          └─ commit ─► SweepResult

        MonitorLoop: IntervalLoop("anomaly-monitor", monitor.sweep, 300 s)

Tags:
    monitor, anomaly, z-score, iqr, telemetry, semantic-spine
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from semspine.core.logging import get_logger
from semspine.core.loop import IntervalLoop
from semspine.core.timestamps import utc_now
from semspine.monitor.checks import (
    check_error_spike,
    check_latency_degradation,
    check_quota,
    check_throughput_drop,
)
from semspine.monitor.config import MonitorConfig
from semspine.monitor.models import (
    ERROR_SPIKE,
    LATENCY_DEGRADATION,
    QUOTA_WARNING,
    THROUGHPUT_DROP,
    AnomalyCandidate,
    SweepResult,
)
from semspine.monitor.repository import AnomalyRepository
from semspine.monitor.telemetry import TelemetryRepository

logger = get_logger(__name__)

CheckFn = Callable[[datetime], AnomalyCandidate | None]


class AnomalyMonitor:
    """Run the four checks against telemetry and maintain the anomaly feed."""

    def __init__(
        self,
        telemetry: TelemetryRepository,
        anomalies: AnomalyRepository,
        *,
        config: MonitorConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.telemetry = telemetry
        self.anomalies = anomalies
        self.config = config or MonitorConfig()
        self.clock = clock

    def checks(self) -> dict[str, CheckFn]:
        cfg = self.config
        return {
            THROUGHPUT_DROP: lambda now: check_throughput_drop(
                self.telemetry.hourly_words_processed(now, cfg.throughput_lookback_hours), cfg
            ),
            ERROR_SPIKE: lambda now: check_error_spike(
                self.telemetry.job_error_ratios(now, cfg.error_window_hours), cfg
            ),
            LATENCY_DEGRADATION: lambda now: check_latency_degradation(
                self.telemetry.hourly_llm_latency(now, cfg.latency_lookback_hours), cfg
            ),
            QUOTA_WARNING: lambda now: check_quota(
                self.telemetry.tokens_used(now, cfg.quota_window_hours), cfg
            ),
        }

    def sweep(self) -> SweepResult:
        started = time.perf_counter()
        now = self.clock()
        result = SweepResult()
        dedup_since = now - timedelta(minutes=self.config.dedup_window_minutes)

        for name, check in self.checks().items():
            try:
                candidate = check(now)
                if candidate is None:
                    continue
                if self.anomalies.has_recent_unresolved(name, dedup_since):
                    result.skipped_duplicates.append(name)
                    logger.info("anomaly_duplicate_skipped", check_name=name)
                    continue
                detection = self.anomalies.record(candidate, now)
                result.anomalies.append(detection)
                logger.warning(
                    "anomaly_detected",
                    check_name=name,
                    severity=detection.severity.value,
                    expected=round(candidate.expected_value, 3),
                    actual=round(candidate.actual_value, 3),
                    deviation=round(candidate.deviation_score, 3),
                )
            except Exception as exc:
                result.errors[name] = str(exc)
                logger.exception("anomaly_check_failed", check_name=name, error=str(exc))

        try:
            older_than = now - timedelta(minutes=self.config.auto_resolve_after_minutes)
            result.auto_resolved = self.anomalies.auto_resolve(older_than, now)
        except Exception as exc:
            result.errors["auto_resolve"] = str(exc)
            logger.exception("anomaly_auto_resolve_failed", error=str(exc))

        self.anomalies.commit()
        result.duration_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.info(
            "anomaly_sweep_completed",
            raised=len(result.anomalies),
            duplicates=len(result.skipped_duplicates),
            auto_resolved=result.auto_resolved,
            errors=len(result.errors),
            duration_ms=result.duration_ms,
        )
        return result


class MonitorLoop:
    """Sweep every ``config.interval_seconds`` in a daemon thread."""

    def __init__(self, monitor: AnomalyMonitor, *, interval_seconds: float | None = None) -> None:
        self.monitor = monitor
        self._loop = IntervalLoop(
            "anomaly-monitor",
            monitor.sweep,
            interval_seconds=interval_seconds or monitor.config.interval_seconds,
            run_immediately=True,
        )

    def start(self) -> None:
        self._loop.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._loop.stop(timeout)

    def health(self) -> dict[str, Any]:
        return self._loop.health()
