"""
The four anomaly checks, as pure functions over telemetry series.

Every series is chronological: ``series[-1]`` is the current
observation, everything before it is history. A check returns an
:class:`AnomalyCandidate` or None; too little history or a zero mean
means "nothing to say" rather than an alert. A perfectly flat history
has its spread floored at a small share of its mean, so a flat series
stays quiet while a sudden break from it still registers.
"""

from __future__ import annotations

from collections.abc import Sequence

from semspine.monitor.config import MonitorConfig
from semspine.monitor.models import (
    ERROR_SPIKE,
    LATENCY_DEGRADATION,
    QUOTA_WARNING,
    THROUGHPUT_DROP,
    AnomalyCandidate,
    AnomalyType,
    Severity,
)
from semspine.monitor.stats import iqr_bounds, mean, stddev, zscore


def _spread(history: Sequence[float], avg: float, config: MonitorConfig) -> float:
    """Sample std-dev, floored at ``min_stddev_ratio * |mean|`` for flat histories."""
    return max(stddev(history, avg), config.min_stddev_ratio * abs(avg))


def check_throughput_drop(
    hourly_words: Sequence[float], config: MonitorConfig
) -> AnomalyCandidate | None:
    """Current hour far below the historical mean (negative z-score)."""
    if len(hourly_words) < config.min_points:
        return None
    current, history = hourly_words[-1], list(hourly_words[:-1])
    avg = mean(history)
    if avg <= 0:
        return None
    sd = _spread(history, avg, config)
    z = zscore(current, avg, sd)
    if z >= config.throughput_warning_z:
        return None
    severity = Severity.CRITICAL if z < config.throughput_critical_z else Severity.WARNING
    return AnomalyCandidate(
        check_name=THROUGHPUT_DROP,
        anomaly_type=AnomalyType.THROUGHPUT,
        severity=severity,
        expected_value=avg,
        actual_value=current,
        deviation_score=z,
        context={
            "historical_mean": avg,
            "std_dev": sd,
            "lookback_hours": config.throughput_lookback_hours,
        },
    )


def check_error_spike(
    error_ratios: Sequence[float], config: MonitorConfig
) -> AnomalyCandidate | None:
    """Current failed/processed ratio above ``Q3 + k * IQR`` of history."""
    if len(error_ratios) < config.min_points:
        return None
    current, history = error_ratios[-1], list(error_ratios[:-1])
    bounds = iqr_bounds(history)
    threshold = bounds.upper(config.error_iqr_k)
    if current <= threshold or current <= bounds.q3:
        return None
    severity = Severity.CRITICAL if current > config.error_critical_ratio else Severity.WARNING
    return AnomalyCandidate(
        check_name=ERROR_SPIKE,
        anomaly_type=AnomalyType.ERROR_RATE,
        severity=severity,
        expected_value=bounds.q3,
        actual_value=current,
        deviation_score=(current - bounds.q3) / (bounds.iqr or 0.01),
        context={
            "q1": bounds.q1,
            "q3": bounds.q3,
            "iqr": bounds.iqr,
            "threshold": threshold,
            "window_hours": config.error_window_hours,
        },
    )


def check_latency_degradation(
    hourly_latency_ms: Sequence[float], config: MonitorConfig
) -> AnomalyCandidate | None:
    """Current average LLM latency far above the historical mean."""
    series = [v for v in hourly_latency_ms if v > 0]
    if len(series) < config.min_points:
        return None
    current, history = series[-1], series[:-1]
    avg = mean(history)
    sd = _spread(history, avg, config)
    z = zscore(current, avg, sd)
    if z <= config.latency_warning_z:
        return None
    severity = Severity.CRITICAL if z > config.latency_critical_z else Severity.WARNING
    return AnomalyCandidate(
        check_name=LATENCY_DEGRADATION,
        anomaly_type=AnomalyType.LATENCY,
        severity=severity,
        expected_value=avg,
        actual_value=current,
        deviation_score=z,
        context={
            "historical_mean": avg,
            "std_dev": sd,
            "lookback_hours": config.latency_lookback_hours,
        },
    )


def check_quota(tokens_used: int, config: MonitorConfig) -> AnomalyCandidate | None:
    """Token usage in the window as a share of the daily limit."""
    if config.daily_token_limit <= 0:
        return None
    ratio = tokens_used / config.daily_token_limit
    if ratio <= config.quota_warning_ratio:
        return None
    severity = Severity.CRITICAL if ratio > config.quota_critical_ratio else Severity.WARNING
    return AnomalyCandidate(
        check_name=QUOTA_WARNING,
        anomaly_type=AnomalyType.QUOTA,
        severity=severity,
        expected_value=float(config.daily_token_limit),
        actual_value=float(tokens_used),
        deviation_score=ratio,
        context={
            "usage_percent": round(ratio * 100, 2),
            "daily_limit": config.daily_token_limit,
            "window_hours": config.quota_window_hours,
        },
    )
