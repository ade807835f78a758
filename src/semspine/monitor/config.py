"""Thresholds and time constants of the anomaly monitor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MonitorConfig:
    interval_seconds: float = 300.0

    throughput_lookback_hours: int = 48
    throughput_warning_z: float = -2.0
    throughput_critical_z: float = -3.0

    error_window_hours: int = 24
    error_iqr_k: float = 1.5
    error_critical_ratio: float = 0.5

    latency_lookback_hours: int = 168
    latency_warning_z: float = 2.5
    latency_critical_z: float = 4.0

    quota_window_hours: int = 24
    daily_token_limit: int = 1_000_000
    quota_warning_ratio: float = 0.8
    quota_critical_ratio: float = 0.95

    min_points: int = 3
    min_stddev_ratio: float = 0.05
    dedup_window_minutes: int = 60
    auto_resolve_after_minutes: int = 120

    @classmethod
    def from_settings(cls, settings: Any) -> MonitorConfig:
        return cls(
            interval_seconds=settings.monitor_interval_seconds,
            throughput_lookback_hours=settings.throughput_lookback_hours,
            throughput_warning_z=settings.throughput_warning_z,
            throughput_critical_z=settings.throughput_critical_z,
            error_window_hours=settings.error_window_hours,
            error_iqr_k=settings.error_iqr_k,
            error_critical_ratio=settings.error_critical_ratio,
            latency_lookback_hours=settings.latency_lookback_hours,
            latency_warning_z=settings.latency_warning_z,
            latency_critical_z=settings.latency_critical_z,
            quota_window_hours=settings.quota_window_hours,
            daily_token_limit=settings.daily_token_limit,
            quota_warning_ratio=settings.quota_warning_ratio,
            quota_critical_ratio=settings.quota_critical_ratio,
            dedup_window_minutes=settings.dedup_window_minutes,
            auto_resolve_after_minutes=settings.auto_resolve_after_minutes,
            min_stddev_ratio=settings.min_stddev_ratio,
        )
