"""Anomaly detection over pipeline telemetry."""

from semspine.monitor.config import MonitorConfig
from semspine.monitor.models import (
    AnomalyCandidate,
    AnomalyDetection,
    AnomalyState,
    AnomalyType,
    Severity,
    SweepResult,
)
from semspine.monitor.monitor import AnomalyMonitor, MonitorLoop
from semspine.monitor.repository import AnomalyRepository
from semspine.monitor.telemetry import TelemetryRepository

__all__ = [
    "AnomalyCandidate",
    "AnomalyDetection",
    "AnomalyMonitor",
    "AnomalyRepository",
    "AnomalyState",
    "AnomalyType",
    "MonitorConfig",
    "MonitorLoop",
    "Severity",
    "SweepResult",
    "TelemetryRepository",
]
