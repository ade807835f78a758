"""Anomaly entities and the human-facing text attached to each check."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AnomalyType(str, Enum):
    THROUGHPUT = "throughput"
    ERROR_RATE = "error_rate"
    LATENCY = "latency"
    QUOTA = "quota"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AnomalyState(str, Enum):
    """Filter for the anomaly feed."""

    OPEN = "open"
    RESOLVED = "resolved"
    ALL = "all"


THROUGHPUT_DROP = "throughput_drop"
ERROR_SPIKE = "error_spike"
LATENCY_DEGRADATION = "latency_degradation"
QUOTA_WARNING = "quota_warning"

CHECK_MESSAGES: dict[str, tuple[str, str]] = {
    THROUGHPUT_DROP: (
        "Taxa de processamento caiu significativamente",
        "Verificar o driver de jobs e a conexão com o gateway de LLM",
    ),
    ERROR_SPIKE: (
        "Taxa de erro acima do normal",
        "Verificar logs de erro e status dos serviços externos",
    ),
    LATENCY_DEGRADATION: (
        "Latência das chamadas ao LLM degradada",
        "Verificar carga do gateway e reduzir o tamanho dos lotes",
    ),
    QUOTA_WARNING: (
        "Quota de API próxima do limite",
        "Reduzir taxa de requisições ou aumentar quota",
    ),
}


@dataclass(frozen=True)
class AnomalyCandidate:
    """What a check reports before dedup and persistence."""

    check_name: str
    anomaly_type: AnomalyType
    severity: Severity
    expected_value: float
    actual_value: float
    deviation_score: float
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_name": self.check_name,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
            "deviation_score": self.deviation_score,
            "context": self.context,
        }


@dataclass(frozen=True)
class AnomalyDetection:
    """A persisted alert. Resolved rows stay as the audit trail."""

    id: str
    check_name: str
    anomaly_type: AnomalyType
    severity: Severity
    detected_at: str
    expected_value: float | None = None
    actual_value: float | None = None
    deviation_score: float | None = None
    context: dict[str, Any] = field(default_factory=dict)
    resolved_at: str | None = None
    acknowledged_at: str | None = None
    acknowledged_by: str | None = None
    resolution_notes: str | None = None
    auto_resolved: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    @property
    def message(self) -> str:
        return CHECK_MESSAGES.get(self.check_name, (self.check_name, ""))[0]

    @property
    def suggested_action(self) -> str:
        return CHECK_MESSAGES.get(self.check_name, ("", "Verificar sistema"))[1]

    @property
    def action_required(self) -> bool:
        return self.severity == Severity.CRITICAL and not self.is_resolved

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AnomalyDetection:
        context = row.get("context") or "{}"
        if isinstance(context, str):
            context = json.loads(context)
        return cls(
            id=row["id"],
            check_name=row["check_name"],
            anomaly_type=AnomalyType(row["anomaly_type"]),
            severity=Severity(row["severity"]),
            detected_at=row["detected_at"],
            expected_value=row.get("expected_value"),
            actual_value=row.get("actual_value"),
            deviation_score=row.get("deviation_score"),
            context=context,
            resolved_at=row.get("resolved_at"),
            acknowledged_at=row.get("acknowledged_at"),
            acknowledged_by=row.get("acknowledged_by"),
            resolution_notes=row.get("resolution_notes"),
            auto_resolved=bool(row.get("auto_resolved")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "check_name": self.check_name,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "detected_at": self.detected_at,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
            "deviation_score": self.deviation_score,
            "context": self.context,
            "resolved_at": self.resolved_at,
            "acknowledged_at": self.acknowledged_at,
            "acknowledged_by": self.acknowledged_by,
            "resolution_notes": self.resolution_notes,
            "auto_resolved": self.auto_resolved,
            "message": self.message,
            "suggested_action": self.suggested_action,
            "action_required": self.action_required,
        }


@dataclass
class SweepResult:
    """Outcome of one monitor sweep."""

    anomalies: list[AnomalyDetection] = field(default_factory=list)
    skipped_duplicates: list[str] = field(default_factory=list)
    auto_resolved: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def detected(self) -> int:
        return len(self.anomalies) + len(self.skipped_duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "anomalies": [a.to_dict() for a in self.anomalies],
            "detected": self.detected,
            "skipped_duplicates": self.skipped_duplicates,
            "auto_resolved": self.auto_resolved,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        }
