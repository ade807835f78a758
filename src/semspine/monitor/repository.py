"""Persistence for anomaly detections. Rows are resolved, never deleted."""

from __future__ import annotations

import json
from datetime import datetime

from semspine.core.errors import ConflictError, NotFoundError
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.timestamps import generate_ulid, to_iso8601
from semspine.monitor.models import (
    AnomalyCandidate,
    AnomalyDetection,
    AnomalyState,
    Severity,
)

_ANOMALIES = TABLES["anomalies"]


class AnomalyRepository(BaseRepository):
    """Anomaly feed storage.

    ``record`` and ``auto_resolve`` leave the commit to the sweep;
    the feed actions (acknowledge, resolve, dismiss) commit themselves.
    """

    def record(self, candidate: AnomalyCandidate, detected_at: datetime) -> AnomalyDetection:
        detection = AnomalyDetection(
            id=generate_ulid(),
            check_name=candidate.check_name,
            anomaly_type=candidate.anomaly_type,
            severity=candidate.severity,
            detected_at=to_iso8601(detected_at),
            expected_value=candidate.expected_value,
            actual_value=candidate.actual_value,
            deviation_score=candidate.deviation_score,
            context=dict(candidate.context),
        )
        self.insert(
            _ANOMALIES,
            {
                "id": detection.id,
                "check_name": detection.check_name,
                "anomaly_type": detection.anomaly_type.value,
                "severity": detection.severity.value,
                "expected_value": detection.expected_value,
                "actual_value": detection.actual_value,
                "deviation_score": detection.deviation_score,
                "context": json.dumps(detection.context, default=str),
                "detected_at": detection.detected_at,
                "auto_resolved": 0,
            },
        )
        return detection

    def get(self, anomaly_id: str) -> AnomalyDetection | None:
        row = self.query_one(f"SELECT * FROM {_ANOMALIES} WHERE id = {self.ph(1)}", (anomaly_id,))
        return AnomalyDetection.from_row(row) if row else None

    def require(self, anomaly_id: str) -> AnomalyDetection:
        detection = self.get(anomaly_id)
        if detection is None:
            raise NotFoundError(f"Anomaly not found: {anomaly_id}")
        return detection

    def list_anomalies(
        self,
        *,
        state: AnomalyState = AnomalyState.OPEN,
        severity: Severity | None = None,
        check_name: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AnomalyDetection], int]:
        conditions: list[str] = []
        params: list[object] = []
        if state == AnomalyState.OPEN:
            conditions.append("resolved_at IS NULL")
        elif state == AnomalyState.RESOLVED:
            conditions.append("resolved_at IS NOT NULL")
        if severity is not None:
            conditions.append(f"severity = {self.ph(1)}")
            params.append(severity.value)
        if check_name is not None:
            conditions.append(f"check_name = {self.ph(1)}")
            params.append(check_name)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.scalar(f"SELECT COUNT(*) FROM {_ANOMALIES} {where}", tuple(params), default=0)
        rows = self.query(
            f"SELECT * FROM {_ANOMALIES} {where} ORDER BY detected_at DESC, id DESC "
            f"LIMIT {self.ph(1)} OFFSET {self.ph(1)}",
            (*params, limit, offset),
        )
        return [AnomalyDetection.from_row(r) for r in rows], int(total)

    def has_recent_unresolved(self, check_name: str, since: datetime) -> bool:
        count = self.scalar(
            f"SELECT COUNT(*) FROM {_ANOMALIES} WHERE check_name = {self.ph(1)} "
            f"AND resolved_at IS NULL AND detected_at >= {self.ph(1)}",
            (check_name, to_iso8601(since)),
            default=0,
        )
        return int(count) > 0

    def auto_resolve(self, older_than: datetime, now: datetime) -> int:
        return self.execute_rowcount(
            f"UPDATE {_ANOMALIES} SET resolved_at = {self.ph(1)}, auto_resolved = 1 "
            f"WHERE resolved_at IS NULL AND detected_at < {self.ph(1)}",
            (to_iso8601(now), to_iso8601(older_than)),
        )

    # -- feed actions ------------------------------------------------------

    def acknowledge(self, anomaly_id: str, by: str, now: datetime) -> AnomalyDetection:
        self.require(anomaly_id)
        self.execute(
            f"UPDATE {_ANOMALIES} SET acknowledged_at = {self.ph(1)}, acknowledged_by = {self.ph(1)} "
            f"WHERE id = {self.ph(1)}",
            (to_iso8601(now), by, anomaly_id),
        )
        self.commit()
        return self.require(anomaly_id)

    def resolve(
        self,
        anomaly_id: str,
        now: datetime,
        *,
        notes: str | None = None,
        auto: bool = False,
    ) -> AnomalyDetection:
        affected = self.execute_rowcount(
            f"UPDATE {_ANOMALIES} SET resolved_at = {self.ph(1)}, resolution_notes = {self.ph(1)}, "
            f"auto_resolved = {self.ph(1)} WHERE id = {self.ph(1)} AND resolved_at IS NULL",
            (to_iso8601(now), notes, 1 if auto else 0, anomaly_id),
        )
        if affected == 0:
            existing = self.require(anomaly_id)
            raise ConflictError(
                f"Anomaly {anomaly_id} already resolved at {existing.resolved_at}"
            ).with_context(check_name=existing.check_name)
        self.commit()
        return self.require(anomaly_id)

    def dismiss(self, anomaly_id: str, now: datetime, *, notes: str | None = None) -> AnomalyDetection:
        return self.resolve(anomaly_id, now, notes=notes or "dismissed", auto=True)
