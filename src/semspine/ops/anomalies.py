"""
Anomaly operations: run a sweep and work the anomaly feed.

Wraps :mod:`semspine.monitor`. The feed is never deleted from; dismiss is
a resolve flagged ``auto_resolved``.
"""

from __future__ import annotations

from semspine.core.errors import ValidationError
from semspine.core.logging import get_logger
from semspine.monitor.models import AnomalyDetection, AnomalyState, Severity, SweepResult
from semspine.monitor.repository import AnomalyRepository
from semspine.ops.context import OperationContext
from semspine.ops.requests import AnomalyActionRequest, ListAnomaliesRequest
from semspine.ops.result import OperationResult, PagedResult, fail_from_error, start_timer
from semspine.ops.services import anomaly_monitor

logger = get_logger(__name__)


def _anomaly_repo(ctx: OperationContext) -> AnomalyRepository:
    return AnomalyRepository(ctx.conn)


def list_anomalies(ctx: OperationContext, request: ListAnomaliesRequest) -> PagedResult[AnomalyDetection]:
    """List anomalies, newest first, filtered by state, severity and check."""
    timer = start_timer()
    try:
        items, total = _anomaly_repo(ctx).list_anomalies(
            state=_enum(AnomalyState, request.state, "state"),
            severity=_enum(Severity, request.severity, "severity") if request.severity else None,
            check_name=request.check_name,
            limit=request.limit,
            offset=request.offset,
        )
        return PagedResult.from_items(
            items, total, limit=request.limit, offset=request.offset, elapsed_ms=timer.elapsed_ms
        )
    except Exception as exc:
        failed = _failed(exc, timer.elapsed_ms)
        return PagedResult(success=False, error=failed.error, elapsed_ms=timer.elapsed_ms)


def get_anomaly(ctx: OperationContext, anomaly_id: str) -> OperationResult[AnomalyDetection]:
    timer = start_timer()
    try:
        return OperationResult.ok(_anomaly_repo(ctx).require(anomaly_id), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def run_sweep(ctx: OperationContext) -> OperationResult[SweepResult]:
    timer = start_timer()
    try:
        result = anomaly_monitor(ctx).sweep()
        warnings = [f"{name}: {error}" for name, error in result.errors.items()]
        return OperationResult.ok(result, warnings=warnings, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def acknowledge_anomaly(ctx: OperationContext, request: AnomalyActionRequest) -> OperationResult[AnomalyDetection]:
    timer = start_timer()
    try:
        by = request.by or ctx.user
        if not by:
            raise ValidationError("acknowledged_by is required", field="by")
        detection = _anomaly_repo(ctx).acknowledge(request.anomaly_id, by, ctx.clock())
        return OperationResult.ok(detection, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def resolve_anomaly(ctx: OperationContext, request: AnomalyActionRequest) -> OperationResult[AnomalyDetection]:
    timer = start_timer()
    try:
        detection = _anomaly_repo(ctx).resolve(request.anomaly_id, ctx.clock(), notes=request.notes)
        return OperationResult.ok(detection, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def dismiss_anomaly(ctx: OperationContext, request: AnomalyActionRequest) -> OperationResult[AnomalyDetection]:
    timer = start_timer()
    try:
        detection = _anomaly_repo(ctx).dismiss(request.anomaly_id, ctx.clock(), notes=request.notes)
        return OperationResult.ok(detection, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def _enum(enum_cls, value: str, field: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Unknown {field} {value!r}; expected one of {allowed}", field=field) from exc


def _failed(exc: Exception, elapsed_ms: float) -> OperationResult:
    result = fail_from_error(exc, elapsed_ms=elapsed_ms)
    if result.error.code == "INTERNAL":
        logger.exception("op_failed", error=str(exc))
    return result
