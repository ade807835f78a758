"""
Anomalies router: the monitor's alert feed.

Endpoints:
    GET  /anomalies                    List anomalies (open by default)
    GET  /anomalies/{id}               One anomaly with message and action
    POST /anomalies/sweep              Run all checks now
    POST /anomalies/{id}/acknowledge   Mark as seen by someone
    POST /anomalies/{id}/resolve       Close with notes
    POST /anomalies/{id}/dismiss       Close as auto-resolved
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from semspine.api.deps import OpContext
from semspine.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from semspine.api.schemas.domains import AnomalySchema, SweepSchema
from semspine.api.utils import _handle_error, _payload
from semspine.ops import anomalies as anomaly_ops
from semspine.ops.requests import AnomalyActionRequest, ListAnomaliesRequest

router = APIRouter(prefix="/anomalies")


class AcknowledgeBody(BaseModel):
    by: str | None = None


class ResolveBody(BaseModel):
    notes: str | None = None


@router.get("", response_model=PagedResponse[AnomalySchema])
def list_anomalies(
    ctx: OpContext,
    request: Request,
    state: str = Query("open", description="open | resolved | all"),
    severity: str | None = Query(None, description="info | warning | critical"),
    check_name: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    result = anomaly_ops.list_anomalies(
        ctx,
        ListAnomaliesRequest(state=state, severity=severity, check_name=check_name, limit=limit, offset=offset),
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    return PagedResponse(
        data=[AnomalySchema(**_payload(a)) for a in result.data or []],
        page=PageMeta(total=result.total, limit=result.limit, offset=result.offset, has_more=result.has_more),
        elapsed_ms=result.elapsed_ms,
    )


@router.post("/sweep", response_model=SuccessResponse[SweepSchema])
def run_sweep(ctx: OpContext, request: Request):
    result = anomaly_ops.run_sweep(ctx)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(
        data=SweepSchema(**_payload(result.data)),
        elapsed_ms=result.elapsed_ms,
        warnings=result.warnings,
    )


@router.get("/{anomaly_id}", response_model=SuccessResponse[AnomalySchema])
def get_anomaly(ctx: OpContext, anomaly_id: str, request: Request):
    result = anomaly_ops.get_anomaly(ctx, anomaly_id)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=AnomalySchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/{anomaly_id}/acknowledge", response_model=SuccessResponse[AnomalySchema])
def acknowledge(ctx: OpContext, anomaly_id: str, request: Request, body: AcknowledgeBody | None = None):
    body = body or AcknowledgeBody()
    result = anomaly_ops.acknowledge_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, by=body.by))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=AnomalySchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/{anomaly_id}/resolve", response_model=SuccessResponse[AnomalySchema])
def resolve(ctx: OpContext, anomaly_id: str, request: Request, body: ResolveBody | None = None):
    body = body or ResolveBody()
    result = anomaly_ops.resolve_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, notes=body.notes))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=AnomalySchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/{anomaly_id}/dismiss", response_model=SuccessResponse[AnomalySchema])
def dismiss(ctx: OpContext, anomaly_id: str, request: Request, body: ResolveBody | None = None):
    body = body or ResolveBody()
    result = anomaly_ops.dismiss_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, notes=body.notes))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=AnomalySchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)
