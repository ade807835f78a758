"""
Tagsets router: browse the taxonomy and run the curator workflow.

Endpoints:
    GET  /tagsets                 List tagsets (filter by status)
    GET  /tagsets/{code}          One tagset
    POST /tagsets                 Propose a tagset (lands as pending)
    POST /tagsets/{code}/approve  pending → active
    POST /tagsets/{code}/reject   pending → rejected
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from semspine.api.deps import OpContext
from semspine.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from semspine.api.schemas.domains import TagsetSchema
from semspine.api.utils import _handle_error, _payload
from semspine.ops import tagsets as tagset_ops
from semspine.ops.requests import ListTagsetsRequest, ProposeTagsetRequest, ReviewTagsetRequest

router = APIRouter(prefix="/tagsets")


class ProposeBody(BaseModel):
    code: str = Field(description="Dotted code, e.g. NA.FAU.AVE")
    name: str
    description: str | None = None
    parent_code: str | None = None
    examples: list[str] = Field(default_factory=list)
    created_by: str | None = None


class ReviewBody(BaseModel):
    reviewer: str | None = None
    reason: str | None = Field(default=None, description="Rejection reason")


@router.get("", response_model=PagedResponse[TagsetSchema])
def list_tagsets(
    ctx: OpContext,
    request: Request,
    status: str | None = Query(None, description="pending | active | rejected"),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    result = tagset_ops.list_tagsets(ctx, ListTagsetsRequest(status=status, limit=limit, offset=offset))
    if not result.success:
        return _handle_error(result, str(request.url))
    return PagedResponse(
        data=[TagsetSchema(**_payload(t)) for t in result.data or []],
        page=PageMeta(total=result.total, limit=result.limit, offset=result.offset, has_more=result.has_more),
        elapsed_ms=result.elapsed_ms,
    )


@router.get("/{code}", response_model=SuccessResponse[TagsetSchema])
def get_tagset(ctx: OpContext, code: str, request: Request):
    result = tagset_ops.get_tagset(ctx, code)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=TagsetSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("", response_model=SuccessResponse[TagsetSchema], status_code=201)
def propose_tagset(ctx: OpContext, body: ProposeBody, request: Request):
    result = tagset_ops.propose_tagset(
        ctx,
        ProposeTagsetRequest(
            code=body.code,
            name=body.name,
            description=body.description,
            parent_code=body.parent_code,
            examples=body.examples,
            created_by=body.created_by,
        ),
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=TagsetSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/{code}/approve", response_model=SuccessResponse[TagsetSchema])
def approve_tagset(ctx: OpContext, code: str, request: Request, body: ReviewBody | None = None):
    body = body or ReviewBody()
    result = tagset_ops.approve_tagset(ctx, ReviewTagsetRequest(code=code, reviewer=body.reviewer))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=TagsetSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/{code}/reject", response_model=SuccessResponse[TagsetSchema])
def reject_tagset(ctx: OpContext, code: str, request: Request, body: ReviewBody | None = None):
    body = body or ReviewBody()
    result = tagset_ops.reject_tagset(
        ctx, ReviewTagsetRequest(code=code, reviewer=body.reviewer, reason=body.reason)
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=TagsetSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)
