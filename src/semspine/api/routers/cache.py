"""
Cache router: inspection, curation and maintenance passes.

Endpoints:
    GET  /cache/stats               Entry counts, sources, top tags, metrics
    GET  /cache/entries             Entries for one tag code
    POST /cache/curate              Pin a human classification
    POST /cache/evict               Delete expired automated entries
    POST /cache/reclassify-common   Map frequent NC words (analyze | execute)
    GET  /cache/nc-suggestions      Read-only suggestions for NC words
    POST /cache/refine              Level-1 → child refinement via the LLM
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from semspine.api.deps import OpContext
from semspine.api.schemas.common import SuccessResponse
from semspine.api.schemas.domains import CacheEntrySchema, EvictSchema
from semspine.api.utils import _handle_error, _payload
from semspine.ops import cache as cache_ops
from semspine.ops.requests import (
    CurateRequest,
    ListCacheRequest,
    ReclassifyCommonRequest,
    RefineRequest,
    SuggestionsRequest,
)

router = APIRouter(prefix="/cache")


class CurateBody(BaseModel):
    word: str = Field(min_length=1)
    context_hash: str = Field(min_length=1)
    tag_code: str = Field(min_length=2)
    curator: str = Field(min_length=1)
    notes: str | None = None


class ReclassifyBody(BaseModel):
    mode: str = Field(default="analyze", description="analyze | execute")


class RefineBody(BaseModel):
    limit: int = Field(default=200, ge=1, le=5000)
    allow_cross_family: bool = False
    dry_run: bool = False


@router.get("/stats", response_model=SuccessResponse[dict[str, Any]])
def cache_stats(ctx: OpContext, request: Request):
    result = cache_ops.cache_stats(ctx)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=result.data, elapsed_ms=result.elapsed_ms)


@router.get("/entries", response_model=SuccessResponse[list[CacheEntrySchema]])
def list_entries(
    ctx: OpContext,
    request: Request,
    tag_code: str = Query(..., min_length=2),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    result = cache_ops.list_cache_entries(ctx, ListCacheRequest(tag_code=tag_code, limit=limit, offset=offset))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(
        data=[CacheEntrySchema(**_payload(e)) for e in result.data or []],
        elapsed_ms=result.elapsed_ms,
    )


@router.post("/curate", response_model=SuccessResponse[CacheEntrySchema])
def curate(ctx: OpContext, body: CurateBody, request: Request):
    result = cache_ops.curate_entry(
        ctx,
        CurateRequest(
            word=body.word,
            context_hash=body.context_hash,
            tag_code=body.tag_code,
            curator=body.curator,
            notes=body.notes,
        ),
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=CacheEntrySchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/evict", response_model=SuccessResponse[EvictSchema])
def evict(ctx: OpContext, request: Request):
    result = cache_ops.evict_expired(ctx)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=EvictSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/reclassify-common", response_model=SuccessResponse[dict[str, Any]])
def reclassify_common(ctx: OpContext, request: Request, body: ReclassifyBody | None = None):
    body = body or ReclassifyBody()
    result = cache_ops.reclassify_common(ctx, ReclassifyCommonRequest(mode=body.mode))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=_payload(result.data), elapsed_ms=result.elapsed_ms)


@router.get("/nc-suggestions", response_model=SuccessResponse[dict[str, Any]])
def nc_suggestions(ctx: OpContext, request: Request, limit: int = Query(20, ge=1, le=200)):
    result = cache_ops.nc_suggestions(ctx, SuggestionsRequest(limit=limit))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=_payload(result.data), elapsed_ms=result.elapsed_ms, warnings=result.warnings)


@router.post("/refine", response_model=SuccessResponse[dict[str, Any]])
def refine(ctx: OpContext, request: Request, body: RefineBody | None = None):
    body = body or RefineBody()
    ctx.dry_run = body.dry_run
    result = cache_ops.refine_top_level(
        ctx, RefineRequest(limit=body.limit, allow_cross_family=body.allow_cross_family)
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=_payload(result.data), elapsed_ms=result.elapsed_ms)
