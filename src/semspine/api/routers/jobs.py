"""
Jobs router: corpus intake and the annotation job lifecycle.

Endpoints:
    POST /songs                 Add a song to a target's corpus
    GET  /targets               Targets with their song counts
    POST /jobs                  Start a job for a target
    GET  /jobs                  List jobs
    GET  /jobs/{id}             Job record plus derived progress
    GET  /jobs/{id}/songs       Per-song progress
    POST /jobs/{id}/tick        Process one chunk now
    POST /jobs/{id}/pause       Pause a runnable job
    POST /jobs/{id}/resume      Resume a paused or stalled job
    POST /jobs/{id}/cancel      Cancel a non-terminal job

Tags:
    semantic-spine, api, jobs, corpus
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from semspine.api.deps import OpContext
from semspine.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from semspine.api.schemas.domains import (
    JobDetailSchema,
    JobSchema,
    SongProgressSchema,
    SongSchema,
    TickSchema,
)
from semspine.api.utils import _handle_error, _payload
from semspine.ops import jobs as job_ops
from semspine.ops.requests import AddSongRequest, JobRequest, ListJobsRequest, StartJobRequest

router = APIRouter()


class StartJobBody(BaseModel):
    target_id: str = Field(min_length=1, description="Artist or corpus id")
    chunk_size: int | None = Field(default=None, ge=1, le=10_000, description="Words per chunk")


class AddSongBody(BaseModel):
    target_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    lyrics: str = Field(default="")
    position: int = Field(default=0, ge=0)


@router.post("/songs", response_model=SuccessResponse[SongSchema], status_code=201)
def add_song(ctx: OpContext, body: AddSongBody, request: Request):
    result = job_ops.add_song(
        ctx,
        AddSongRequest(target_id=body.target_id, title=body.title, lyrics=body.lyrics, position=body.position),
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    song = result.data
    return SuccessResponse(
        data=SongSchema(id=song.id, target_id=song.target_id, title=song.title, position=song.position),
        elapsed_ms=result.elapsed_ms,
    )


@router.get("/targets", response_model=SuccessResponse[list[dict[str, Any]]])
def list_targets(ctx: OpContext, request: Request):
    result = job_ops.list_targets(ctx)
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=result.data or [], elapsed_ms=result.elapsed_ms)


@router.post("/jobs", response_model=SuccessResponse[JobSchema], status_code=201)
def start_job(ctx: OpContext, body: StartJobBody, request: Request):
    """Start annotating every word of ``target_id``.

    409 if the target already has an active job (the problem detail
    names it); 400 if the target has no words.
    """
    result = job_ops.start_job(ctx, StartJobRequest(target_id=body.target_id, chunk_size=body.chunk_size))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=JobSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.get("/jobs", response_model=PagedResponse[JobSchema])
def list_jobs(
    ctx: OpContext,
    request: Request,
    status: str | None = Query(None, description="Filter by status"),
    target_id: str | None = Query(None, description="Filter by target"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    result = job_ops.list_jobs(
        ctx, ListJobsRequest(status=status, target_id=target_id, limit=limit, offset=offset)
    )
    if not result.success:
        return _handle_error(result, str(request.url))
    items = [JobSchema(**_payload(j)) for j in result.data or []]
    return PagedResponse(
        data=items,
        page=PageMeta(total=result.total, limit=result.limit, offset=result.offset, has_more=result.has_more),
        elapsed_ms=result.elapsed_ms,
    )


@router.get("/jobs/{job_id}", response_model=SuccessResponse[JobDetailSchema])
def get_job(ctx: OpContext, job_id: str, request: Request):
    result = job_ops.get_job(ctx, JobRequest(job_id))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=JobDetailSchema(**result.data.to_dict()), elapsed_ms=result.elapsed_ms)


@router.get("/jobs/{job_id}/songs", response_model=SuccessResponse[list[SongProgressSchema]])
def job_songs(ctx: OpContext, job_id: str, request: Request):
    result = job_ops.job_songs(ctx, JobRequest(job_id))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(
        data=[SongProgressSchema(**s.to_dict()) for s in result.data or []],
        elapsed_ms=result.elapsed_ms,
    )


@router.post("/jobs/{job_id}/tick", response_model=SuccessResponse[TickSchema])
def tick_job(ctx: OpContext, job_id: str, request: Request):
    result = job_ops.tick_job(ctx, JobRequest(job_id))
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(
        data=TickSchema(**result.data.to_dict()),
        elapsed_ms=result.elapsed_ms,
        warnings=result.warnings,
    )


def _lifecycle_response(result, request: Request):
    if not result.success:
        return _handle_error(result, str(request.url))
    return SuccessResponse(data=JobSchema(**_payload(result.data)), elapsed_ms=result.elapsed_ms)


@router.post("/jobs/{job_id}/pause", response_model=SuccessResponse[JobSchema])
def pause_job(ctx: OpContext, job_id: str, request: Request):
    return _lifecycle_response(job_ops.pause_job(ctx, JobRequest(job_id)), request)


@router.post("/jobs/{job_id}/resume", response_model=SuccessResponse[JobSchema])
def resume_job(ctx: OpContext, job_id: str, request: Request):
    return _lifecycle_response(job_ops.resume_job(ctx, JobRequest(job_id)), request)


@router.post("/jobs/{job_id}/cancel", response_model=SuccessResponse[JobSchema])
def cancel_job(ctx: OpContext, job_id: str, request: Request):
    return _lifecycle_response(job_ops.cancel_job(ctx, JobRequest(job_id)), request)
