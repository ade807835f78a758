"""
Job operations: corpus intake and the annotation job lifecycle.

Wraps :class:`semspine.jobs.orchestrator.JobOrchestrator`. Resume and
cancel of a terminal job fail with ``CONFLICT``.
"""

from __future__ import annotations

from typing import Any

from semspine.core.errors import ValidationError
from semspine.core.logging import get_logger
from semspine.jobs.corpus import CorpusRepository, Song
from semspine.jobs.models import AnnotationJob, JobStatus, SongProgress
from semspine.jobs.repository import JobRepository
from semspine.ops.context import OperationContext
from semspine.ops.requests import AddSongRequest, JobRequest, ListJobsRequest, StartJobRequest
from semspine.ops.responses import JobDetail, TickSummary
from semspine.ops.result import OperationResult, PagedResult, fail_from_error, start_timer
from semspine.ops.services import orchestrator

logger = get_logger(__name__)


# ------------------------------------------------------------------ #
# Corpus
# ------------------------------------------------------------------ #


def add_song(ctx: OperationContext, request: AddSongRequest) -> OperationResult[Song]:
    timer = start_timer()
    if ctx.dry_run:
        return OperationResult.ok(
            Song(id="", target_id=request.target_id, title=request.title, lyrics=request.lyrics),
            elapsed_ms=timer.elapsed_ms,
        )
    try:
        song = CorpusRepository(ctx.conn).add_song(
            request.target_id, request.title, request.lyrics, position=request.position
        )
        return OperationResult.ok(song, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def list_targets(ctx: OperationContext) -> OperationResult[list[dict[str, Any]]]:
    timer = start_timer()
    try:
        return OperationResult.ok(CorpusRepository(ctx.conn).targets(), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


# ------------------------------------------------------------------ #
# Lifecycle
# ------------------------------------------------------------------ #


def start_job(ctx: OperationContext, request: StartJobRequest) -> OperationResult[AnnotationJob]:
    timer = start_timer()
    try:
        job = orchestrator(ctx).start_job(request.target_id, chunk_size=request.chunk_size)
        return OperationResult.ok(job, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def list_jobs(ctx: OperationContext, request: ListJobsRequest) -> PagedResult[AnnotationJob]:
    timer = start_timer()
    try:
        status = _parse_status(request.status)
        items, total = JobRepository(ctx.conn).list_jobs(
            status=status,
            target_id=request.target_id,
            limit=request.limit,
            offset=request.offset,
        )
        return PagedResult.from_items(
            items, total, limit=request.limit, offset=request.offset, elapsed_ms=timer.elapsed_ms
        )
    except Exception as exc:
        failed = _failed(exc, timer.elapsed_ms)
        return PagedResult(success=False, error=failed.error, elapsed_ms=timer.elapsed_ms)


def get_job(ctx: OperationContext, request: JobRequest) -> OperationResult[JobDetail]:
    timer = start_timer()
    try:
        orch = orchestrator(ctx)
        job = orch.get_job(request.job_id)
        progress = orch.progress(request.job_id)
        return OperationResult.ok(
            JobDetail(job=job.to_dict(), progress=progress.to_dict()),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def job_songs(ctx: OperationContext, request: JobRequest) -> OperationResult[list[SongProgress]]:
    timer = start_timer()
    try:
        songs = orchestrator(ctx).song_progress(request.job_id)
        return OperationResult.ok(songs, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def tick_job(ctx: OperationContext, request: JobRequest) -> OperationResult[TickSummary]:
    """Process one chunk of the job in the caller's thread."""
    timer = start_timer()
    try:
        tick = orchestrator(ctx).tick(request.job_id)
        return OperationResult.ok(
            TickSummary(tick=tick.to_dict(), job=tick.job.to_dict() if tick.job else None),
            warnings=[tick.error] if tick.error else None,
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def pause_job(ctx: OperationContext, request: JobRequest) -> OperationResult[AnnotationJob]:
    return _lifecycle(ctx, request, "pause_job")


def resume_job(ctx: OperationContext, request: JobRequest) -> OperationResult[AnnotationJob]:
    return _lifecycle(ctx, request, "resume_job")


def cancel_job(ctx: OperationContext, request: JobRequest) -> OperationResult[AnnotationJob]:
    return _lifecycle(ctx, request, "cancel_job")


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _lifecycle(ctx: OperationContext, request: JobRequest, action: str) -> OperationResult[AnnotationJob]:
    timer = start_timer()
    if ctx.dry_run:
        try:
            job = orchestrator(ctx).get_job(request.job_id)
        except Exception as exc:
            return _failed(exc, timer.elapsed_ms)
        return OperationResult.ok(job, metadata={"dry_run": True, "action": action}, elapsed_ms=timer.elapsed_ms)
    try:
        job = getattr(orchestrator(ctx), action)(request.job_id)
        return OperationResult.ok(job, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def _parse_status(value: str | None) -> JobStatus | None:
    if value is None:
        return None
    try:
        return JobStatus(value)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in JobStatus)
        raise ValidationError(f"Unknown status {value!r}; expected one of {allowed}", field="status") from exc


def _failed(exc: Exception, elapsed_ms: float) -> OperationResult:
    result = fail_from_error(exc, elapsed_ms=elapsed_ms)
    if result.error.code == "INTERNAL":
        logger.exception("op_failed", error=str(exc))
    return result
