"""
Job Orchestrator: lifecycle of resumable annotation jobs.

Manifesto:
    A job annotates every word of a target's corpus exactly once, in a
    fixed order, and survives crashes. All progress lives in the job row;
    a new process picks a job up from its persisted cursor. Chunks are
    committed with a compare-and-set, so two drivers ticking the same job
    can never move its cursor backwards or count a chunk twice.

    Errors are split in two. Store hiccups (a locked database, a dropped
    connection) leave the job untouched and the next tick retries. Errors
    that make forward progress impossible (the corpus changed shape under
    the job, or every word failed for ``max_failed_chunks`` chunks in a
    row) move the job to ``erro``.

Architecture:
    ::

        start_job(target) ─► iniciado
                                │ tick
                                ▼
            ┌────────────► processando ──(cursor past end)──► concluido
            │ resume            │  │
            │                   │  └── corpus changed / repeated failure ─► erro
            └──── pausado ◄─────┘ pause
                        any non-terminal ── cancel ──► cancelado

        tick(job_id):
            load job ─► skip unless runnable
            load corpus ─► shape changed? ─► erro
            advance_chunk ─► compare_and_set ─► record_chunk ─► commit
                               lost race ─► rollback, discard

Tags:
    jobs, orchestrator, lifecycle, resumable, cas, semantic-spine
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from semspine.core.errors import ConflictError, CorpusError, NotFoundError, ValidationError
from semspine.core.logging import get_logger
from semspine.core.timestamps import from_iso8601, generate_ulid, to_iso8601, utc_now
from semspine.jobs.advance import BatchClassifier, advance_chunk
from semspine.jobs.corpus import CorpusRepository
from semspine.jobs.models import (
    AnnotationJob,
    JobConfig,
    JobProgress,
    JobStatus,
    SongProgress,
    SongStatus,
)
from semspine.jobs.repository import JobRepository

logger = get_logger(__name__)

_CAS_ATTEMPTS = 3


class TickOutcome(str, Enum):
    ADVANCED = "advanced"
    SKIPPED = "skipped"
    STALE = "stale"
    ERRORED = "errored"
    RETRY = "retry"


@dataclass(frozen=True)
class TickResult:
    job_id: str
    outcome: TickOutcome
    job: AnnotationJob | None = None
    words: int = 0
    failed: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "outcome": self.outcome.value,
            "status": self.job.status.value if self.job else None,
            "words": self.words,
            "failed": self.failed,
            "error": self.error,
        }


class JobOrchestrator:
    """Start, advance, pause, resume and cancel annotation jobs.

    Parameters:
        jobs: Job persistence.
        corpus: Song corpus reader.
        cascade: Anything with ``classify_batch`` (normally the cascade).
        config: Chunk size, context window and stall threshold.
        clock: Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        jobs: JobRepository,
        corpus: CorpusRepository,
        cascade: BatchClassifier,
        *,
        config: JobConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.jobs = jobs
        self.corpus = corpus
        self.cascade = cascade
        self.config = config or JobConfig()
        self.clock = clock

    # -- queries -----------------------------------------------------------

    def get_job(self, job_id: str) -> AnnotationJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def is_stalled(self, job: AnnotationJob, now: datetime | None = None) -> bool:
        """A runnable job whose last chunk (or start) is older than the stall threshold."""
        if not job.is_runnable:
            return False
        last = from_iso8601(job.last_chunk_at or job.started_at)
        if last is None:
            return False
        age = ((now or self.clock()) - last).total_seconds()
        return age > self.config.stall_after_seconds

    def progress(self, job_id: str) -> JobProgress:
        job = self.get_job(job_id)
        now = self.clock()
        return JobProgress.from_job(job, now, stalled=self.is_stalled(job, now))

    def song_progress(self, job_id: str) -> list[SongProgress]:
        job = self.get_job(job_id)
        corpus = self.corpus.load(job.target_id)
        song_index, word_index = job.cursor
        done = job.status == JobStatus.CONCLUIDO

        result = []
        for index, item in enumerate(corpus.songs):
            total = len(item)
            if done or index < song_index:
                processed, status = total, SongStatus.COMPLETED
            elif index == song_index:
                processed = min(word_index, total)
                active = processed > 0 or job.is_runnable
                status = SongStatus.PROCESSING if active else SongStatus.PENDING
            else:
                processed, status = 0, SongStatus.PENDING
            result.append(
                SongProgress(
                    index=index,
                    song_id=item.song.id,
                    title=item.song.title,
                    total_words=total,
                    processed_words=processed,
                    status=status,
                )
            )
        return result

    # -- lifecycle ---------------------------------------------------------

    def start_job(self, target_id: str, *, chunk_size: int | None = None) -> AnnotationJob:
        """Create a job for ``target_id``.

        Raises:
            ValidationError: The target has no songs or no words.
            ConflictError: The target already has a non-terminal job.
        """
        existing = self.jobs.find_active(target_id)
        if existing is not None:
            raise ConflictError(
                f"Target {target_id!r} already has an active job {existing.id} "
                f"({existing.status.value})"
            ).with_context(job_id=existing.id)

        corpus = self.corpus.load(target_id)
        if corpus.total_songs == 0 or corpus.total_words == 0:
            raise ValidationError(f"Target {target_id!r} has no words to annotate", field="target_id")

        size = chunk_size or self.config.chunk_size
        if size < 1:
            raise ValidationError("chunk_size must be positive", field="chunk_size")

        job = AnnotationJob(
            id=generate_ulid(),
            target_id=target_id,
            status=JobStatus.INICIADO,
            total_songs=corpus.total_songs,
            total_words=corpus.total_words,
            chunk_size=size,
            started_at=to_iso8601(self.clock()),
        )
        self.jobs.create(job)
        logger.info(
            "job_started",
            job_id=job.id,
            target_id=target_id,
            total_songs=job.total_songs,
            total_words=job.total_words,
        )
        return job

    def pause_job(self, job_id: str) -> AnnotationJob:
        return self._transition(
            job_id,
            allowed={JobStatus.INICIADO, JobStatus.PROCESSANDO},
            target=JobStatus.PAUSADO,
        )

    def resume_job(self, job_id: str) -> AnnotationJob:
        """Re-enter the chunk loop from the persisted cursor.

        Valid from ``pausado`` or from a stalled runnable job.
        """
        job = self.get_job(job_id)
        if job.is_runnable and self.is_stalled(job):
            logger.info("job_resumed_stalled", job_id=job.id, last_chunk_at=job.last_chunk_at)
            return job
        return self._transition(job_id, allowed={JobStatus.PAUSADO}, target=JobStatus.PROCESSANDO)

    def cancel_job(self, job_id: str) -> AnnotationJob:
        return self._transition(
            job_id,
            allowed={JobStatus.INICIADO, JobStatus.PROCESSANDO, JobStatus.PAUSADO},
            target=JobStatus.CANCELADO,
            finished=True,
        )

    def _transition(
        self,
        job_id: str,
        *,
        allowed: set[JobStatus],
        target: JobStatus,
        finished: bool = False,
        error_message: str | None = None,
    ) -> AnnotationJob:
        for _ in range(_CAS_ATTEMPTS):
            job = self.get_job(job_id)
            if job.status not in allowed:
                raise ConflictError(
                    f"Cannot move job {job_id} from {job.status.value} to {target.value}"
                )
            changes: dict[str, Any] = {"status": target}
            if finished:
                changes["finished_at"] = to_iso8601(self.clock())
            if error_message is not None:
                changes["error_message"] = error_message
            updated = job.evolve(**changes)
            if self.jobs.compare_and_set(job, updated):
                self.jobs.commit()
                logger.info(
                    "job_status_changed",
                    job_id=job_id,
                    from_status=job.status.value,
                    to_status=target.value,
                )
                return updated
            self.jobs.rollback()
        raise ConflictError(f"Job {job_id} changed concurrently; retry the request")

    # -- chunk loop --------------------------------------------------------

    def tick(self, job_id: str) -> TickResult:
        """Process one chunk of ``job_id`` if it is runnable."""
        try:
            job = self.jobs.get(job_id)
        except Exception as exc:
            logger.warning("job_load_failed", job_id=job_id, error=str(exc))
            return TickResult(job_id, TickOutcome.RETRY, error=str(exc))
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        if not job.is_runnable:
            return TickResult(job_id, TickOutcome.SKIPPED, job=job)
        return self._tick(job)

    def tick_runnable(self) -> list[TickResult]:
        """One tick for every runnable job, oldest first."""
        return [self._tick(job) for job in self.jobs.list_runnable()]

    def run_to_completion(self, job_id: str, *, max_ticks: int | None = None) -> AnnotationJob:
        """Tick ``job_id`` in the foreground until it stops being runnable."""
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            result = self.tick(job_id)
            ticks += 1
            if result.outcome in (TickOutcome.SKIPPED, TickOutcome.ERRORED, TickOutcome.RETRY):
                break
            if result.job is not None and not result.job.is_runnable:
                break
        return self.get_job(job_id)

    def _tick(self, job: AnnotationJob) -> TickResult:
        started = time.perf_counter()
        try:
            corpus = self.corpus.load(job.target_id)
            corpus.check_matches(job.total_songs, job.total_words)
        except CorpusError as exc:
            return self._fail(job, str(exc))
        except Exception as exc:
            logger.warning("job_corpus_unavailable", job_id=job.id, error=str(exc))
            self._safe_rollback()
            return TickResult(job.id, TickOutcome.RETRY, job=job, error=str(exc))

        outcome = advance_chunk(
            job, corpus, self.cascade, self.clock(), window=self.config.context_window
        )
        duration_ms = (time.perf_counter() - started) * 1000

        try:
            if not self.jobs.compare_and_set(job, outcome.job):
                self.jobs.rollback()
                logger.info("job_chunk_discarded", job_id=job.id, chunks_processed=job.chunks_processed)
                return TickResult(job.id, TickOutcome.STALE, job=self.jobs.get(job.id))
            self.jobs.record_chunk(
                job.id,
                words_processed=outcome.words,
                words_failed=outcome.failed,
                cached_words=outcome.cached,
                duration_ms=duration_ms,
                recorded_at=outcome.job.last_chunk_at,
            )
            self.jobs.commit()
        except Exception as exc:
            logger.warning("job_chunk_commit_failed", job_id=job.id, error=str(exc))
            self._safe_rollback()
            return TickResult(job.id, TickOutcome.RETRY, job=job, error=str(exc))

        logger.info(
            "job_chunk_processed",
            job_id=job.id,
            words=outcome.words,
            cached=outcome.cached,
            failed=outcome.failed,
            processed_words=outcome.job.processed_words,
            total_words=outcome.job.total_words,
            duration_ms=round(duration_ms, 1),
        )
        if outcome.finished:
            logger.info("job_completed", job_id=job.id, chunks=outcome.job.chunks_processed)
            return TickResult(job.id, TickOutcome.ADVANCED, outcome.job, outcome.words, outcome.failed)

        limit = self.config.max_failed_chunks
        if limit and outcome.failed and self.jobs.consecutive_failed_chunks(job.id, limit) >= limit:
            return self._fail(
                outcome.job,
                f"Classificação falhou em todas as palavras de {limit} chunks consecutivos",
            )
        return TickResult(job.id, TickOutcome.ADVANCED, outcome.job, outcome.words, outcome.failed)

    def _fail(self, job: AnnotationJob, message: str) -> TickResult:
        logger.error("job_failed", job_id=job.id, error=message)
        updated = job.evolve(
            status=JobStatus.ERRO,
            error_message=message,
            finished_at=to_iso8601(self.clock()),
        )
        try:
            if self.jobs.compare_and_set(job, updated):
                self.jobs.commit()
                return TickResult(job.id, TickOutcome.ERRORED, job=updated, error=message)
            self.jobs.rollback()
        except Exception as exc:
            logger.warning("job_fail_commit_failed", job_id=job.id, error=str(exc))
            self._safe_rollback()
            return TickResult(job.id, TickOutcome.RETRY, job=job, error=str(exc))
        return TickResult(job.id, TickOutcome.STALE, job=self.jobs.get(job.id), error=message)

    def _safe_rollback(self) -> None:
        try:
            self.jobs.rollback()
        except Exception as exc:
            logger.warning("job_rollback_failed", error=str(exc))
