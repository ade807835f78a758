"""Persistence for annotation jobs and their per-chunk telemetry.

Every state change is a compare-and-set on ``(status, chunks_processed)``:
a writer that lost a race sees zero affected rows and discards its
result instead of overwriting a newer cursor.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError

from semspine.core.errors import ConflictError
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.timestamps import generate_ulid, to_iso8601, utc_now
from semspine.jobs.models import (
    ACTIVE_STATUSES,
    RUNNABLE_STATUSES,
    AnnotationJob,
    JobStatus,
)

_JOBS = TABLES["jobs"]

_MUTABLE_COLUMNS = (
    "status",
    "processed_words",
    "cached_words",
    "new_words",
    "current_song_index",
    "current_word_index",
    "chunks_processed",
    "last_chunk_at",
    "finished_at",
    "error_message",
)


def _status_values(statuses: Iterable[JobStatus]) -> list[str]:
    return sorted(s.value for s in statuses)


class JobRepository(BaseRepository):
    """CRUD plus compare-and-set updates over ``sem_jobs``."""

    def create(self, job: AnnotationJob) -> AnnotationJob:
        """Insert a new job.

        Raises:
            ConflictError: ``job.target_id`` already has a non-terminal job
                (enforced by ``idx_sem_jobs_active_target``).
        """
        try:
            self.insert(_JOBS, job.to_dict())
        except (sqlite3.IntegrityError, IntegrityError) as exc:
            self.rollback()
            raise ConflictError(
                f"Target {job.target_id} already has an active job", cause=exc
            ).with_context(target_id=job.target_id, job_id=job.id) from exc
        self.commit()
        return job

    def get(self, job_id: str) -> AnnotationJob | None:
        row = self.query_one(f"SELECT * FROM {_JOBS} WHERE id = {self.ph(1)}", (job_id,))
        return AnnotationJob.from_row(row) if row else None

    def list_jobs(
        self,
        *,
        status: JobStatus | None = None,
        target_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AnnotationJob], int]:
        conditions: list[str] = []
        params: list[object] = []
        if status is not None:
            conditions.append(f"status = {self.ph(1)}")
            params.append(status.value)
        if target_id is not None:
            conditions.append(f"target_id = {self.ph(1)}")
            params.append(target_id)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.scalar(f"SELECT COUNT(*) FROM {_JOBS} {where}", tuple(params), default=0)
        rows = self.query(
            f"SELECT * FROM {_JOBS} {where} ORDER BY started_at DESC, id DESC "
            f"LIMIT {self.ph(1)} OFFSET {self.ph(1)}",
            (*params, limit, offset),
        )
        return [AnnotationJob.from_row(r) for r in rows], int(total)

    def find_active(self, target_id: str) -> AnnotationJob | None:
        statuses = _status_values(ACTIVE_STATUSES)
        row = self.query_one(
            f"SELECT * FROM {_JOBS} WHERE target_id = {self.ph(1)} "
            f"AND status IN ({self.ph(len(statuses))}) ORDER BY started_at DESC LIMIT 1",
            (target_id, *statuses),
        )
        return AnnotationJob.from_row(row) if row else None

    def list_runnable(self) -> list[AnnotationJob]:
        statuses = _status_values(RUNNABLE_STATUSES)
        rows = self.query(
            f"SELECT * FROM {_JOBS} WHERE status IN ({self.ph(len(statuses))}) "
            f"ORDER BY started_at, id",
            tuple(statuses),
        )
        return [AnnotationJob.from_row(r) for r in rows]

    def compare_and_set(self, expected: AnnotationJob, updated: AnnotationJob) -> bool:
        """Persist ``updated`` only if the stored row still matches ``expected``.

        Matching is on ``status`` and ``chunks_processed``. Does not commit.
        """
        assignments = ", ".join(f"{col} = {self.ph(1)}" for col in _MUTABLE_COLUMNS)
        values = updated.to_dict()
        params = tuple(values[col] for col in _MUTABLE_COLUMNS)
        affected = self.execute_rowcount(
            f"UPDATE {_JOBS} SET {assignments} "
            f"WHERE id = {self.ph(1)} AND status = {self.ph(1)} AND chunks_processed = {self.ph(1)}",
            (*params, expected.id, expected.status.value, expected.chunks_processed),
        )
        return affected == 1

    def record_chunk(
        self,
        job_id: str,
        *,
        words_processed: int,
        words_failed: int,
        cached_words: int,
        duration_ms: float,
        recorded_at: str | None = None,
    ) -> None:
        """Append one row of chunk telemetry. Does not commit."""
        self.insert(
            TABLES["chunk_metrics"],
            {
                "id": generate_ulid(),
                "job_id": job_id,
                "recorded_at": recorded_at or to_iso8601(utc_now()),
                "words_processed": words_processed,
                "words_failed": words_failed,
                "cached_words": cached_words,
                "duration_ms": round(duration_ms, 3),
            },
        )

    def consecutive_failed_chunks(self, job_id: str, window: int) -> int:
        """How many of the job's last ``window`` chunks failed every word."""
        rows = self.query(
            f"SELECT words_processed, words_failed FROM {TABLES['chunk_metrics']} "
            f"WHERE job_id = {self.ph(1)} ORDER BY recorded_at DESC, id DESC LIMIT {self.ph(1)}",
            (job_id, window),
        )
        count = 0
        for row in rows:
            if row["words_processed"] > 0 and row["words_failed"] >= row["words_processed"]:
                count += 1
            else:
                break
        return count

    def rollback(self) -> None:
        self.conn.rollback()
