"""Annotation job entities, configuration and progress math."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from semspine.core.timestamps import from_iso8601


class JobStatus(str, Enum):
    """Lifecycle of an annotation job.

    ``iniciado`` and ``processando`` are runnable; ``pausado`` waits for an
    explicit resume; the remaining three are terminal.
    """

    INICIADO = "iniciado"
    PROCESSANDO = "processando"
    PAUSADO = "pausado"
    CONCLUIDO = "concluido"
    ERRO = "erro"
    CANCELADO = "cancelado"


TERMINAL_STATUSES = frozenset({JobStatus.CONCLUIDO, JobStatus.ERRO, JobStatus.CANCELADO})
RUNNABLE_STATUSES = frozenset({JobStatus.INICIADO, JobStatus.PROCESSANDO})
ACTIVE_STATUSES = RUNNABLE_STATUSES | {JobStatus.PAUSADO}


@dataclass(frozen=True)
class AnnotationJob:
    """One resumable annotation run over a target's corpus.

    The cursor ``(current_song_index, current_word_index)`` always names
    the next unprocessed word; once every word is processed the song index
    equals ``total_songs`` and the job is ``concluido``.
    """

    id: str
    target_id: str
    status: JobStatus
    total_songs: int
    total_words: int
    chunk_size: int
    started_at: str
    processed_words: int = 0
    cached_words: int = 0
    new_words: int = 0
    current_song_index: int = 0
    current_word_index: int = 0
    chunks_processed: int = 0
    last_chunk_at: str | None = None
    finished_at: str | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_runnable(self) -> bool:
        return self.status in RUNNABLE_STATUSES

    @property
    def cursor(self) -> tuple[int, int]:
        return (self.current_song_index, self.current_word_index)

    def evolve(self, **changes: Any) -> AnnotationJob:
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AnnotationJob:
        return cls(
            id=row["id"],
            target_id=row["target_id"],
            status=JobStatus(row["status"]),
            total_songs=int(row["total_songs"]),
            total_words=int(row["total_words"]),
            chunk_size=int(row["chunk_size"]),
            started_at=row["started_at"],
            processed_words=int(row.get("processed_words") or 0),
            cached_words=int(row.get("cached_words") or 0),
            new_words=int(row.get("new_words") or 0),
            current_song_index=int(row.get("current_song_index") or 0),
            current_word_index=int(row.get("current_word_index") or 0),
            chunks_processed=int(row.get("chunks_processed") or 0),
            last_chunk_at=row.get("last_chunk_at"),
            finished_at=row.get("finished_at"),
            error_message=row.get("error_message"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "target_id": self.target_id,
            "status": self.status.value,
            "total_songs": self.total_songs,
            "total_words": self.total_words,
            "processed_words": self.processed_words,
            "cached_words": self.cached_words,
            "new_words": self.new_words,
            "current_song_index": self.current_song_index,
            "current_word_index": self.current_word_index,
            "chunk_size": self.chunk_size,
            "chunks_processed": self.chunks_processed,
            "started_at": self.started_at,
            "last_chunk_at": self.last_chunk_at,
            "finished_at": self.finished_at,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class JobConfig:
    """Knobs for the chunk loop."""

    chunk_size: int = 50
    context_window: int = 5
    tick_interval_seconds: float = 2.0
    stall_after_seconds: float = 120.0
    max_failed_chunks: int = 10

    @classmethod
    def from_settings(cls, settings: Any) -> JobConfig:
        return cls(
            chunk_size=settings.chunk_size,
            context_window=settings.context_window,
            tick_interval_seconds=settings.tick_interval_seconds,
            stall_after_seconds=settings.stall_after_seconds,
            max_failed_chunks=settings.max_failed_chunks,
        )


def format_eta(seconds: float | None) -> str | None:
    """``~45s``, ``~12min`` or ``~2h 5min``."""
    if seconds is None:
        return None
    seconds = max(0, math.ceil(seconds))
    if seconds < 60:
        return f"~{seconds}s"
    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return f"~{minutes}min"
    hours, rest = divmod(minutes, 60)
    return f"~{hours}h {rest}min"


@dataclass(frozen=True)
class JobProgress:
    """Derived progress view of a job at a point in time."""

    job_id: str
    status: JobStatus
    processed_words: int
    total_words: int
    progress: float
    elapsed_seconds: float
    words_per_second: float | None
    eta_seconds: float | None
    stalled: bool = False

    @property
    def eta_text(self) -> str | None:
        return format_eta(self.eta_seconds)

    @classmethod
    def from_job(cls, job: AnnotationJob, now: datetime, *, stalled: bool = False) -> JobProgress:
        started = from_iso8601(job.started_at)
        end = from_iso8601(job.finished_at) if job.is_terminal and job.finished_at else now
        elapsed = max(0.0, (end - started).total_seconds()) if started else 0.0

        progress = job.processed_words / job.total_words if job.total_words else 0.0
        rate: float | None = None
        eta: float | None = None
        if elapsed >= 1.0 and job.processed_words > 0:
            rate = job.processed_words / elapsed
            remaining = max(0, job.total_words - job.processed_words)
            eta = 0.0 if job.is_terminal else remaining / rate

        return cls(
            job_id=job.id,
            status=job.status,
            processed_words=job.processed_words,
            total_words=job.total_words,
            progress=round(min(1.0, progress), 4),
            elapsed_seconds=round(elapsed, 3),
            words_per_second=round(rate, 3) if rate is not None else None,
            eta_seconds=round(eta, 1) if eta is not None else None,
            stalled=stalled,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "processed_words": self.processed_words,
            "total_words": self.total_words,
            "progress": self.progress,
            "elapsed_seconds": self.elapsed_seconds,
            "words_per_second": self.words_per_second,
            "eta_seconds": self.eta_seconds,
            "eta_text": self.eta_text,
            "stalled": self.stalled,
        }


class SongStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SongProgress:
    """Per-song view derived from the job cursor."""

    index: int
    song_id: str
    title: str
    total_words: int
    processed_words: int
    status: SongStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "song_id": self.song_id,
            "title": self.title,
            "total_words": self.total_words,
            "processed_words": self.processed_words,
            "status": self.status.value,
        }
