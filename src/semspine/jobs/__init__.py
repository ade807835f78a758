"""Resumable annotation jobs over a target's song corpus."""

from semspine.jobs.advance import ChunkOutcome, advance_chunk, collect_chunk
from semspine.jobs.corpus import Corpus, CorpusRepository, Song
from semspine.jobs.driver import JobDriver
from semspine.jobs.models import (
    AnnotationJob,
    JobConfig,
    JobProgress,
    JobStatus,
    SongProgress,
    format_eta,
)
from semspine.jobs.orchestrator import JobOrchestrator, TickOutcome, TickResult
from semspine.jobs.repository import JobRepository

__all__ = [
    "AnnotationJob",
    "ChunkOutcome",
    "Corpus",
    "CorpusRepository",
    "JobConfig",
    "JobDriver",
    "JobOrchestrator",
    "JobProgress",
    "JobRepository",
    "JobStatus",
    "Song",
    "SongProgress",
    "TickOutcome",
    "TickResult",
    "advance_chunk",
    "collect_chunk",
    "format_eta",
]
