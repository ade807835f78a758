"""
One step of an annotation job: take the next chunk of words and classify it.

Manifesto:
    The cursor is the only state that matters. ``advance_chunk`` reads the
    job's cursor, collects up to ``chunk_size`` words from there (crossing
    song boundaries, skipping empty songs), classifies them through the
    cascade and returns the job as it should look afterwards. It persists
    nothing: the orchestrator decides whether the new state wins the
    compare-and-set. Running it twice from the same cursor classifies the
    same words and, thanks to the cache, produces the same tags.

Architecture:
    ::

        cursor (s, w) ──► collect ≤ chunk_size occurrences
                              │  window clamped to song s
                              ▼
                        cascade.classify_batch
                              │
                              ▼
        next cursor (s', w') normalized past song ends
        s' == total_songs  ──► concluido, finished_at = now
        otherwise          ──► processando

Tags:
    jobs, cursor, chunk, cascade, semantic-spine
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from semspine.cache.store import hash_context
from semspine.cascade.models import CascadeResult, WordOccurrence
from semspine.core.errors import ConflictError
from semspine.core.text import context_window
from semspine.core.timestamps import to_iso8601
from semspine.jobs.corpus import Corpus
from semspine.jobs.models import AnnotationJob, JobStatus
from semspine.taxonomy.models import TaxonomySnapshot


class BatchClassifier(Protocol):
    def classify_batch(
        self, occurrences: list[WordOccurrence], snapshot: TaxonomySnapshot | None = None
    ) -> CascadeResult: ...


@dataclass(frozen=True)
class ChunkOutcome:
    """The proposed next state of a job plus what the chunk produced."""

    job: AnnotationJob
    result: CascadeResult

    @property
    def words(self) -> int:
        return len(self.result.classifications)

    @property
    def failed(self) -> int:
        return self.result.failed_count

    @property
    def cached(self) -> int:
        return self.result.cached_count

    @property
    def finished(self) -> bool:
        return self.job.status == JobStatus.CONCLUIDO


def _normalize_cursor(corpus: Corpus, song: int, word: int) -> tuple[int, int]:
    while song < corpus.total_songs and word >= len(corpus.songs[song]):
        song += 1
        word = 0
    return song, word


def collect_chunk(
    corpus: Corpus,
    cursor: tuple[int, int],
    chunk_size: int,
    window: int,
) -> tuple[list[WordOccurrence], tuple[int, int]]:
    """Occurrences from ``cursor`` onward and the cursor just past them."""
    song, word = _normalize_cursor(corpus, *cursor)
    occurrences: list[WordOccurrence] = []
    while len(occurrences) < chunk_size and song < corpus.total_songs:
        tokens = list(corpus.songs[song].tokens)
        left, right = context_window(tokens, word, window)
        occurrences.append(
            WordOccurrence(
                word=tokens[word],
                context_hash=hash_context(left, tokens[word], right),
                left=tuple(left),
                right=tuple(right),
            )
        )
        song, word = _normalize_cursor(corpus, song, word + 1)
    return occurrences, (song, word)


def advance_chunk(
    job: AnnotationJob,
    corpus: Corpus,
    cascade: BatchClassifier,
    now: datetime,
    *,
    window: int = 5,
    snapshot: TaxonomySnapshot | None = None,
) -> ChunkOutcome:
    """Classify the next chunk of ``job`` and return its proposed new state."""
    if not job.is_runnable:
        raise ConflictError(f"Job {job.id} is {job.status.value}; only runnable jobs advance")

    occurrences, (song, word) = collect_chunk(corpus, job.cursor, job.chunk_size, window)
    result = cascade.classify_batch(occurrences, snapshot)

    processed = min(job.total_words, job.processed_words + len(occurrences))
    cached = result.cached_count
    stamp = to_iso8601(now)
    done = song >= corpus.total_songs

    updated = job.evolve(
        status=JobStatus.CONCLUIDO if done else JobStatus.PROCESSANDO,
        processed_words=processed,
        cached_words=job.cached_words + cached,
        new_words=job.new_words + len(occurrences) - cached,
        current_song_index=corpus.total_songs if done else song,
        current_word_index=0 if done else word,
        chunks_processed=job.chunks_processed + 1,
        last_chunk_at=stamp,
        finished_at=stamp if done else None,
    )
    return ChunkOutcome(job=updated, result=result)
