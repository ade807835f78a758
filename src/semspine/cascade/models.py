"""Value types flowing through the classification cascade."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from semspine.cache.models import CacheSource
from semspine.core.text import kwic
from semspine.taxonomy.models import SENTINEL_CODE


@dataclass(frozen=True)
class WordOccurrence:
    """One token of the corpus with its clamped context window."""

    word: str
    context_hash: str
    left: tuple[str, ...] = ()
    right: tuple[str, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return (self.word, self.context_hash)

    @property
    def kwic(self) -> str:
        return kwic(list(self.left), self.word, list(self.right))


@dataclass(frozen=True)
class Classification:
    """The cascade's answer for one occurrence.

    ``failed`` marks a sentinel produced because the LLM stage could not
    run; such results are not cached, so a later run retries them.
    """

    word: str
    context_hash: str
    tag_code: str
    confidence: float
    source: CacheSource
    justification: str | None = None
    failed: bool = False

    @property
    def from_cache(self) -> bool:
        return self.source in (CacheSource.CACHE_HIT, CacheSource.CURATION)

    @property
    def is_sentinel(self) -> bool:
        return self.tag_code == SENTINEL_CODE

    @classmethod
    def unclassified(
        cls, occurrence: WordOccurrence, justification: str, *, failed: bool
    ) -> Classification:
        return cls(
            word=occurrence.word,
            context_hash=occurrence.context_hash,
            tag_code=SENTINEL_CODE,
            confidence=0.0,
            source=CacheSource.LLM,
            justification=justification,
            failed=failed,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "context_hash": self.context_hash,
            "tag_code": self.tag_code,
            "confidence": self.confidence,
            "source": self.source.value,
            "justification": self.justification,
            "failed": self.failed,
        }


@dataclass(frozen=True)
class StageResult:
    """A candidate produced by one deterministic stage before write-back."""

    tag_code: str
    confidence: float
    justification: str


@dataclass
class CascadeReport:
    """Counters for one ``classify_batch`` call."""

    by_source: Counter = field(default_factory=Counter)
    llm_calls: int = 0
    llm_failed: int = 0
    rejected: int = 0
    downgraded: int = 0
    unclassified: int = 0
    cache_writes: int = 0
    cache_guarded: int = 0

    @property
    def cached(self) -> int:
        return self.by_source[CacheSource.CACHE_HIT.value] + self.by_source[CacheSource.CURATION.value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "by_source": dict(self.by_source),
            "llm_calls": self.llm_calls,
            "llm_failed": self.llm_failed,
            "rejected": self.rejected,
            "downgraded": self.downgraded,
            "unclassified": self.unclassified,
            "cache_writes": self.cache_writes,
            "cache_guarded": self.cache_guarded,
        }


@dataclass
class CascadeResult:
    """Classifications aligned with the input occurrences, plus counters."""

    classifications: list[Classification]
    report: CascadeReport

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.classifications if c.failed)

    @property
    def cached_count(self) -> int:
        return sum(1 for c in self.classifications if c.from_cache)
