"""Classification cache entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from semspine.core.timestamps import from_iso8601

# Curation entries never expire and are never evicted.
CURATION_EXPIRES_AT = "9999-12-31T23:59:59.000000+00:00"


class CacheSource(str, Enum):
    """Provenance of a cached classification."""

    LEXICON = "lexicon"
    PATTERN = "pattern"
    CACHE_HIT = "cache_hit"
    LLM = "llm"
    CURATION = "curation"


@dataclass(frozen=True)
class CacheEntry:
    """One memoized classification (``sem_cache`` row)."""

    word: str
    context_hash: str
    tag_code: str
    confidence: float
    source: CacheSource
    justification: str | None = None
    hit_count: int = 0
    curated_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    expires_at: str | None = None

    @property
    def is_curated(self) -> bool:
        return self.source == CacheSource.CURATION

    def is_expired(self, now: datetime) -> bool:
        expires = from_iso8601(self.expires_at)
        return expires is not None and expires <= now

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> CacheEntry:
        return cls(
            word=row["word"],
            context_hash=row["context_hash"],
            tag_code=row["tag_code"],
            confidence=float(row["confidence"]),
            source=CacheSource(row["source"]),
            justification=row.get("justification"),
            hit_count=int(row.get("hit_count") or 0),
            curated_by=row.get("curated_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            expires_at=row.get("expires_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "context_hash": self.context_hash,
            "tag_code": self.tag_code,
            "confidence": self.confidence,
            "source": self.source.value,
            "justification": self.justification,
            "hit_count": self.hit_count,
            "curated_by": self.curated_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "expires_at": self.expires_at,
        }
