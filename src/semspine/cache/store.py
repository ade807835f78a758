"""
Classification Cache: ``(word, context_hash)`` → tag, confidence, provenance.

Manifesto:
    The same surface word carries different senses in different verses,
    so the key includes the local context, not just the word. Two
    occurrences of "saudade" in textually identical ±5-token windows share
    one entry; a different neighborhood gets its own.

    The cache is shared by every job and every curator, so writes are a
    single conditional upsert rather than read-modify-write:

    - automated writers (``lexicon``, ``pattern``, ``llm``) are
      last-writer-wins among themselves;
    - a ``curation`` row is never replaced by an automated writer;
    - :meth:`ClassificationCache.curate` is the only path that may
      overwrite a curation row.

Architecture:
    ::

        put(word, ctx, tag, conf, source)
              │
              ▼
        INSERT INTO sem_cache (...) VALUES (...)
        ON CONFLICT (word, context_hash) DO UPDATE SET ...
        WHERE sem_cache.source <> 'curation'     ← rowcount 0 = guarded

        get(word, ctx) ──► row with expires_at > now, else None

Tags:
    cache, upsert, curation, context-hash, semantic-spine
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta

from semspine.cache.metrics import CacheMetrics
from semspine.cache.models import CURATION_EXPIRES_AT, CacheEntry, CacheSource
from semspine.core.dialect import Dialect
from semspine.core.hashing import compute_hash
from semspine.core.logging import get_logger
from semspine.core.protocols import Connection
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.text import context_window
from semspine.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)

_T = TABLES["cache"]
_COLUMNS = [
    "word",
    "context_hash",
    "tag_code",
    "confidence",
    "source",
    "justification",
    "hit_count",
    "curated_by",
    "created_at",
    "updated_at",
    "expires_at",
]
_KEY = ["word", "context_hash"]
# Rewriting a live entry keeps hit_count, created_at and expires_at; a put
# over an expired row replaces every column.
_REWRITE_COLUMNS = ["tag_code", "confidence", "source", "justification", "updated_at"]
_GUARD = f"{_T}.source <> 'curation'"

DEFAULT_TTL_DAYS = 30
DEFAULT_WINDOW = 5


def hash_context(left: Sequence[str], word: str, right: Sequence[str]) -> str:
    """Order-sensitive hash of a word's neighborhood; the word marks the slot."""
    return compute_hash(" ".join(left), word.lower(), " ".join(right))


class ClassificationCache(BaseRepository):
    """Shared memo of classifications over ``sem_cache``.

    Writes are not committed here; the caller commits once per batch.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        ttl_days: int = DEFAULT_TTL_DAYS,
        metrics: CacheMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(conn, dialect)
        self.ttl = timedelta(days=ttl_days)
        self.metrics = metrics or CacheMetrics()
        self._clock = clock
        self._upsert_guarded = self.dialect.upsert(
            _T, _COLUMNS, _KEY, update_columns=_REWRITE_COLUMNS, where=_GUARD
        )
        self._upsert_replace = self.dialect.upsert(_T, _COLUMNS, _KEY, where=_GUARD)
        self._upsert_any = self.dialect.upsert(_T, _COLUMNS, _KEY)

    # -- Keys --------------------------------------------------------------

    @staticmethod
    def context_hash(tokens: Sequence[str], index: int, window: int = DEFAULT_WINDOW) -> str:
        """Hash of the ±``window`` tokens around ``tokens[index]``, clamped at the edges."""
        left, right = context_window(list(tokens), index, window)
        return hash_context(left, tokens[index], right)

    # -- Reads -------------------------------------------------------------

    def get(self, word: str, context_hash: str) -> CacheEntry | None:
        """The live entry for the key, or None if missing or expired."""
        row = self.query_one(
            f"SELECT * FROM {_T} WHERE word = {self.ph(1)} AND context_hash = {self.ph(1)} "
            f"AND expires_at > {self.ph(1)}",
            (word.lower(), context_hash, to_iso8601(self._clock())),
        )
        if row is None:
            self.metrics.record_miss()
            return None
        self.metrics.record_hit()
        return CacheEntry.from_row(row)

    def peek(self, word: str, context_hash: str) -> CacheEntry | None:
        """Like :meth:`get` but includes expired rows and leaves metrics alone."""
        row = self.query_one(
            f"SELECT * FROM {_T} WHERE word = {self.ph(1)} AND context_hash = {self.ph(1)}",
            (word.lower(), context_hash),
        )
        return CacheEntry.from_row(row) if row else None

    def record_hit(self, entry: CacheEntry) -> CacheEntry:
        now = to_iso8601(self._clock())
        self.execute(
            f"UPDATE {_T} SET hit_count = hit_count + 1, updated_at = {self.ph(1)} "
            f"WHERE word = {self.ph(1)} AND context_hash = {self.ph(1)}",
            (now, entry.word, entry.context_hash),
        )
        return replace(entry, hit_count=entry.hit_count + 1, updated_at=now)

    def list_by_tag(self, tag_code: str, *, limit: int = 100, offset: int = 0) -> list[CacheEntry]:
        """Live entries for a tag, most-hit first."""
        rows = self.query(
            f"SELECT * FROM {_T} WHERE tag_code = {self.ph(1)} AND expires_at > {self.ph(1)} "
            f"ORDER BY hit_count DESC, word LIMIT {self.ph(1)} OFFSET {self.ph(1)}",
            (tag_code, to_iso8601(self._clock()), limit, offset),
        )
        return [CacheEntry.from_row(r) for r in rows]

    def list_top_level(self, *, limit: int = 100, exclude: Sequence[str] = ()) -> list[CacheEntry]:
        """Automated live entries still tagged at a level-1 code."""
        params: list = [to_iso8601(self._clock())]
        excl = ""
        if exclude:
            excl = f"AND tag_code NOT IN ({self.ph(len(exclude))}) "
            params.extend(exclude)
        rows = self.query(
            f"SELECT * FROM {_T} WHERE tag_code NOT LIKE '%.%' AND source <> 'curation' "
            f"AND expires_at > {self.ph(1)} {excl}"
            f"ORDER BY hit_count DESC, word LIMIT {self.ph(1)}",
            (*params, limit),
        )
        return [CacheEntry.from_row(r) for r in rows]

    def count_by_source(self) -> dict[str, int]:
        rows = self.query(f"SELECT source, COUNT(*) AS n FROM {_T} GROUP BY source ORDER BY source")
        return {r["source"]: int(r["n"]) for r in rows}

    def count_by_tag(self, *, limit: int = 20) -> dict[str, int]:
        rows = self.query(
            f"SELECT tag_code, COUNT(*) AS n FROM {_T} GROUP BY tag_code "
            f"ORDER BY n DESC, tag_code LIMIT {self.ph(1)}",
            (limit,),
        )
        return {r["tag_code"]: int(r["n"]) for r in rows}

    def stats(self) -> dict:
        now = to_iso8601(self._clock())
        total = self.scalar(f"SELECT COUNT(*) FROM {_T}", default=0)
        expired = self.scalar(
            f"SELECT COUNT(*) FROM {_T} WHERE expires_at <= {self.ph(1)}", (now,), default=0
        )
        total_hits = self.scalar(f"SELECT SUM(hit_count) FROM {_T}", default=0)
        return {
            "total_entries": int(total),
            "expired_entries": int(expired),
            "total_hits": int(total_hits),
            "by_source": self.count_by_source(),
            "top_tags": self.count_by_tag(),
            "metrics": self.metrics.to_dict(),
        }

    # -- Writes ------------------------------------------------------------

    def put(
        self,
        word: str,
        context_hash: str,
        tag_code: str,
        confidence: float,
        source: CacheSource | str,
        justification: str | None = None,
    ) -> bool:
        """Automated write. Returns False when a curation entry guarded the key.

        Rewriting a live entry keeps its hit count and expiry; an expired
        entry is replaced outright.
        """
        source = CacheSource(source)
        if source == CacheSource.CURATION:
            raise ValueError("curation entries are written with curate()")
        now = self._clock()
        existing = self.peek(word, context_hash)
        sql = self._upsert_guarded
        if existing is None or existing.is_expired(now):
            sql = self._upsert_replace
        params = (
            word.lower(),
            context_hash,
            tag_code,
            min(max(float(confidence), 0.0), 1.0),
            source.value,
            justification,
            0,
            None,
            to_iso8601(now),
            to_iso8601(now),
            to_iso8601(now + self.ttl),
        )
        try:
            cursor = self.execute(sql, params)
        except Exception:
            self.metrics.record_error()
            raise
        written = getattr(cursor, "rowcount", 1) != 0
        if written:
            self.metrics.record_save()
        else:
            self.metrics.record_skipped_curated()
            logger.debug("cache_put_guarded", word=word, context_hash=context_hash)
        return written

    def curate(
        self,
        word: str,
        context_hash: str,
        tag_code: str,
        curator: str,
        notes: str | None = None,
        *,
        confidence: float = 1.0,
    ) -> CacheEntry:
        """Human override. May replace anything, including an earlier curation."""
        now = to_iso8601(self._clock())
        existing = self.peek(word, context_hash)
        params = (
            word.lower(),
            context_hash,
            tag_code,
            min(max(float(confidence), 0.0), 1.0),
            CacheSource.CURATION.value,
            notes,
            existing.hit_count if existing else 0,
            curator,
            existing.created_at if existing else now,
            now,
            CURATION_EXPIRES_AT,
        )
        self.execute(self._upsert_any, params)
        logger.info("cache_curated", word=word, tag_code=tag_code, curator=curator)
        return CacheEntry.from_row(dict(zip(_COLUMNS, params, strict=True)))

    def retag(
        self,
        word: str,
        context_hash: str,
        *,
        tag_code: str,
        confidence: float,
        source: CacheSource | str,
        justification: str | None = None,
        expected_tag: str | None = None,
    ) -> bool:
        """Change the tag of an existing automated entry in place.

        Keeps ``hit_count`` and ``created_at``. Guarded against curation
        rows and, when ``expected_tag`` is given, against concurrent
        retagging. Returns whether the row changed.
        """
        sql = (
            f"UPDATE {_T} SET tag_code = {self.ph(1)}, confidence = {self.ph(1)}, "
            f"source = {self.ph(1)}, justification = {self.ph(1)}, updated_at = {self.ph(1)} "
            f"WHERE word = {self.ph(1)} AND context_hash = {self.ph(1)} AND source <> 'curation'"
        )
        params: list = [
            tag_code,
            min(max(float(confidence), 0.0), 1.0),
            CacheSource(source).value,
            justification,
            to_iso8601(self._clock()),
            word.lower(),
            context_hash,
        ]
        if expected_tag is not None:
            sql += f" AND tag_code = {self.ph(1)}"
            params.append(expected_tag)
        return self.execute_rowcount(sql, tuple(params)) > 0

    def evict_expired(self) -> int:
        """Delete expired automated entries. Returns the number removed."""
        removed = self.execute_rowcount(
            f"DELETE FROM {_T} WHERE expires_at <= {self.ph(1)} AND source <> 'curation'",
            (to_iso8601(self._clock()),),
        )
        self.commit()
        if removed:
            logger.info("cache_evicted", removed=removed)
        return removed

    def retag_word(
        self,
        word: str,
        *,
        from_tag: str,
        tag_code: str,
        confidence: float,
        source: CacheSource | str,
        justification: str | None = None,
    ) -> int:
        """Retag every automated entry of ``word`` currently at ``from_tag``."""
        return self.execute_rowcount(
            f"UPDATE {_T} SET tag_code = {self.ph(1)}, confidence = {self.ph(1)}, "
            f"source = {self.ph(1)}, justification = {self.ph(1)}, updated_at = {self.ph(1)} "
            f"WHERE word = {self.ph(1)} AND tag_code = {self.ph(1)} AND source <> 'curation'",
            (
                tag_code,
                min(max(float(confidence), 0.0), 1.0),
                CacheSource(source).value,
                justification,
                to_iso8601(self._clock()),
                word.lower(),
                from_tag,
            ),
        )

    def count_words_with_tag(
        self, tag_code: str, words: Sequence[str] | None = None
    ) -> dict[str, int]:
        """Automated entries per word at ``tag_code``, optionally restricted to ``words``."""
        sql = (
            f"SELECT word, COUNT(*) AS n FROM {_T} "
            f"WHERE tag_code = {self.ph(1)} AND source <> 'curation'"
        )
        params: list = [tag_code]
        if words is not None:
            if not words:
                return {}
            sql += f" AND word IN ({self.ph(len(words))})"
            params.extend(w.lower() for w in words)
        rows = self.query(sql + " GROUP BY word ORDER BY word", tuple(params))
        return {r["word"]: int(r["n"]) for r in rows}

    def count_tag(self, tag_code: str) -> int:
        return int(
            self.scalar(
                f"SELECT COUNT(*) FROM {_T} WHERE tag_code = {self.ph(1)}", (tag_code,), default=0
            )
        )
