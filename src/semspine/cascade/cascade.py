"""
Classification Cascade: one tag per word occurrence, cheapest source first.

Manifesto:
    Every word of the corpus gets a tag, and no tag the taxonomy does not
    know is ever written. Stages run in strict priority order and the
    first validated answer wins:

    0. a live **curation** entry for the exact ``(word, context_hash)``;
    1. the curated **lexicon** (normalized headword or variant);
    2. morphological **pattern rules**;
    3. the shared **cache** (a hit whose code is no longer active is a miss);
    4. the remote **LLM**, batched, with every returned code re-validated.

    Stage 1, 2 and 4 answers are written back to the cache with a guarded
    upsert, so the next occurrence in the same local context stops at
    stage 3 (or earlier: stages 1 and 2 are deterministic and answer the
    same way again).

    The cascade never raises. A word no stage could resolve gets the
    ``NC`` sentinel with confidence 0; if that happened because the LLM
    could not be reached the result is flagged ``failed`` and is not
    cached, so a later run asks again.

Architecture:
    ::

        classify_batch(occurrences, snapshot)
          │
          ├─ for each occurrence:
          │     cache.get ─► curation? ─────────────────────► done
          │     LexiconStage.classify ─► put(lexicon) ──────► done
          │     apply_rules ─► put(pattern) ────────────────► done
          │     cached & valid ─► record_hit ───────────────► done (cache_hit)
          │     else ─► pending[(word, ctx)]
          │
          ├─ LLMBatchClassifier.classify(unique pending)
          │     valid code ─► put(llm)
          │     no valid code ─► put(NC, llm)
          │     call failed ─► NC, failed=True, not cached
          │
          └─ duplicates of a pending key ─► cache_hit of the first answer

Tags:
    cascade, classification, lexicon, rules, cache, llm, semantic-spine
"""

from __future__ import annotations

from collections.abc import Sequence

from semspine.cache.models import CacheEntry, CacheSource
from semspine.cache.store import ClassificationCache, hash_context
from semspine.cascade.batch import LLMBatchClassifier
from semspine.cascade.lexicon import LexiconIndex, LexiconRepository, LexiconStage
from semspine.cascade.models import (
    CascadeReport,
    CascadeResult,
    Classification,
    StageResult,
    WordOccurrence,
)
from semspine.cascade.rules import DEFAULT_RULES, PatternRule, apply_rules
from semspine.core.logging import get_logger
from semspine.core.text import context_window
from semspine.taxonomy.models import TaxonomySnapshot
from semspine.taxonomy.store import TaxonomyStore

logger = get_logger(__name__)

LLM_FAILED_JUSTIFICATION = "Falha na classificação remota; será reprocessada"
LLM_UNRESOLVED_JUSTIFICATION = "Modelo não retornou código válido"
NO_LLM_JUSTIFICATION = "Nenhum classificador remoto configurado"


def occurrences_for(tokens: Sequence[str], window: int = 5) -> list[WordOccurrence]:
    """Every token of one song as a :class:`WordOccurrence`."""
    result = []
    for index, word in enumerate(tokens):
        left, right = context_window(list(tokens), index, window)
        result.append(
            WordOccurrence(
                word=word,
                context_hash=hash_context(left, word, right),
                left=tuple(left),
                right=tuple(right),
            )
        )
    return result


class ClassificationCascade:
    """Lexicon → rules → cache → LLM, validated against the taxonomy.

    Parameters:
        taxonomy: Source of per-invocation snapshots.
        cache: Shared classification cache (also the write-back target).
        lexicon: Curated lexicon; stage 1 is skipped when None.
        llm: Batch classifier; when None, stage 4 words get a failed ``NC``.
        rules: Ordered pattern rules for stage 2.
        lexicon_confidence: Confidence assigned to lexicon answers.
    """

    def __init__(
        self,
        taxonomy: TaxonomyStore,
        cache: ClassificationCache,
        *,
        lexicon: LexiconRepository | None = None,
        llm: LLMBatchClassifier | None = None,
        rules: Sequence[PatternRule] = DEFAULT_RULES,
        lexicon_confidence: float = 0.95,
    ) -> None:
        self.taxonomy = taxonomy
        self.cache = cache
        self.lexicon = lexicon
        self.llm = llm
        self.rules = tuple(rules)
        self.lexicon_confidence = lexicon_confidence

    def classify(self, occurrence: WordOccurrence) -> Classification:
        return self.classify_batch([occurrence]).classifications[0]

    def classify_batch(
        self,
        occurrences: Sequence[WordOccurrence],
        snapshot: TaxonomySnapshot | None = None,
    ) -> CascadeResult:
        """Classify occurrences in order. Never raises."""
        report = CascadeReport()
        if not occurrences:
            return CascadeResult([], report)
        try:
            return self._classify_batch(occurrences, snapshot, report)
        except Exception as exc:
            logger.exception("cascade_failed", words=len(occurrences), error=str(exc))
            self.cache.metrics.record_error()
            self._rollback()
            results = [
                Classification.unclassified(o, f"Erro interno: {exc}", failed=True)
                for o in occurrences
            ]
            report.unclassified = len(results)
            report.by_source[CacheSource.LLM.value] += len(results)
            return CascadeResult(results, report)

    # -- internals ---------------------------------------------------------

    def _classify_batch(
        self,
        occurrences: Sequence[WordOccurrence],
        snapshot: TaxonomySnapshot | None,
        report: CascadeReport,
    ) -> CascadeResult:
        snapshot = snapshot or self.taxonomy.load_active_tagsets()
        lexicon_stage = self._lexicon_stage(snapshot)

        results: list[Classification | None] = [None] * len(occurrences)
        pending: dict[tuple[str, str], list[int]] = {}

        for position, occ in enumerate(occurrences):
            if occ.key in pending:
                pending[occ.key].append(position)
                continue
            resolved = self._resolve_locally(occ, snapshot, lexicon_stage, report)
            if resolved is None:
                pending[occ.key] = [position]
            else:
                results[position] = resolved

        if pending:
            self._resolve_remotely(occurrences, pending, snapshot, results, report)

        self.cache.commit()
        final = [r for r in results if r is not None]
        for classification in final:
            report.by_source[classification.source.value] += 1
            if classification.is_sentinel:
                report.unclassified += 1
        return CascadeResult(final, report)

    def _lexicon_stage(self, snapshot: TaxonomySnapshot) -> LexiconStage | None:
        if self.lexicon is None:
            return None
        index: LexiconIndex = self.lexicon.load_index()
        if not len(index):
            return None
        return LexiconStage(index, snapshot, confidence=self.lexicon_confidence)

    def _resolve_locally(
        self,
        occ: WordOccurrence,
        snapshot: TaxonomySnapshot,
        lexicon_stage: LexiconStage | None,
        report: CascadeReport,
    ) -> Classification | None:
        cached = self.cache.get(occ.word, occ.context_hash)

        if cached is not None and cached.is_curated and snapshot.is_valid_tagset(cached.tag_code):
            return self._from_cache(cached, CacheSource.CURATION)

        stage: StageResult | None = None
        source = CacheSource.LEXICON
        if lexicon_stage is not None:
            stage = lexicon_stage.classify(occ.word)
        if stage is None:
            stage = apply_rules(occ.word, snapshot, self.rules)
            source = CacheSource.PATTERN
        if stage is not None:
            self._write_back(occ, stage.tag_code, stage.confidence, source, stage.justification, report)
            return Classification(
                word=occ.word,
                context_hash=occ.context_hash,
                tag_code=stage.tag_code,
                confidence=stage.confidence,
                source=source,
                justification=stage.justification,
            )

        if cached is not None and not cached.is_curated:
            if snapshot.is_valid_tagset(cached.tag_code):
                return self._from_cache(cached, CacheSource.CACHE_HIT)
            logger.info(
                "cache_entry_invalidated",
                word=occ.word,
                tag_code=cached.tag_code,
            )
        return None

    def _resolve_remotely(
        self,
        occurrences: Sequence[WordOccurrence],
        pending: dict[tuple[str, str], list[int]],
        snapshot: TaxonomySnapshot,
        results: list[Classification | None],
        report: CascadeReport,
    ) -> None:
        keys = list(pending)
        unique = [occurrences[pending[k][0]] for k in keys]

        if self.llm is None:
            for key, occ in zip(keys, unique, strict=True):
                self._fill(pending[key], results, Classification.unclassified(
                    occ, NO_LLM_JUSTIFICATION, failed=True
                ))
            report.llm_failed += len(unique)
            return

        answer = self.llm.classify(unique, snapshot)
        report.llm_calls += answer.calls
        report.rejected += answer.rejected
        report.downgraded += answer.downgraded

        for i, (key, occ) in enumerate(zip(keys, unique, strict=True)):
            if i in answer.failed:
                report.llm_failed += 1
                first = Classification.unclassified(occ, LLM_FAILED_JUSTIFICATION, failed=True)
            elif i in answer.results:
                llm = answer.results[i]
                self._write_back(occ, llm.tag_code, llm.confidence, CacheSource.LLM, llm.justification, report)
                first = Classification(
                    word=occ.word,
                    context_hash=occ.context_hash,
                    tag_code=llm.tag_code,
                    confidence=llm.confidence,
                    source=CacheSource.LLM,
                    justification=llm.justification,
                )
            else:
                first = Classification.unclassified(occ, LLM_UNRESOLVED_JUSTIFICATION, failed=False)
                self._write_back(occ, first.tag_code, 0.0, CacheSource.LLM, first.justification, report)
            self._fill(pending[key], results, first)

    def _fill(
        self,
        positions: list[int],
        results: list[Classification | None],
        first: Classification,
    ) -> None:
        results[positions[0]] = first
        if len(positions) == 1:
            return
        if first.failed:
            for position in positions[1:]:
                results[position] = first
            return
        entry = self.cache.get(first.word, first.context_hash)
        for position in positions[1:]:
            if entry is not None:
                entry = self.cache.record_hit(entry)
            results[position] = Classification(
                word=first.word,
                context_hash=first.context_hash,
                tag_code=entry.tag_code if entry else first.tag_code,
                confidence=entry.confidence if entry else first.confidence,
                source=CacheSource.CACHE_HIT,
                justification=entry.justification if entry else first.justification,
            )

    def _from_cache(self, entry: CacheEntry, source: CacheSource) -> Classification:
        entry = self.cache.record_hit(entry)
        return Classification(
            word=entry.word,
            context_hash=entry.context_hash,
            tag_code=entry.tag_code,
            confidence=entry.confidence,
            source=source,
            justification=entry.justification,
        )

    def _write_back(
        self,
        occ: WordOccurrence,
        tag_code: str,
        confidence: float,
        source: CacheSource,
        justification: str | None,
        report: CascadeReport,
    ) -> None:
        if self.cache.put(occ.word, occ.context_hash, tag_code, confidence, source, justification):
            report.cache_writes += 1
        else:
            report.cache_guarded += 1

    def _rollback(self) -> None:
        rollback = getattr(self.cache.conn, "rollback", None)
        if rollback is None:
            return
        try:
            rollback()
        except Exception as exc:
            logger.warning("cascade_rollback_failed", error=str(exc))
