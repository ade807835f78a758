"""
Cache operations: inspection, human curation, eviction and the
maintenance passes over ``NC`` and top-level entries.

Curation validates the tag against the live taxonomy before writing; the
cache itself trusts its callers.
"""

from __future__ import annotations

from typing import Any

from semspine.cache.models import CacheEntry
from semspine.cascade.common_words import ReclassifyMode, ReclassifyReport, reclassify_common_nc
from semspine.cascade.lexicon import LexiconRepository
from semspine.cascade.refinement import RefinementReport, SemanticRefiner
from semspine.cascade.suggestions import SuggestionReport, suggest_nc_classifications
from semspine.core.errors import ValidationError
from semspine.core.logging import get_logger
from semspine.ops.context import OperationContext
from semspine.ops.requests import (
    CurateRequest,
    ListCacheRequest,
    ReclassifyCommonRequest,
    RefineRequest,
    SuggestionsRequest,
)
from semspine.ops.responses import EvictResult
from semspine.ops.result import OperationResult, fail_from_error, start_timer
from semspine.ops.services import batch_classifier, classification_cache, taxonomy_store

logger = get_logger(__name__)


def cache_stats(ctx: OperationContext) -> OperationResult[dict[str, Any]]:
    timer = start_timer()
    try:
        return OperationResult.ok(classification_cache(ctx).stats(), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def list_cache_entries(ctx: OperationContext, request: ListCacheRequest) -> OperationResult[list[CacheEntry]]:
    timer = start_timer()
    try:
        entries = classification_cache(ctx).list_by_tag(
            request.tag_code.upper(), limit=request.limit, offset=request.offset
        )
        return OperationResult.ok(entries, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def curate_entry(ctx: OperationContext, request: CurateRequest) -> OperationResult[CacheEntry]:
    """Pin a human classification for one ``(word, context_hash)``."""
    timer = start_timer()
    try:
        tag_code = request.tag_code.strip().upper()
        if not request.word.strip() or not request.context_hash.strip():
            raise ValidationError("word and context_hash are required", field="word")
        if not request.curator.strip():
            raise ValidationError("curator is required", field="curator")
        if not taxonomy_store(ctx).is_valid_tagset(tag_code):
            raise ValidationError(
                f"Tag {tag_code!r} is not an active tagset", field="tag_code", value=tag_code
            )
        cache = classification_cache(ctx)
        entry = cache.curate(request.word, request.context_hash, tag_code, request.curator, request.notes)
        cache.commit()
        return OperationResult.ok(entry, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def evict_expired(ctx: OperationContext) -> OperationResult[EvictResult]:
    timer = start_timer()
    if ctx.dry_run:
        return OperationResult.ok(EvictResult(evicted=0, dry_run=True), elapsed_ms=timer.elapsed_ms)
    try:
        evicted = classification_cache(ctx).evict_expired()
        return OperationResult.ok(EvictResult(evicted=evicted), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def reclassify_common(
    ctx: OperationContext, request: ReclassifyCommonRequest
) -> OperationResult[ReclassifyReport]:
    """Map frequent ``NC`` words to level-1 codes (``analyze`` or ``execute``)."""
    timer = start_timer()
    try:
        try:
            mode = ReclassifyMode(request.mode)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown mode {request.mode!r}; expected analyze or execute", field="mode"
            ) from exc
        if ctx.dry_run:
            mode = ReclassifyMode.ANALYZE
        report = reclassify_common_nc(classification_cache(ctx), taxonomy_store(ctx), mode)
        return OperationResult.ok(report, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def nc_suggestions(ctx: OperationContext, request: SuggestionsRequest) -> OperationResult[SuggestionReport]:
    """Read-only suggestions for the most-hit ``NC`` words."""
    timer = start_timer()
    try:
        report = suggest_nc_classifications(
            classification_cache(ctx),
            taxonomy_store(ctx),
            lexicon=LexiconRepository(ctx.conn),
            llm=batch_classifier(ctx),
            limit=request.limit,
        )
        warnings = None if ctx.llm else ["LLM not configured; suggestions use lexicon and rules only"]
        return OperationResult.ok(report, warnings=warnings, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def refine_top_level(ctx: OperationContext, request: RefineRequest) -> OperationResult[RefinementReport]:
    """Move generic level-1 entries to a more specific child code."""
    timer = start_timer()
    try:
        if ctx.llm is None:
            raise ValidationError("Refinement needs an LLM; set SEMSPINE_LLM_API_KEY", field="llm")
        refiner = SemanticRefiner(
            taxonomy_store(ctx),
            classification_cache(ctx),
            ctx.llm,
            batch_size=ctx.settings.llm_batch_size,
        )
        report = refiner.refine(
            limit=request.limit,
            allow_cross_family=request.allow_cross_family,
            dry_run=ctx.dry_run,
        )
        return OperationResult.ok(report, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def _failed(exc: Exception, elapsed_ms: float) -> OperationResult:
    result = fail_from_error(exc, elapsed_ms=elapsed_ms)
    if result.error.code == "INTERNAL":
        logger.exception("op_failed", error=str(exc))
    return result
