"""
Tagset operations: browse the taxonomy and run the curator workflow.

Proposals land as ``pending``; approval and rejection are one-way.
"""

from __future__ import annotations

from semspine.core.errors import ValidationError
from semspine.core.logging import get_logger
from semspine.ops.context import OperationContext
from semspine.ops.requests import ListTagsetsRequest, ProposeTagsetRequest, ReviewTagsetRequest
from semspine.ops.result import OperationResult, PagedResult, fail_from_error, start_timer
from semspine.ops.services import taxonomy_store
from semspine.taxonomy.models import Tagset, TagsetStatus

logger = get_logger(__name__)


def list_tagsets(ctx: OperationContext, request: ListTagsetsRequest) -> PagedResult[Tagset]:
    timer = start_timer()
    try:
        status = _parse_status(request.status)
        items, total = taxonomy_store(ctx).list_tagsets(
            status=status, limit=request.limit, offset=request.offset
        )
        return PagedResult.from_items(
            items, total, limit=request.limit, offset=request.offset, elapsed_ms=timer.elapsed_ms
        )
    except Exception as exc:
        failed = _failed(exc, timer.elapsed_ms)
        return PagedResult(success=False, error=failed.error, elapsed_ms=timer.elapsed_ms)


def get_tagset(ctx: OperationContext, code: str) -> OperationResult[Tagset]:
    timer = start_timer()
    try:
        return OperationResult.ok(taxonomy_store(ctx).require(code), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def propose_tagset(ctx: OperationContext, request: ProposeTagsetRequest) -> OperationResult[Tagset]:
    timer = start_timer()
    try:
        tagset = taxonomy_store(ctx).propose(
            request.code,
            request.name,
            description=request.description,
            parent_code=request.parent_code,
            examples=request.examples,
            created_by=request.created_by or ctx.user,
        )
        return OperationResult.ok(tagset, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def approve_tagset(ctx: OperationContext, request: ReviewTagsetRequest) -> OperationResult[Tagset]:
    timer = start_timer()
    try:
        tagset = taxonomy_store(ctx).approve(request.code, request.reviewer or ctx.user)
        return OperationResult.ok(tagset, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


def reject_tagset(ctx: OperationContext, request: ReviewTagsetRequest) -> OperationResult[Tagset]:
    timer = start_timer()
    try:
        tagset = taxonomy_store(ctx).reject(request.code, request.reason)
        return OperationResult.ok(tagset, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _failed(exc, timer.elapsed_ms)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _parse_status(value: str | None) -> TagsetStatus | None:
    if value is None:
        return None
    try:
        return TagsetStatus(value)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in TagsetStatus)
        raise ValidationError(f"Unknown status {value!r}; expected one of {allowed}", field="status") from exc


def _failed(exc: Exception, elapsed_ms: float) -> OperationResult:
    result = fail_from_error(exc, elapsed_ms=elapsed_ms)
    if result.error.code == "INTERNAL":
        logger.exception("op_failed", error=str(exc))
    return result
