"""Success/failure envelope returned by every operation to the API and CLI."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from semspine.core.errors import (
    ConflictError,
    NotFoundError,
    SemSpineError,
    ValidationError,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class OperationError:
    """Error detail of a failed operation; ``code`` is one of NOT_FOUND,
    CONFLICT, VALIDATION_FAILED, TRANSIENT or INTERNAL.
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False


@dataclass
class OperationResult(Generic[T]):
    """Use :meth:`ok` and :meth:`fail` rather than the constructor."""

    success: bool
    data: T | None = None
    error: OperationError | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        return cls(
            success=True,
            data=data,
            warnings=warnings or [],
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        elapsed_ms: float = 0.0,
    ) -> OperationResult[T]:
        return cls(
            success=False,
            error=OperationError(
                code=code,
                message=message,
                details=details or {},
                retryable=retryable,
            ),
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            d["data"] = self.data
        if self.error is not None:
            d["error"] = {
                "code": self.error.code,
                "message": self.error.message,
                "retryable": self.error.retryable,
            }
            if self.error.details:
                d["error"]["details"] = self.error.details
        if self.warnings:
            d["warnings"] = self.warnings
        if self.elapsed_ms:
            d["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class PagedResult(OperationResult[list[T]]):
    """Paginated result for list operations; ``has_more`` is derived."""

    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = False

    @classmethod
    def from_items(
        cls,
        items: list[T],
        total: int,
        *,
        limit: int = 50,
        offset: int = 0,
        elapsed_ms: float = 0.0,
    ) -> PagedResult[T]:
        return cls(
            success=True,
            data=items,
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + limit) < total,
            elapsed_ms=elapsed_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["total"] = self.total
        d["limit"] = self.limit
        d["offset"] = self.offset
        d["has_more"] = self.has_more
        return d


def error_code(exc: Exception) -> str:
    """Map an exception onto an operation error code."""
    if isinstance(exc, NotFoundError):
        return "NOT_FOUND"
    if isinstance(exc, ConflictError):
        return "CONFLICT"
    if isinstance(exc, ValidationError):
        return "VALIDATION_FAILED"
    if isinstance(exc, SemSpineError) and exc.retryable:
        return "TRANSIENT"
    return "INTERNAL"


def fail_from_error(exc: Exception, *, elapsed_ms: float = 0.0) -> OperationResult[Any]:
    """Failed result for ``exc``, keeping its context and retryability."""
    if isinstance(exc, SemSpineError):
        details = exc.context.to_dict()
        if isinstance(exc, ValidationError) and exc.field:
            details["field"] = exc.field
        return OperationResult.fail(
            error_code(exc),
            exc.message,
            details=details,
            retryable=exc.retryable,
            elapsed_ms=elapsed_ms,
        )
    return OperationResult.fail(
        "INTERNAL",
        str(exc) or exc.__class__.__name__,
        elapsed_ms=elapsed_ms,
    )


class _Timer:
    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000


def start_timer() -> _Timer:
    return _Timer()
