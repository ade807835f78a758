"""
Common API schemas: success envelopes and RFC 7807 errors.

Every endpoint returns either :class:`SuccessResponse` (2xx) or
:class:`ProblemDetail` (4xx/5xx). Paged endpoints embed :class:`PageMeta`
alongside the item list.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Field-level error detail."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error codes:
        - ``NOT_FOUND`` (404): job, tagset or anomaly does not exist
        - ``VALIDATION_FAILED`` (400): malformed code, empty target, bad filter
        - ``CONFLICT`` (409): illegal state transition or duplicate job
        - ``TRANSIENT`` (503): store or gateway hiccup, retry later
        - ``INTERNAL`` (500): unexpected server error
    """

    type: str = Field(default="about:blank", description="Error type URI")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation")
    instance: str = Field(default="", description="URI of the failing request")
    code: str | None = Field(default=None, description="Operation error code")
    errors: list[ErrorDetail] = Field(default_factory=list, description="Field-level errors")


class PageMeta(BaseModel):
    """Pagination metadata for list responses."""

    total: int = Field(description="Total items across all pages")
    limit: int = Field(description="Items per page (requested)")
    offset: int = Field(description="Current offset (0-based)")
    has_more: bool = Field(description="True if more pages exist after current")


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope for single-item responses."""

    data: T = Field(description="Response payload")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")


class PagedResponse(BaseModel, Generic[T]):
    """Paged success envelope for list responses."""

    data: list[T] = Field(description="Items of this page")
    page: PageMeta = Field(description="Pagination metadata")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")
