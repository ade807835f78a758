"""
Structured error types for semantic-spine.

Every failure the annotation pipeline can raise is a typed error carrying
the metadata needed to decide what happens next: retry on the next tick,
reject the request, downgrade the result, or fail the job.

Manifesto:
    The pipeline has four very different kinds of failure and each one has
    a different blast radius:

    - **Validation:** a malformed request or an unknown target. Rejected
      synchronously, nothing is created.
    - **Transient:** the LLM gateway timed out, the store hiccuped. Retried
      at the granularity of the next chunk or sweep, never in a tight loop.
    - **Data integrity:** a rule or a model produced a tag code the taxonomy
      does not know. Dropped or downgraded, logged, never persisted.
    - **Job-fatal:** the corpus behind a running job became unreadable.
      The job moves to ``erro`` and waits for a human.

    Encoding the kind in the type (and its ``retryable`` flag) lets the
    orchestrator, the ops layer and the API map failures consistently.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        SemSpineError                             │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError       ValidationError       ConfigError          │
        │  (retryable=True)     (VALIDATION)          (CONFIG)             │
        │       │                    │                    │                │
        │  NetworkError         NotFoundError        MissingConfigError    │
        │  TimeoutError         ConflictError                              │
        │  RateLimitError                                                  │
        │  DatabaseConnectionError                                         │
        │                                                                  │
        │  LLMError             ParseError           CorpusError           │
        │  (LLM)                (PARSE)              (CORPUS, job-fatal)   │
        │       │                                                          │
        │  LLMResponseError     DatabaseError                              │
        │  BudgetExhaustedError (DATABASE)                                 │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NetworkError("gateway unreachable", retry_after=2)
    >>> error.retryable
    True
    >>> ValidationError("target has no words", field="target_id").to_dict()["field"]
    'target_id'

Tags:
    error-handling, exception-hierarchy, retry-logic, semantic-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    LLM = "LLM"
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    CONFIG = "CONFIG"
    CORPUS = "CORPUS"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured context attached to an error.

    Attributes:
        job_id: Annotation job being processed, if any.
        target_id: Corpus target (artist/corpus id), if any.
        word: Word occurrence being classified, if any.
        tag_code: Tag code involved in the failure, if any.
        check_name: Anomaly check name, if any.
        url: URL that was being accessed.
        http_status: HTTP status code if applicable.
        metadata: Additional key-value pairs.
    """

    job_id: str | None = None
    target_id: str | None = None
    word: str | None = None
    tag_code: str | None = None
    check_name: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job_id", "target_id", "word", "tag_code", "check_name",
                    "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SemSpineError(Exception):
    """
    Base class for all semantic-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SemSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise CorpusError("songs unreadable").with_context(
                job_id=job.id, target_id=job.target_id
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retried on the next tick)
# =============================================================================


class TransientError(SemSpineError):
    """Temporary failure; the next chunk or sweep tick may succeed."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Network-related transient error."""

    default_category = ErrorCategory.NETWORK


class TimeoutError(TransientError):
    """Operation timed out."""

    default_category = ErrorCategory.NETWORK


class RateLimitError(TransientError):
    """Rate limit exceeded."""

    default_category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int = 60,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


class DatabaseConnectionError(TransientError):
    """Database connection or lock error."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# LLM ERRORS
# =============================================================================


class LLMError(SemSpineError):
    """
    Non-transient failure from the language-model collaborator.

    Authentication and authorization failures land here: retrying will not
    help until someone fixes the key.
    """

    default_category = ErrorCategory.LLM
    default_retryable = False


class LLMResponseError(LLMError):
    """The gateway answered, but the payload is not a chat completion."""

    pass


class BudgetExhaustedError(LLMError):
    """
    Raised when a token budget would be exceeded.

    Attributes:
        budget_max: Maximum allowed tokens.
        used: Tokens already consumed.
        requested: Tokens that would have been consumed.
    """

    def __init__(self, budget_max: int, used: int, requested: int, **kwargs: Any):
        self.budget_max = budget_max
        self.used = used
        self.requested = requested
        super().__init__(
            f"Token budget exhausted: {used} used + {requested} requested "
            f"> {budget_max} max ({used + requested - budget_max} over)",
            **kwargs,
        )


class ParseError(SemSpineError):
    """Error parsing model output or stored data."""

    default_category = ErrorCategory.PARSE
    default_retryable = False


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(SemSpineError):
    """
    Request or data validation error.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class NotFoundError(SemSpineError):
    """A job, tagset, or anomaly id does not exist."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False


class ConflictError(SemSpineError):
    """The requested transition conflicts with the current state."""

    default_category = ErrorCategory.CONFLICT
    default_retryable = False


# =============================================================================
# CONFIG / CORPUS / STORAGE ERRORS
# =============================================================================


class ConfigError(SemSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        super().__init__(message or f"Missing required configuration: {key}")
        self.key = key


class CorpusError(SemSpineError):
    """
    The songs behind a target are unreadable or changed mid-run.

    Job-fatal: the orchestrator moves the job to ``erro``.
    """

    default_category = ErrorCategory.CORPUS
    default_retryable = False


class DatabaseError(SemSpineError):
    """Database operation error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SemSpineError",
    "TransientError",
    "NetworkError",
    "TimeoutError",
    "RateLimitError",
    "DatabaseConnectionError",
    "LLMError",
    "LLMResponseError",
    "BudgetExhaustedError",
    "ParseError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConfigError",
    "MissingConfigError",
    "CorpusError",
    "DatabaseError",
]
