"""
Typed request objects for operations.

Each dataclass is the *input* contract of one operation. The API and CLI
build them from path/query/body parameters and flags.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ------------------------------------------------------------------ #
# Jobs
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class StartJobRequest:
    target_id: str
    chunk_size: int | None = None


@dataclass(frozen=True, slots=True)
class ListJobsRequest:
    status: str | None = None
    target_id: str | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True, slots=True)
class JobRequest:
    """Addresses one job (get, tick, pause, resume, cancel, songs)."""

    job_id: str


@dataclass(frozen=True, slots=True)
class AddSongRequest:
    target_id: str
    title: str
    lyrics: str
    position: int = 0


# ------------------------------------------------------------------ #
# Tagsets
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListTagsetsRequest:
    status: str | None = None
    limit: int = 200
    offset: int = 0


@dataclass(frozen=True, slots=True)
class ProposeTagsetRequest:
    code: str
    name: str
    description: str | None = None
    parent_code: str | None = None
    examples: list[str] = field(default_factory=list)
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class ReviewTagsetRequest:
    """Approve (``reason`` ignored) or reject a pending tagset."""

    code: str
    reviewer: str | None = None
    reason: str | None = None


# ------------------------------------------------------------------ #
# Cache
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class CurateRequest:
    word: str
    context_hash: str
    tag_code: str
    curator: str
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class ReclassifyCommonRequest:
    mode: str = "analyze"


@dataclass(frozen=True, slots=True)
class SuggestionsRequest:
    limit: int = 20


@dataclass(frozen=True, slots=True)
class RefineRequest:
    limit: int = 200
    allow_cross_family: bool = False


@dataclass(frozen=True, slots=True)
class ListCacheRequest:
    tag_code: str
    limit: int = 100
    offset: int = 0


# ------------------------------------------------------------------ #
# Anomalies
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListAnomaliesRequest:
    state: str = "open"
    severity: str | None = None
    check_name: str | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True, slots=True)
class AnomalyActionRequest:
    """Acknowledge (``by``), resolve or dismiss (``notes``) one anomaly."""

    anomaly_id: str
    by: str | None = None
    notes: str | None = None
