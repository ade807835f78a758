"""
Domain schemas: the wire shape of jobs, tagsets, cache entries and anomalies.

Schemas mirror the ``to_dict`` output of the domain entities; routers
build them with ``Schema(**entity.to_dict())``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# ── Jobs ─────────────────────────────────────────────────────────────────


class JobSchema(BaseModel):
    """An annotation job record."""

    id: str
    target_id: str
    status: str = Field(description="iniciado | processando | pausado | concluido | erro | cancelado")
    total_songs: int
    total_words: int
    processed_words: int = 0
    cached_words: int = 0
    new_words: int = 0
    current_song_index: int = 0
    current_word_index: int = 0
    chunk_size: int
    chunks_processed: int = 0
    started_at: str
    last_chunk_at: str | None = None
    finished_at: str | None = None
    error_message: str | None = None


class JobProgressSchema(BaseModel):
    job_id: str
    status: str
    processed_words: int
    total_words: int
    progress: float = Field(description="0..1")
    elapsed_seconds: float
    words_per_second: float | None = None
    eta_seconds: float | None = None
    eta_text: str | None = Field(default=None, description="~Ns, ~Nmin or ~Hh Mmin")
    stalled: bool = False


class JobDetailSchema(JobSchema):
    """Job record plus derived progress."""

    progress: JobProgressSchema


class SongProgressSchema(BaseModel):
    index: int
    song_id: str
    title: str
    total_words: int
    processed_words: int
    status: str = Field(description="completed | processing | pending")


class TickSchema(BaseModel):
    job_id: str
    outcome: str = Field(description="advanced | skipped | stale | errored | retry")
    status: str | None = None
    words: int = 0
    failed: int = 0
    error: str | None = None
    job: JobSchema | None = None


class SongSchema(BaseModel):
    id: str
    target_id: str
    title: str
    position: int = 0


# ── Tagsets ──────────────────────────────────────────────────────────────


class TagsetSchema(BaseModel):
    code: str
    name: str
    description: str | None = None
    parent_code: str | None = None
    depth_level: int
    status: str = Field(description="pending | active | rejected")
    examples: list[str] = Field(default_factory=list)
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: str | None = None
    rejection_reason: str | None = None
    created_at: str | None = None


# ── Cache ────────────────────────────────────────────────────────────────


class CacheEntrySchema(BaseModel):
    word: str
    context_hash: str
    tag_code: str
    confidence: float
    source: str = Field(description="lexicon | pattern | cache_hit | llm | curation")
    justification: str | None = None
    hit_count: int = 0
    curated_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    expires_at: str | None = None


class EvictSchema(BaseModel):
    evicted: int
    dry_run: bool = False


# ── Anomalies ────────────────────────────────────────────────────────────


class AnomalySchema(BaseModel):
    """A detected anomaly.

    Severity badges: info=blue, warning=yellow, critical=red.
    """

    id: str
    check_name: str
    anomaly_type: str
    severity: str
    detected_at: str
    expected_value: float | None = None
    actual_value: float | None = None
    deviation_score: float | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    resolved_at: str | None = None
    acknowledged_at: str | None = None
    acknowledged_by: str | None = None
    resolution_notes: str | None = None
    auto_resolved: bool = False
    message: str = ""
    suggested_action: str = ""
    action_required: bool = False


class SweepSchema(BaseModel):
    anomalies: list[AnomalySchema] = Field(default_factory=list)
    detected: int = 0
    skipped_duplicates: list[str] = Field(default_factory=list)
    auto_resolved: int = 0
    errors: dict[str, str] = Field(default_factory=dict)
    duration_ms: float = 0.0
