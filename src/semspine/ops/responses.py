"""
Typed response objects for operations.

Responses carry only domain data: no HTTP status codes, no CLI
formatting. Domain entities with their own ``to_dict`` are returned as-is;
the dataclasses here cover composite payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class DatabaseInitResult:
    tables_created: list[str]
    seeded_tagsets: int = 0
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class DatabaseHealth:
    connected: bool
    backend: str = "unknown"
    table_count: int = 0
    latency_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class JobDetail:
    """Raw job record plus derived progress."""

    job: dict[str, Any]
    progress: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {**self.job, "progress": self.progress}


@dataclass(frozen=True, slots=True)
class TickSummary:
    tick: dict[str, Any]
    job: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**self.tick, "job": self.job}


@dataclass(frozen=True, slots=True)
class EvictResult:
    evicted: int
    dry_run: bool = False
