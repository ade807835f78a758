"""
Request-scoped context for operations.

Every operation function receives an :class:`OperationContext` as its first
argument. The context carries the database connection, the settings, the
optional LLM client, the clock, caller identity, dry-run flag, and
arbitrary metadata.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from semspine.core.protocols import Connection
from semspine.core.settings import SemSpineSettings, get_settings
from semspine.core.timestamps import utc_now
from semspine.llm.client import LLMClient


@dataclass
class OperationContext:
    """Context passed to every operation function.

    Attributes:
        conn: Database connection satisfying :class:`semspine.core.protocols.Connection`.
        settings: Process settings; thresholds and sizes are read from here.
        llm: LLM client for the cascade and refinement; ``None`` disables
            the remote stage.
        clock: Source of "now" for job and anomaly timestamps.
        request_id: Unique ID for this operation invocation (auto-generated).
        caller: Origin of the request: ``"api"``, ``"cli"``, ``"sdk"`` or ``"driver"``.
        user: Optional authenticated user identifier.
        dry_run: When ``True``, operations return a preview without side effects.
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    conn: Connection
    settings: SemSpineSettings = field(default_factory=get_settings)
    llm: LLMClient | None = None
    clock: Callable[[], datetime] = utc_now
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    user: str | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
