"""Per-call LLM telemetry (``sem_llm_usage``), read by the quota and latency checks."""

from __future__ import annotations

from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.timestamps import generate_ulid, to_iso8601, utc_now
from semspine.llm.protocol import TokenUsage


class LLMUsageRepository(BaseRepository):
    """Append-only log of gateway calls."""

    def record(
        self,
        *,
        model: str,
        purpose: str,
        usage: TokenUsage | None,
        latency_ms: float,
        success: bool,
        error: str | None = None,
    ) -> str:
        usage = usage or TokenUsage()
        usage_id = generate_ulid()
        self.insert(
            TABLES["llm_usage"],
            {
                "id": usage_id,
                "recorded_at": to_iso8601(utc_now()),
                "model": model,
                "purpose": purpose,
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "latency_ms": round(latency_ms, 2),
                "success": 1 if success else 0,
                "error": error[:500] if error else None,
            },
        )
        self.commit()
        return usage_id
