"""
LLM client: one place where every model call is budgeted, timed and
recorded.

The cascade and the refinement pass never call a provider directly; they
go through :class:`LLMClient`, so quota and latency telemetry cover every
call, successful or not.

::

    client.chat(messages, purpose="cascade_batch")
        │
        ├── budget.check(estimate)          BudgetExhaustedError
        ├── provider.complete(...)          NetworkError / LLMError / ...
        ├── budget.record(usage)
        └── usage_repo.record(tokens, latency, success, error)
"""

from __future__ import annotations

import time

from semspine.core.errors import SemSpineError
from semspine.core.logging import get_logger
from semspine.core.settings import SemSpineSettings
from semspine.llm.budget import TokenBudget
from semspine.llm.protocol import LLMProvider, LLMResponse, Message
from semspine.llm.usage import LLMUsageRepository

logger = get_logger(__name__)


class LLMClient:
    """Provider plus sampling defaults, budget and usage recording."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        budget: TokenBudget | None = None,
        usage: LLMUsageRepository | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.budget = budget
        self.usage = usage

    @classmethod
    def from_settings(
        cls,
        provider: LLMProvider,
        settings: SemSpineSettings,
        *,
        usage: LLMUsageRepository | None = None,
        budget: TokenBudget | None = None,
    ) -> LLMClient:
        if budget is None and settings.llm_token_budget:
            budget = TokenBudget(max_tokens=settings.llm_token_budget)
        return cls(
            provider,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            budget=budget,
            usage=usage,
        )

    def chat(self, messages: list[Message], *, purpose: str) -> LLMResponse:
        """Send one chat request. Raises on any failure after recording it."""
        model = self.model or next(iter(self.provider.models()), "unknown")
        if self.budget is not None:
            estimate = sum(len(m.content) for m in messages) // 4 + self.max_tokens
            self.budget.check(estimate)

        started = time.perf_counter()
        try:
            response = self.provider.complete(
                messages,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            latency_ms = (time.perf_counter() - started) * 1000
            self._record(model, purpose, None, latency_ms, success=False, error=str(exc))
            level = "warning" if isinstance(exc, SemSpineError) else "error"
            getattr(logger, level)(
                "llm_call_failed", purpose=purpose, model=model, error=str(exc),
                latency_ms=round(latency_ms, 1),
            )
            raise

        latency_ms = (time.perf_counter() - started) * 1000
        if self.budget is not None:
            self.budget.record(response.usage, label=purpose)
        self._record(response.model, purpose, response, latency_ms, success=True)
        logger.debug(
            "llm_call_completed",
            purpose=purpose,
            model=response.model,
            total_tokens=response.usage.total_tokens,
            latency_ms=round(latency_ms, 1),
        )
        return response

    def _record(
        self,
        model: str,
        purpose: str,
        response: LLMResponse | None,
        latency_ms: float,
        *,
        success: bool,
        error: str | None = None,
    ) -> None:
        if self.usage is None:
            return
        self.usage.record(
            model=model,
            purpose=purpose,
            usage=response.usage if response else None,
            latency_ms=latency_ms,
            success=success,
            error=error,
        )
