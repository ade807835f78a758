"""Per-process ceiling on LLM token spending.

A job stuck re-sending the same chunk to the gateway is stopped here long
before the provider's daily quota. Exhaustion reaches the cascade as an
ordinary LLM failure: the chunk's unresolved words become ``NC`` with
``failed=True``, stay out of the cache and are retried by a later run.

Spending is kept per purpose label passed by the client.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any

from semspine.core.errors import BudgetExhaustedError
from semspine.core.logging import get_logger
from semspine.llm.protocol import TokenUsage

logger = get_logger(__name__)


class TokenBudget:
    """Thread-safe token allowance shared by every call of one process.

    Args:
        max_tokens: Total prompt + completion tokens allowed.
        warn_at: Fraction of ``max_tokens`` past which a single warning
            is logged.
    """

    def __init__(self, max_tokens: int, warn_at: float = 0.8) -> None:
        self.max_tokens = max_tokens
        self.warn_at = warn_at
        self._by_purpose: Counter[str] = Counter()
        self._calls = 0
        self._warned = False
        self._lock = threading.Lock()

    @property
    def used(self) -> int:
        return sum(self._by_purpose.values())

    @property
    def remaining(self) -> int:
        return max(0, self.max_tokens - self.used)

    @property
    def call_count(self) -> int:
        return self._calls

    def check(self, estimated_tokens: int = 0) -> None:
        """Refuse a call that could push spending past ``max_tokens``."""
        used = self.used
        if used + estimated_tokens > self.max_tokens:
            raise BudgetExhaustedError(budget_max=self.max_tokens, used=used, requested=estimated_tokens)

    def record(self, usage: TokenUsage, label: str = "") -> None:
        with self._lock:
            self._by_purpose[label or "unlabelled"] += usage.total_tokens
            self._calls += 1
            crossed = not self._warned and self.used >= self.warn_at * self.max_tokens
            if crossed:
                self._warned = True
        if crossed:
            logger.warning("token_budget_low", used=self.used, max_tokens=self.max_tokens, purpose=label)

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_tokens": self.max_tokens,
            "used": self.used,
            "remaining": self.remaining,
            "call_count": self._calls,
            "by_purpose": dict(self._by_purpose),
        }
