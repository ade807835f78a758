"""Chat-model provider protocol and the message types it exchanges.

The cascade and the refinement pass depend only on ``LLMProvider``; tests
swap the HTTP gateway for :class:`~semspine.llm.mock.MockLLMProvider`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class TokenUsage:
    """Token usage statistics for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt_tokens: int, completion_tokens: int) -> TokenUsage:
        return cls(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)


@dataclass(frozen=True)
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    metadata: dict[str, Any] = field(default_factory=dict)
    finish_reason: str = "stop"


class LLMProvider(Protocol):
    """Protocol for chat-model backends.

    Implementations raise :class:`semspine.core.errors.SemSpineError`
    subclasses on failure (``NetworkError``, ``RateLimitError``,
    ``LLMError`` ...); they never return partial responses.
    """

    def complete(
        self,
        messages: list[Message],
        model: str | None = None,
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion from messages."""
        ...

    def models(self) -> list[str]:
        """List available model identifiers."""
        ...
