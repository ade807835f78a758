"""Mock LLM provider: deterministic responses for tests.

::

    provider = MockLLMProvider(default_response='[]')
    provider = MockLLMProvider(sequence=['[{"palavra": "bah", ...}]'])
    provider = MockLLMProvider(error=NetworkError("down"))
    provider = MockLLMProvider(responder=lambda messages: build_json(messages))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from semspine.llm.protocol import LLMResponse, Message, Role, TokenUsage


@dataclass
class MockLLMProvider:
    """Deterministic LLM provider.

    Resolution order per call:

    1. ``error``: raised on every call when set.
    2. ``responder``: called with the messages, its return value is the content.
    3. ``responses``: substring match on the last user message.
    4. ``sequence``: consumed in order.
    5. ``default_response``.
    """

    default_response: str = "[]"
    responses: dict[str, str] = field(default_factory=dict)
    sequence: list[str] = field(default_factory=list)
    responder: Callable[[list[Message]], str] | None = None
    error: Exception | None = None
    model_name: str = "mock-model-v1"
    tokens_per_char: float = 0.25

    calls: list[dict[str, Any]] = field(default_factory=list, repr=False)
    _sequence_index: int = field(default=0, repr=False)

    def complete(
        self,
        messages: list[Message],
        model: str | None = None,
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        effective_model = model or self.model_name
        self.calls.append({
            "messages": [m.to_dict() for m in messages],
            "model": effective_model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "kwargs": kwargs,
        })
        if self.error is not None:
            raise self.error

        content = self._resolve_content(messages)
        prompt_text = " ".join(m.content for m in messages)
        usage = TokenUsage.of(
            max(1, int(len(prompt_text) * self.tokens_per_char)),
            max(1, int(len(content) * self.tokens_per_char)),
        )
        return LLMResponse(
            content=content,
            model=effective_model,
            usage=usage,
            metadata={"provider": "mock"},
        )

    def models(self) -> list[str]:
        return [self.model_name]

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def last_prompt(self) -> str:
        """Content of the last user message sent (empty if none)."""
        if not self.calls:
            return ""
        return next(
            (m["content"] for m in reversed(self.calls[-1]["messages"]) if m["role"] == "user"),
            "",
        )

    def reset(self) -> None:
        self.calls.clear()
        self._sequence_index = 0

    def _resolve_content(self, messages: list[Message]) -> str:
        if self.responder is not None:
            return self.responder(messages)

        if self.responses and messages:
            last_user = next(
                (m.content for m in reversed(messages) if m.role == Role.USER),
                "",
            )
            for key, response in self.responses.items():
                if key in last_user:
                    return response

        if self.sequence and self._sequence_index < len(self.sequence):
            content = self.sequence[self._sequence_index]
            self._sequence_index += 1
            return content

        return self.default_response
