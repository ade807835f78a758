"""
OpenAI-compatible chat-completions gateway over httpx.

Talks to any ``POST {base_url}/chat/completions`` endpoint (OpenRouter,
an OpenAI-compatible proxy, a local server) with a Bearer key, and maps
transport and HTTP failures onto the semantic-spine error hierarchy:

    ==========================  ===============================
    Condition                   Raised
    ==========================  ===============================
    connect/read timeout        ``TimeoutError`` (transient)
    other transport failure     ``NetworkError`` (transient)
    HTTP 429                    ``RateLimitError`` (transient)
    HTTP 5xx                    ``NetworkError`` (transient)
    HTTP 401 / 403              ``LLMError`` (not retryable)
    other 4xx                   ``LLMError``
    body not a chat completion  ``LLMResponseError``
    ==========================  ===============================

The provider is synchronous: it runs inside the job driver thread, and a
chunk's wall-clock time is dominated by this call.
"""

from __future__ import annotations

from typing import Any

import httpx

from semspine.core.errors import (
    ErrorContext,
    LLMError,
    LLMResponseError,
    MissingConfigError,
    NetworkError,
    RateLimitError,
    TimeoutError,
)
from semspine.core.logging import get_logger
from semspine.core.settings import SemSpineSettings
from semspine.llm.protocol import LLMResponse, Message, TokenUsage

logger = get_logger(__name__)


class ChatCompletionsProvider:
    """``LLMProvider`` backed by an OpenAI-compatible HTTP gateway.

    Parameters:
        base_url: Gateway root, e.g. ``https://openrouter.ai/api/v1``.
        api_key: Bearer token.
        default_model: Model used when ``complete`` gets none.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        default_model: str,
        *,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise MissingConfigError("SEMSPINE_LLM_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: SemSpineSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> ChatCompletionsProvider:
        key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else ""
        return cls(
            settings.llm_base_url,
            key,
            settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            transport=transport,
        )

    def complete(
        self,
        messages: list[Message],
        model: str | None = None,
        *,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        **kwargs: Any,
    ) -> LLMResponse:
        effective_model = model or self.default_model
        payload = {
            "model": effective_model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }
        url = f"{self.base_url}/chat/completions"
        try:
            response = self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            raise TimeoutError(
                f"LLM gateway timed out: {exc}", context=ErrorContext(url=url), cause=exc
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"LLM gateway unreachable: {exc}", context=ErrorContext(url=url), cause=exc
            ) from exc

        self._raise_for_status(response, url)
        return self._parse(response, effective_model, url)

    def models(self) -> list[str]:
        return [self.default_model]

    def close(self) -> None:
        self._client.close()

    # -- internals ---------------------------------------------------------

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return
        context = ErrorContext(url=url, http_status=status)
        detail = response.text[:500]
        if status == 429:
            retry_after = response.headers.get("retry-after", "")
            raise RateLimitError(
                f"LLM gateway rate limited: {detail}",
                retry_after=int(retry_after) if retry_after.isdigit() else 60,
                context=context,
            )
        if status >= 500:
            raise NetworkError(f"LLM gateway error {status}: {detail}", context=context)
        if status in (401, 403):
            raise LLMError(f"LLM gateway rejected credentials ({status})", context=context)
        raise LLMError(f"LLM gateway refused request ({status}): {detail}", context=context)

    @staticmethod
    def _parse(response: httpx.Response, model: str, url: str) -> LLMResponse:
        try:
            data = response.json()
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError(
                "LLM gateway returned an unexpected body",
                context=ErrorContext(url=url, http_status=response.status_code),
                cause=exc,
            ) from exc

        usage = data.get("usage") or {}
        prompt_tokens = int(usage.get("prompt_tokens") or 0)
        completion_tokens = int(usage.get("completion_tokens") or 0)
        return LLMResponse(
            content=content,
            model=data.get("model") or model,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=int(usage.get("total_tokens") or prompt_tokens + completion_tokens),
            ),
            metadata={"provider": "chat_completions", "id": data.get("id")},
            finish_reason=choice.get("finish_reason") or "stop",
        )
