"""Language-model collaborator: protocol, HTTP gateway, mock, budget."""

from semspine.llm.budget import TokenBudget
from semspine.llm.client import LLMClient
from semspine.llm.mock import MockLLMProvider
from semspine.llm.protocol import (
    LLMProvider,
    LLMResponse,
    Message,
    Role,
    TokenUsage,
)

__all__ = [
    "LLMClient",
    "LLMProvider",
    "LLMResponse",
    "Message",
    "MockLLMProvider",
    "Role",
    "TokenBudget",
    "TokenUsage",
]
