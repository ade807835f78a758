"""
Shared pytest fixtures for semantic-spine tests.

This module provides:
- An in-memory SQLite connection with every pipeline table created
- A seeded taxonomy store and a classification cache on a settable clock
- A scripted LLM (MockLLMProvider + responder) that answers per word
- A cascade and job orchestrator wired over the same connection

Usage:
    Fixtures are auto-discovered by pytest::

        def test_something(cascade, llm_answers):
            llm_answers["saudade"] = "SE.TRI"
            ...
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from semspine.cache.store import ClassificationCache
from semspine.cascade.batch import LLMBatchClassifier
from semspine.cascade.cascade import ClassificationCascade
from semspine.core.schema import create_tables
from semspine.core.settings import SemSpineSettings
from semspine.jobs.corpus import CorpusRepository
from semspine.jobs.models import JobConfig
from semspine.jobs.orchestrator import JobOrchestrator
from semspine.jobs.repository import JobRepository
from semspine.llm.client import LLMClient
from semspine.llm.mock import MockLLMProvider
from semspine.llm.protocol import Message, Role
from semspine.llm.usage import LLMUsageRepository
from semspine.ops.context import OperationContext
from semspine.ops.sqlite_conn import SqliteConnection
from semspine.taxonomy.seed import seed_default_taxonomy
from semspine.taxonomy.store import TaxonomyStore

# Numbered word lines of the cascade and refinement prompts:
#   1. "saudade" (contexto: ...)
#   1. Palavra: "verso" | Domínio Atual: CC
_WORD_LINE = re.compile(r'^(\d+)\. (?:Palavra: )?"([^"]+)"', re.MULTILINE)


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Settable clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def conn():
    """In-memory SQLite with all pipeline tables created."""
    c = SqliteConnection(":memory:")
    create_tables(c)
    yield c
    c.close()


@pytest.fixture
def store(conn) -> TaxonomyStore:
    """Taxonomy store with the default taxonomy installed."""
    s = TaxonomyStore(conn)
    seed_default_taxonomy(s)
    return s


@pytest.fixture
def cache(conn, clock) -> ClassificationCache:
    return ClassificationCache(conn, clock=clock)


# =============================================================================
# Scripted LLM
# =============================================================================


def prompt_words(messages: list[Message]) -> list[tuple[int, str]]:
    """``(id, word)`` pairs listed in the last user message."""
    user = next((m.content for m in reversed(messages) if m.role == Role.USER), "")
    return [(int(i), w) for i, w in _WORD_LINE.findall(user)]


def make_responder(answers: dict[str, Any], default: str | None = None):
    """Responder answering each listed word from ``answers``.

    A string value is the tag code; a dict value is merged into the item
    (so tests can send ``{"tagCode": "XX.BOGUS"}`` or alternate keys).
    Words with no answer and no default are left out of the reply.
    """

    def responder(messages: list[Message]) -> str:
        items = []
        for index, word in prompt_words(messages):
            answer = answers.get(word, default)
            if answer is None:
                continue
            item: dict[str, Any] = {"id": index, "word": word, "confidence": 0.9}
            if isinstance(answer, dict):
                item.update(answer)
            else:
                item["tagCode"] = answer
                item["justification"] = f"{word} no contexto"
            items.append(item)
        return json.dumps(items, ensure_ascii=False)

    return responder


@pytest.fixture
def llm_answers() -> dict[str, Any]:
    """Word → answer map consulted by ``mock_provider``; mutate it in tests."""
    return {}


@pytest.fixture
def mock_provider(llm_answers) -> MockLLMProvider:
    return MockLLMProvider(responder=make_responder(llm_answers))


@pytest.fixture
def llm_client(mock_provider, conn) -> LLMClient:
    return LLMClient(mock_provider, usage=LLMUsageRepository(conn))


@pytest.fixture
def cascade(store, cache, llm_client) -> ClassificationCascade:
    return ClassificationCascade(store, cache, llm=LLMBatchClassifier(llm_client, batch_size=10))


@pytest.fixture
def offline_cascade(store, cache) -> ClassificationCascade:
    """Cascade without the remote stage."""
    return ClassificationCascade(store, cache)


# =============================================================================
# Jobs
# =============================================================================


@pytest.fixture
def corpus(conn) -> CorpusRepository:
    return CorpusRepository(conn)


@pytest.fixture
def orchestrator(conn, corpus, cascade, clock) -> JobOrchestrator:
    return JobOrchestrator(
        JobRepository(conn),
        corpus,
        cascade,
        config=JobConfig(chunk_size=4, max_failed_chunks=0),
        clock=clock,
    )


# =============================================================================
# Operations
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> SemSpineSettings:
    return SemSpineSettings(database_url=":memory:", data_dir=tmp_path, chunk_size=4)


@pytest.fixture
def ops_ctx(conn, store, settings, llm_client, clock) -> OperationContext:
    """Operation context over the seeded in-memory database."""
    return OperationContext(conn=conn, settings=settings, llm=llm_client, clock=clock, caller="test")
