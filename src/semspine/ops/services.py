"""Wiring: build the domain services an operation needs from its context."""

from __future__ import annotations

from semspine.cache.store import ClassificationCache
from semspine.cascade.batch import LLMBatchClassifier
from semspine.cascade.cascade import ClassificationCascade
from semspine.cascade.lexicon import LexiconRepository
from semspine.jobs.corpus import CorpusRepository
from semspine.jobs.models import JobConfig
from semspine.jobs.orchestrator import JobOrchestrator
from semspine.jobs.repository import JobRepository
from semspine.llm.client import LLMClient
from semspine.llm.gateway import ChatCompletionsProvider
from semspine.llm.usage import LLMUsageRepository
from semspine.monitor.config import MonitorConfig
from semspine.monitor.monitor import AnomalyMonitor
from semspine.monitor.repository import AnomalyRepository
from semspine.monitor.telemetry import TelemetryRepository
from semspine.ops.context import OperationContext
from semspine.taxonomy.store import TaxonomyStore


def taxonomy_store(ctx: OperationContext) -> TaxonomyStore:
    return TaxonomyStore(ctx.conn)


def classification_cache(ctx: OperationContext) -> ClassificationCache:
    return ClassificationCache(ctx.conn, ttl_days=ctx.settings.cache_ttl_days, clock=ctx.clock)


def batch_classifier(ctx: OperationContext) -> LLMBatchClassifier | None:
    if ctx.llm is None:
        return None
    return LLMBatchClassifier(ctx.llm, batch_size=ctx.settings.llm_batch_size)


def cascade(ctx: OperationContext) -> ClassificationCascade:
    return ClassificationCascade(
        taxonomy_store(ctx),
        classification_cache(ctx),
        lexicon=LexiconRepository(ctx.conn),
        llm=batch_classifier(ctx),
        lexicon_confidence=ctx.settings.lexicon_confidence,
    )


def orchestrator(ctx: OperationContext) -> JobOrchestrator:
    return JobOrchestrator(
        JobRepository(ctx.conn),
        CorpusRepository(ctx.conn),
        cascade(ctx),
        config=JobConfig.from_settings(ctx.settings),
        clock=ctx.clock,
    )


def anomaly_monitor(ctx: OperationContext) -> AnomalyMonitor:
    return AnomalyMonitor(
        TelemetryRepository(ctx.conn),
        AnomalyRepository(ctx.conn),
        config=MonitorConfig.from_settings(ctx.settings),
        clock=ctx.clock,
    )


def llm_client(settings, conn) -> LLMClient | None:
    """An LLM client recording usage over ``conn``; ``None`` without an API key."""
    if settings.llm_api_key is None:
        return None
    provider = ChatCompletionsProvider.from_settings(settings)
    return LLMClient.from_settings(provider, settings, usage=LLMUsageRepository(conn))
