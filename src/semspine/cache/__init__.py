"""Shared ``(word, context_hash)`` classification cache."""

from semspine.cache.metrics import CacheMetrics
from semspine.cache.models import CacheEntry, CacheSource
from semspine.cache.store import ClassificationCache, hash_context

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "CacheSource",
    "ClassificationCache",
    "hash_context",
]
