"""Lexicon → rules → cache → LLM classification, validated against the taxonomy."""

from semspine.cascade.batch import LLMBatchClassifier, parse_json_array
from semspine.cascade.cascade import ClassificationCascade, occurrences_for
from semspine.cascade.models import (
    CascadeReport,
    CascadeResult,
    Classification,
    WordOccurrence,
)

__all__ = [
    "CascadeReport",
    "CascadeResult",
    "Classification",
    "ClassificationCascade",
    "LLMBatchClassifier",
    "WordOccurrence",
    "occurrences_for",
    "parse_json_array",
]
