"""Hierarchical tag vocabulary: entities, snapshot and store."""

from semspine.taxonomy.models import (
    SENTINEL_CODE,
    Tagset,
    TagsetStatus,
    TaxonomySnapshot,
)
from semspine.taxonomy.store import TaxonomyStore

__all__ = [
    "SENTINEL_CODE",
    "Tagset",
    "TagsetStatus",
    "TaxonomySnapshot",
    "TaxonomyStore",
]
