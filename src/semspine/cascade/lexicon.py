"""
Stage 1: the curated dialect lexicon.

A lexicon entry knows its headword, spelling variants and thematic
categories ("fauna", "música", ...). The category is mapped to a tag code
at runtime from the current :class:`TaxonomySnapshot`:

    1. the default family for the category (``fauna`` → ``NA``);
    2. upgraded to an active level-2 child of that family whose code or
       name matches the category (``NA`` → ``NA.FAU``);
    3. a category with no default is matched against active tagset names;
    4. a mapped code that is not active falls back to ``CC``, and the
       stage is skipped when ``CC`` is not active either.

Lookups go through a :class:`LexiconIndex` built once per cascade
invocation: normalized headword and every normalized variant point at the
entry, first writer wins.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from semspine.cascade.models import StageResult
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.text import normalize_word
from semspine.core.timestamps import generate_ulid, to_iso8601, utc_now
from semspine.taxonomy.models import TaxonomySnapshot

LEXICON_CONFIDENCE = 0.95
LEXICON_JUSTIFICATION = "Encontrado no léxico dialetal"

FALLBACK_CODE = "CC"
DEFAULT_CATEGORY_MAP: dict[str, str] = {
    "fauna": "NA",
    "flora": "NA",
    "alimentacao": "AP",
    "vestuario": "AP",
    "indumentaria": "AP",
    "musica": "CC",
    "danca": "CC",
}

_T = TABLES["lexicon"]


@dataclass(frozen=True)
class LexiconEntry:
    """One curated dictionary entry (``sem_lexicon`` row)."""

    id: str
    headword: str
    variants: tuple[str, ...] = ()
    thematic_categories: tuple[str, ...] = ()
    grammatical_class: str | None = None
    definition: str | None = None
    origin: str | None = None
    extraction_confidence: float | None = None
    human_validated: bool = False

    @property
    def normalized_forms(self) -> list[str]:
        return [normalize_word(self.headword), *(normalize_word(v) for v in self.variants)]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> LexiconEntry:
        return cls(
            id=row["id"],
            headword=row["headword"],
            variants=tuple(json.loads(row.get("variants") or "[]")),
            thematic_categories=tuple(json.loads(row.get("thematic_categories") or "[]")),
            grammatical_class=row.get("grammatical_class"),
            definition=row.get("definition"),
            origin=row.get("origin"),
            extraction_confidence=row.get("extraction_confidence"),
            human_validated=bool(row.get("human_validated")),
        )


class LexiconIndex:
    """Normalized form → entry."""

    def __init__(self, entries: Iterable[LexiconEntry]) -> None:
        self._by_form: dict[str, LexiconEntry] = {}
        for entry in entries:
            for form in entry.normalized_forms:
                if form:
                    self._by_form.setdefault(form, entry)

    def __len__(self) -> int:
        return len(self._by_form)

    def lookup(self, word: str) -> LexiconEntry | None:
        return self._by_form.get(normalize_word(word))


class LexiconRepository(BaseRepository):
    """The curated lexicon table."""

    def add(
        self,
        headword: str,
        *,
        variants: Iterable[str] = (),
        thematic_categories: Iterable[str] = (),
        grammatical_class: str | None = None,
        definition: str | None = None,
        origin: str | None = None,
        extraction_confidence: float | None = None,
        human_validated: bool = False,
    ) -> LexiconEntry:
        entry = LexiconEntry(
            id=generate_ulid(),
            headword=headword,
            variants=tuple(variants),
            thematic_categories=tuple(thematic_categories),
            grammatical_class=grammatical_class,
            definition=definition,
            origin=origin,
            extraction_confidence=extraction_confidence,
            human_validated=human_validated,
        )
        self.insert(
            _T,
            {
                "id": entry.id,
                "headword": headword,
                "headword_normalized": normalize_word(headword),
                "variants": json.dumps(list(entry.variants), ensure_ascii=False),
                "grammatical_class": grammatical_class,
                "thematic_categories": json.dumps(
                    list(entry.thematic_categories), ensure_ascii=False
                ),
                "definition": definition,
                "origin": origin,
                "extraction_confidence": extraction_confidence,
                "human_validated": 1 if human_validated else 0,
                "created_at": to_iso8601(utc_now()),
            },
        )
        self.commit()
        return entry

    def count(self) -> int:
        return int(self.scalar(f"SELECT COUNT(*) FROM {_T}", default=0))

    def load_index(self) -> LexiconIndex:
        rows = self.query(f"SELECT * FROM {_T} ORDER BY human_validated DESC, headword")
        return LexiconIndex(LexiconEntry.from_row(r) for r in rows)


def _matches_category(category: str, code: str, name: str) -> bool:
    segment = code.rsplit(".", 1)[-1]
    return category in normalize_word(name) or (
        len(category) >= 3 and segment == category[:3].upper()
    )


def build_category_mapping(
    snapshot: TaxonomySnapshot,
    categories: Iterable[str] = (),
) -> dict[str, str]:
    """Category (normalized) → active tag code, built from the live taxonomy."""
    mapping: dict[str, str] = {}
    wanted = {normalize_word(c) for c in categories} | set(DEFAULT_CATEGORY_MAP)
    for category in sorted(wanted):
        family = DEFAULT_CATEGORY_MAP.get(category)
        code: str | None = None
        if family is not None:
            children = snapshot.children(family)
            child = next(
                (c for c in children if _matches_category(category, c.code, c.name)), None
            )
            code = child.code if child else family
        else:
            match = next(
                (
                    t
                    for t in sorted(snapshot, key=lambda t: -t.depth_level)
                    if normalize_word(t.name) == category
                    or (t.depth_level > 1 and _matches_category(category, t.code, t.name))
                ),
                None,
            )
            code = match.code if match else None
        if code is None or not snapshot.is_valid_tagset(code):
            code = FALLBACK_CODE
        if snapshot.is_valid_tagset(code):
            mapping[category] = code
    return mapping


class LexiconStage:
    """Stage 1 bound to one lexicon index and one snapshot."""

    def __init__(
        self,
        index: LexiconIndex,
        snapshot: TaxonomySnapshot,
        *,
        confidence: float = LEXICON_CONFIDENCE,
    ) -> None:
        self.index = index
        self.snapshot = snapshot
        self.confidence = confidence
        self._mapping: dict[str, str] = build_category_mapping(snapshot)

    def classify(self, word: str) -> StageResult | None:
        entry = self.index.lookup(word)
        if entry is None:
            return None
        categories = [normalize_word(c) for c in entry.thematic_categories] or ["default"]
        for category in categories:
            if category not in self._mapping:
                self._mapping.update(build_category_mapping(self.snapshot, [category]))
            code = self._mapping.get(category)
            if code is not None and self.snapshot.is_valid_tagset(code):
                return StageResult(
                    tag_code=code,
                    confidence=self.confidence,
                    justification=f"{LEXICON_JUSTIFICATION}: {entry.headword}",
                )
        return None
