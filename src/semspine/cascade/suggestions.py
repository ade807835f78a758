"""Read-only classification suggestions for words stuck at ``NC``."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from semspine.cache.store import ClassificationCache
from semspine.cascade.batch import LLMBatchClassifier
from semspine.cascade.lexicon import LexiconRepository, LexiconStage
from semspine.cascade.models import WordOccurrence
from semspine.cascade.rules import apply_rules
from semspine.taxonomy.models import SENTINEL_CODE
from semspine.taxonomy.store import TaxonomyStore


@dataclass(frozen=True)
class NCSuggestion:
    word: str
    tag_code: str
    tag_name: str
    confidence: float
    justification: str | None
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "tag_code": self.tag_code,
            "tag_name": self.tag_name,
            "confidence": self.confidence,
            "justification": self.justification,
            "source": self.source,
        }


@dataclass
class SuggestionReport:
    suggestions: list[NCSuggestion] = field(default_factory=list)
    words_analyzed: int = 0
    by_source: Counter = field(default_factory=Counter)
    rejected: int = 0
    llm_failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggestions": [s.to_dict() for s in self.suggestions],
            "words_analyzed": self.words_analyzed,
            "stats": {
                "lexicon": self.by_source["lexicon"],
                "pattern": self.by_source["pattern"],
                "llm": self.by_source["llm"],
            },
            "rejected": self.rejected,
            "llm_failed": self.llm_failed,
        }


def suggest_nc_classifications(
    cache: ClassificationCache,
    taxonomy: TaxonomyStore,
    *,
    lexicon: LexiconRepository | None = None,
    llm: LLMBatchClassifier | None = None,
    words: Sequence[WordOccurrence] | None = None,
    limit: int = 20,
) -> SuggestionReport:
    """Lexicon → pattern → LLM over ``NC`` words, most-hit first. Writes nothing."""
    snapshot = taxonomy.load_active_tagsets()
    if words is None:
        seen: set[str] = set()
        words = []
        for entry in cache.list_by_tag(SENTINEL_CODE, limit=limit * 3):
            if entry.word in seen or entry.is_curated:
                continue
            seen.add(entry.word)
            words.append(WordOccurrence(word=entry.word, context_hash=entry.context_hash))
        words = words[:limit]

    report = SuggestionReport(words_analyzed=len(words))
    lexicon_stage = None
    if lexicon is not None:
        lexicon_stage = LexiconStage(lexicon.load_index(), snapshot)

    def _add(word: str, code: str, confidence: float, justification: str | None, source: str):
        tagset = snapshot.get(code)
        report.suggestions.append(
            NCSuggestion(word, code, tagset.name if tagset else code, confidence, justification, source)
        )
        report.by_source[source] += 1

    remaining: list[WordOccurrence] = []
    for occ in words:
        stage = lexicon_stage.classify(occ.word) if lexicon_stage else None
        if stage is not None:
            _add(occ.word, stage.tag_code, stage.confidence, stage.justification, "lexicon")
            continue
        stage = apply_rules(occ.word, snapshot)
        if stage is not None:
            _add(occ.word, stage.tag_code, stage.confidence, stage.justification, "pattern")
            continue
        remaining.append(occ)

    if remaining and llm is not None:
        answer = llm.classify(remaining, snapshot)
        report.rejected = answer.rejected
        report.llm_failed = bool(answer.failed)
        for index, result in sorted(answer.results.items()):
            if result.tag_code == SENTINEL_CODE:
                continue
            _add(remaining[index].word, result.tag_code, result.confidence, result.justification, "llm")

    report.suggestions.sort(key=lambda s: s.confidence, reverse=True)
    return report
