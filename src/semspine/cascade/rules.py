"""
Stage 2: morphological pattern rules.

An ordered list; the first rule whose pattern matches wins. A rule whose
target code is not active in the current snapshot is skipped entirely,
and evaluation continues with the next rule.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from semspine.cascade.models import StageResult
from semspine.taxonomy.models import TaxonomySnapshot


@dataclass(frozen=True)
class PatternRule:
    name: str
    pattern: re.Pattern[str]
    tag_code: str
    confidence: float
    description: str

    def matches(self, word: str) -> bool:
        return self.pattern.search(word) is not None


def _rule(name: str, regex: str, tag_code: str, confidence: float, description: str) -> PatternRule:
    return PatternRule(name, re.compile(regex, re.IGNORECASE), tag_code, confidence, description)


DEFAULT_RULES: tuple[PatternRule, ...] = (
    _rule(
        "interjection",
        r"^(iê|ité|tchê|bah|eita|uai|opa|oxe|vixe|arretado)$",
        "MG",
        0.88,
        "Interjeição regional",
    ),
    _rule("diminutive", r"(inho|inha|zinho|zinha)$", "EQ", 0.75, "Sufixo diminutivo"),
    _rule("gerund", r"(ando|endo|indo)$", "AC", 0.70, "Gerúndio (ação em curso)"),
    _rule("adverb_mente", r"mente$", "MG", 0.80, "Advérbio terminado em -mente"),
)


def apply_rules(
    word: str,
    snapshot: TaxonomySnapshot,
    rules: Sequence[PatternRule] = DEFAULT_RULES,
) -> StageResult | None:
    """First matching rule whose target code is active, or None."""
    for rule in rules:
        if not rule.matches(word):
            continue
        if not snapshot.is_valid_tagset(rule.tag_code):
            continue
        return StageResult(
            tag_code=rule.tag_code,
            confidence=rule.confidence,
            justification=f"Regra morfológica '{rule.name}': {rule.description}",
        )
    return None
