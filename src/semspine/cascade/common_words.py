"""
Reclassification of frequent function words left as ``NC``.

Early runs (or runs without a reachable model) leave very common words
such as "tinha", "é", "hoje" at the sentinel. A curated map sends them to
the level-1 domain they belong to. The map is checked against the live
taxonomy on every call: a mapping whose code is not active is reported
and skipped. Only automated ``NC`` entries change; curation rows are
never touched.

Modes:
    ``analyze``  read-only: valid/invalid mappings and the NC words found.
    ``execute``  retag, reporting reclassified/errors/remaining NC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from semspine.cache.models import CacheSource
from semspine.cache.store import ClassificationCache
from semspine.core.logging import get_logger
from semspine.taxonomy.models import SENTINEL_CODE
from semspine.taxonomy.store import TaxonomyStore

logger = get_logger(__name__)

JUSTIFICATION = "Palavra comum reclassificada a partir de NC"


@dataclass(frozen=True)
class CommonWordMapping:
    tag_code: str
    name: str
    confidence: float


def _group(tag_code: str, name: str, words: dict[str, float]) -> dict[str, CommonWordMapping]:
    return {w: CommonWordMapping(tag_code, name, c) for w, c in words.items()}


_AC = "Ações e Processos"
_MG = "Marcadores Gramaticais"
_AB = "Abstrações"

COMMON_WORDS_MAP: dict[str, CommonWordMapping] = {
    # auxiliary and state verbs
    **_group("AC", _AC, {
        "serve": 0.92, "tinha": 0.95, "tenho": 0.95, "tem": 0.95, "temos": 0.95,
        "tinham": 0.95, "fiquem": 0.90, "fica": 0.92, "ficou": 0.92, "ficar": 0.92,
        "estão": 0.95, "estava": 0.95, "estavam": 0.95, "faltava": 0.90, "viveu": 0.88,
        "vive": 0.88, "foram": 0.95, "houve": 0.92,
    }),
    # cognition
    **_group("AC", _AC, {
        "sei": 0.95, "sabe": 0.95, "sabia": 0.95, "penso": 0.92, "pensa": 0.92,
        "pensou": 0.92, "acho": 0.90, "achou": 0.90, "lembro": 0.92, "lembra": 0.92,
        "entendo": 0.90, "entende": 0.90,
    }),
    # movement
    **_group("AC", _AC, {
        "deixou": 0.88, "deixa": 0.88, "paira": 0.85, "vem": 0.92, "venho": 0.92,
        "veio": 0.92, "vai": 0.95, "vou": 0.95, "foi": 0.92, "cai": 0.88, "caiu": 0.88,
        "vaza": 0.85, "encosta": 0.85, "atora": 0.80, "sai": 0.92, "saiu": 0.92,
        "chega": 0.90, "chegou": 0.90, "volta": 0.90, "voltou": 0.90, "passa": 0.88,
        "passou": 0.88,
    }),
    # transformation
    **_group("AC", _AC, {
        "desaba": 0.85, "expande": 0.85, "avulta": 0.80, "acaba": 0.88, "acabou": 0.88,
        "deu": 0.85, "virou": 0.88, "vira": 0.88, "mudou": 0.90, "muda": 0.90,
    }),
    # space and time
    **_group("AB", _AB, {
        "fora": 0.88, "dentro": 0.90, "longe": 0.90, "perto": 0.90, "além": 0.88,
        "aquém": 0.85, "ontem": 0.95, "hoje": 0.95, "amanhã": 0.95, "antes": 0.92,
        "depois": 0.92, "agora": 0.95, "sempre": 0.90, "nunca": 0.90,
    }),
    # copulas, adverbs, interjections
    **_group("MG", _MG, {
        "é": 0.98, "era": 0.98, "são": 0.98, "há": 0.95, "já": 0.92, "ainda": 0.90,
        "bem": 0.90, "mal": 0.90, "mais": 0.92, "menos": 0.92, "muito": 0.95,
        "pouco": 0.92, "tanto": 0.90, "tão": 0.92, "assim": 0.88, "só": 0.90,
        "também": 0.92, "então": 0.88, "lá": 0.90, "cá": 0.90, "aqui": 0.92,
        "ali": 0.92, "né": 0.95, "ah": 0.92, "oh": 0.92, "eh": 0.90, "ui": 0.88,
        "ai": 0.92, "oi": 0.90, "tchê": 0.95, "bah": 0.95, "eita": 0.95, "oxe": 0.95,
        "uai": 0.95, "opa": 0.92,
    }),
}


class ReclassifyMode(str, Enum):
    ANALYZE = "analyze"
    EXECUTE = "execute"


@dataclass
class ReclassifyReport:
    mode: ReclassifyMode
    valid_mappings: int = 0
    invalid_mappings: list[str] = field(default_factory=list)
    nc_words_found: dict[str, int] = field(default_factory=dict)
    reclassified: int = 0
    errors: list[str] = field(default_factory=list)
    skipped_invalid: int = 0
    remaining_nc: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "valid_mappings": self.valid_mappings,
            "invalid_mappings": self.invalid_mappings,
            "nc_words_found": self.nc_words_found,
            "total_nc_entries": sum(self.nc_words_found.values()),
            "reclassified": self.reclassified,
            "errors": self.errors,
            "skipped_invalid": self.skipped_invalid,
            "remaining_nc": self.remaining_nc,
        }


def reclassify_common_nc(
    cache: ClassificationCache,
    taxonomy: TaxonomyStore,
    mode: ReclassifyMode | str = ReclassifyMode.ANALYZE,
    *,
    mapping: dict[str, CommonWordMapping] | None = None,
) -> ReclassifyReport:
    mode = ReclassifyMode(mode)
    mapping = COMMON_WORDS_MAP if mapping is None else mapping
    snapshot = taxonomy.load_active_tagsets()
    report = ReclassifyReport(mode=mode)

    valid: dict[str, CommonWordMapping] = {}
    for word, target in mapping.items():
        if snapshot.is_valid_tagset(target.tag_code):
            valid[word] = target
        else:
            report.invalid_mappings.append(f"{word} → {target.tag_code}")
    report.valid_mappings = len(valid)
    if report.invalid_mappings:
        logger.warning("common_word_mappings_invalid", count=len(report.invalid_mappings))

    report.nc_words_found = cache.count_words_with_tag(SENTINEL_CODE, list(valid))
    invalid_words = [w.split(" → ")[0] for w in report.invalid_mappings]
    report.skipped_invalid = sum(cache.count_words_with_tag(SENTINEL_CODE, invalid_words).values())

    if mode == ReclassifyMode.EXECUTE:
        for word in report.nc_words_found:
            target = valid[word]
            try:
                report.reclassified += cache.retag_word(
                    word,
                    from_tag=SENTINEL_CODE,
                    tag_code=target.tag_code,
                    confidence=target.confidence,
                    source=CacheSource.LEXICON,
                    justification=f"{JUSTIFICATION}: {target.name}",
                )
            except Exception as exc:
                logger.warning("common_word_retag_failed", word=word, error=str(exc))
                report.errors.append(f"{word}: {exc}")
        cache.commit()
        logger.info("common_words_reclassified", reclassified=report.reclassified)

    report.remaining_nc = cache.count_tag(SENTINEL_CODE)
    return report
