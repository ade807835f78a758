"""
N1 → N2 refinement of cached classifications.

Words classified at a generic level-1 code ("NA") are offered to the
model together with the active children of their family; the model may
answer a more specific code ("NA.FAU") or repeat the N1 to mean "no
change". Answers are accepted only when:

- the code is active in the current snapshot (an inactive code falls
  back to its active top-level domain, which for a same-family answer
  means "no change"), and
- it belongs to the word's current family (starts with ``"<N1>."``),
  unless the caller passed ``allow_cross_family=True`` *and* the answer
  carries a non-empty justification.

Curation entries are never touched; updates are a guarded in-place
retag so a concurrent change of the same entry wins.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from semspine.cache.models import CacheEntry, CacheSource
from semspine.cache.store import ClassificationCache
from semspine.cascade.batch import (
    CODE_KEYS,
    CONFIDENCE_KEYS,
    JUSTIFICATION_KEYS,
    WORD_KEYS,
    clamp_confidence,
    parse_json_array,
)
from semspine.core.logging import get_logger
from semspine.llm.client import LLMClient
from semspine.llm.protocol import Message
from semspine.taxonomy.models import SENTINEL_CODE, TaxonomySnapshot, top_level
from semspine.taxonomy.store import TaxonomyStore

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "Você é um classificador semântico preciso. Retorne APENAS JSON array válido "
    "com códigos existentes."
)


@dataclass
class RefinementReport:
    considered: int = 0
    updated: int = 0
    unchanged: int = 0
    rejected: int = 0
    downgraded: int = 0
    failed: int = 0
    changes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "considered": self.considered,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "rejected": self.rejected,
            "downgraded": self.downgraded,
            "failed": self.failed,
            "changes": self.changes,
        }


def _get(item: dict[str, Any], keys: Sequence[str]) -> Any:
    return next((item[k] for k in keys if item.get(k) not in (None, "")), None)


class SemanticRefiner:
    """Refines level-1 cache entries to level-2 children."""

    def __init__(
        self,
        taxonomy: TaxonomyStore,
        cache: ClassificationCache,
        client: LLMClient,
        *,
        batch_size: int = 40,
    ) -> None:
        self.taxonomy = taxonomy
        self.cache = cache
        self.client = client
        self.batch_size = max(1, batch_size)

    def build_messages(
        self,
        entries: Sequence[CacheEntry],
        snapshot: TaxonomySnapshot,
        *,
        allow_cross_family: bool = False,
    ) -> list[Message]:
        families = sorted({e.tag_code for e in entries})
        if allow_cross_family:
            listed = sorted(snapshot, key=lambda t: t.code)
        else:
            listed = [t for f in families for t in snapshot.family(f)]
        domains = "\n".join(
            f"{t.code}: {t.name}" + (f" - {t.description}" if t.description else "")
            for t in listed
        )
        words = "\n".join(
            f'{i}. Palavra: "{e.word}" | Domínio Atual: {e.tag_code}'
            + (f" | Justificativa anterior: {e.justification}" if e.justification else "")
            for i, e in enumerate(entries, start=1)
        )
        prompt = (
            "Estas palavras foram classificadas em domínios N1 (genéricos). Indique qual "
            "SUBDOMÍNIO N2 melhor se aplica.\n\n"
            f"DOMÍNIOS SEMÂNTICOS:\n{domains}\n\n"
            "REGRAS:\n"
            "1. Retorne APENAS códigos que existam na lista acima\n"
            "2. Se nenhum N2 se aplica claramente, retorne o código N1 original\n"
            '3. Se um N2 se aplica, retorne o código completo (ex: "SE.TRI")\n'
            "4. Mudanças para outro domínio N1 exigem justificativa\n\n"
            f"PALAVRAS:\n{words}\n\n"
            "Retorne um JSON array na mesma ordem:\n"
            '[{"id": 1, "word": "...", "tagCode": "XX.YY", "confidence": 0.9, '
            '"justification": "..."}]'
        )
        return [Message.system(SYSTEM_PROMPT), Message.user(prompt)]

    def refine(
        self,
        *,
        limit: int = 100,
        allow_cross_family: bool = False,
        dry_run: bool = False,
    ) -> RefinementReport:
        snapshot = self.taxonomy.load_active_tagsets()
        entries = [
            e
            for e in self.cache.list_top_level(limit=limit, exclude=(SENTINEL_CODE,))
            if snapshot.children(e.tag_code)
        ]
        report = RefinementReport(considered=len(entries))

        for start in range(0, len(entries), self.batch_size):
            batch = entries[start:start + self.batch_size]
            try:
                response = self.client.chat(
                    self.build_messages(batch, snapshot, allow_cross_family=allow_cross_family),
                    purpose="refinement",
                )
            except Exception as exc:
                report.failed += len(batch)
                logger.warning("refinement_batch_failed", words=len(batch), error=str(exc))
                continue
            self._apply(
                parse_json_array(response.content),
                batch,
                snapshot,
                report,
                allow_cross_family=allow_cross_family,
                dry_run=dry_run,
            )

        if not dry_run:
            self.cache.commit()
        logger.info("refinement_completed", **{k: v for k, v in report.to_dict().items() if k != "changes"})
        return report

    def _apply(
        self,
        items: list[dict[str, Any]],
        batch: Sequence[CacheEntry],
        snapshot: TaxonomySnapshot,
        report: RefinementReport,
        *,
        allow_cross_family: bool,
        dry_run: bool,
    ) -> None:
        answered: set[int] = set()
        for item in items:
            index = self._locate(item, batch, answered)
            if index is None:
                continue
            answered.add(index)
            entry = batch[index]
            code = _get(item, CODE_KEYS)
            code = str(code).strip().upper() if code is not None else None
            justification = _get(item, JUSTIFICATION_KEYS)
            justification = str(justification).strip() if justification is not None else ""

            if code != entry.tag_code and not snapshot.is_valid_tagset(code):
                ancestor = snapshot.resolve_code(code)
                if ancestor == SENTINEL_CODE:
                    report.rejected += 1
                    continue
                report.downgraded += 1
                logger.info("refinement_code_downgraded", word=entry.word, proposed=code, ancestor=ancestor)
                code = ancestor
            if code == entry.tag_code:
                report.unchanged += 1
                continue
            same_family = code.startswith(f"{entry.tag_code}.")
            cross_ok = allow_cross_family and bool(justification) and top_level(code) != entry.tag_code
            if not (same_family or cross_ok):
                report.rejected += 1
                logger.info("refinement_rejected", word=entry.word, current=entry.tag_code, proposed=code)
                continue

            change = {"word": entry.word, "from": entry.tag_code, "to": code}
            if dry_run:
                report.updated += 1
                report.changes.append(change)
                continue
            if self.cache.retag(
                entry.word,
                entry.context_hash,
                tag_code=code,
                confidence=clamp_confidence(_get(item, CONFIDENCE_KEYS), default=entry.confidence),
                source=CacheSource.LLM,
                justification=justification or entry.justification,
                expected_tag=entry.tag_code,
            ):
                report.updated += 1
                report.changes.append(change)
            else:
                report.unchanged += 1
        report.unchanged += len(batch) - len(answered)

    @staticmethod
    def _locate(item: dict[str, Any], batch: Sequence[CacheEntry], answered: set[int]) -> int | None:
        raw_id = item.get("id")
        if raw_id is not None:
            try:
                index = int(raw_id) - 1
            except (TypeError, ValueError):
                index = -1
            if 0 <= index < len(batch) and index not in answered:
                return index
        word = _get(item, WORD_KEYS)
        if word is None:
            return None
        word = str(word).strip().lower()
        return next(
            (i for i, e in enumerate(batch) if e.word == word and i not in answered), None
        )
