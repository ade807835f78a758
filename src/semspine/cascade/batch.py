"""
Stage 4: batched classification by the remote language model.

Manifesto:
    The model is the most expensive and least trustworthy collaborator
    in the cascade. It sees only words the cheaper stages could not
    resolve, in batches, and everything it returns is treated as
    untrusted input:

    - the prompt enumerates only codes active in the current snapshot;
    - the reply is parsed leniently (code fences stripped, first JSON
      array extracted, whole-document parse as a fallback, alternate key
      names accepted);
    - every code is re-validated; an inactive code falls back to its
      active top-level domain when there is one and is dropped otherwise;
    - confidence is clamped into [0, 1].

    A reply that cannot be parsed is an empty answer, never a crash. A
    transport, auth, quota or budget failure is reported as a failed
    batch; the caller turns those words into the ``NC`` sentinel.

Architecture:
    ::

        occurrences ─► chunks of batch_size ─► build_messages(snapshot)
                                                   │
                                   LLMClient.chat(purpose="cascade_batch")
                                                   │
                              parse_json_array(reply) ─► validate codes
                                                   │
                          BatchAnswer(results by index, downgraded, rejected, failed)
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from semspine.cascade.models import WordOccurrence
from semspine.core.logging import get_logger
from semspine.llm.client import LLMClient
from semspine.llm.protocol import Message
from semspine.taxonomy.models import SENTINEL_CODE, TaxonomySnapshot

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "Você é um linguista especializado em classificação semântica de palavras em "
    "português brasileiro e no dialeto gaúcho. Retorne apenas códigos válidos da "
    "lista fornecida."
)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_ARRAY = re.compile(r"\[[\s\S]*\]")

WORD_KEYS = ("word", "palavra")
CODE_KEYS = ("tagCode", "tag_code", "tagset_sugerido", "tagset_n2", "tagset", "code", "codigo")
CONFIDENCE_KEYS = ("confidence", "confianca", "confiança")
JUSTIFICATION_KEYS = ("justification", "justificativa", "reason")


def _first(item: dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in item and item[key] not in (None, ""):
            return item[key]
    return None


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence != confidence:  # NaN
        return default
    return min(max(confidence, 0.0), 1.0)


def parse_json_array(content: str) -> list[dict[str, Any]]:
    """Extract a list of objects from a model reply. Returns [] when impossible."""
    if not content:
        return []
    text = content.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    candidates = []
    match = _ARRAY.search(text)
    if match:
        candidates.append(match.group(0))
    candidates.append(text)

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            data = next((v for v in data.values() if isinstance(v, list)), None)
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
    return []


@dataclass(frozen=True)
class LLMAnswer:
    """One validated answer for one occurrence."""

    tag_code: str
    confidence: float
    justification: str | None


@dataclass
class BatchAnswer:
    """Outcome of sending occurrences to the model.

    ``results`` is keyed by position in the input list. Positions in
    ``failed`` could not be asked (transport/auth/quota/budget failure);
    positions in neither were asked but got no valid code back.
    """

    results: dict[int, LLMAnswer] = field(default_factory=dict)
    failed: set[int] = field(default_factory=set)
    rejected: int = 0
    downgraded: int = 0
    calls: int = 0
    errors: list[str] = field(default_factory=list)


class LLMBatchClassifier:
    """Stage 4 of the cascade."""

    def __init__(self, client: LLMClient, *, batch_size: int = 40) -> None:
        self.client = client
        self.batch_size = max(1, batch_size)

    def build_messages(
        self, occurrences: Sequence[WordOccurrence], snapshot: TaxonomySnapshot
    ) -> list[Message]:
        vocabulary = "\n".join(
            f"{t.code}: {t.name}" + (f" - {t.description}" if t.description else "")
            for t in sorted(snapshot, key=lambda t: t.code)
        )
        words = "\n".join(
            f'{i}. "{occ.word}" (contexto: "{occ.kwic}")'
            for i, occ in enumerate(occurrences, start=1)
        )
        prompt = (
            "Classifique as palavras abaixo em domínios semânticos.\n\n"
            "DOMÍNIOS DISPONÍVEIS:\n"
            f"{vocabulary}\n\n"
            "PALAVRAS A CLASSIFICAR:\n"
            f"{words}\n\n"
            "Para cada palavra, retorne um objeto em um JSON array com:\n"
            "- id: o número da palavra na lista\n"
            "- word: a palavra\n"
            '- tagCode: código do domínio (ex: "NA", "SE.TRI") - APENAS códigos da lista acima\n'
            "- confidence: número entre 0 e 1\n"
            "- justification: breve explicação considerando o contexto\n\n"
            "IMPORTANTE:\n"
            "- NÃO invente códigos novos\n"
            "- Prefira domínios específicos (N2/N3/N4) a genéricos (N1)\n"
            "- Se não tiver certeza, use confiança baixa (< 0.6)\n\n"
            "Responda APENAS com o JSON array, sem markdown."
        )
        return [Message.system(SYSTEM_PROMPT), Message.user(prompt)]

    def classify(
        self, occurrences: Sequence[WordOccurrence], snapshot: TaxonomySnapshot
    ) -> BatchAnswer:
        answer = BatchAnswer()
        for start in range(0, len(occurrences), self.batch_size):
            chunk = occurrences[start:start + self.batch_size]
            positions = range(start, start + len(chunk))
            answer.calls += 1
            try:
                response = self.client.chat(
                    self.build_messages(chunk, snapshot), purpose="cascade_batch"
                )
            except Exception as exc:
                answer.failed.update(positions)
                answer.errors.append(str(exc))
                continue
            self._collect(response.content, chunk, start, snapshot, answer)
        return answer

    def _collect(
        self,
        content: str,
        chunk: Sequence[WordOccurrence],
        offset: int,
        snapshot: TaxonomySnapshot,
        answer: BatchAnswer,
    ) -> None:
        items = parse_json_array(content)
        if not items:
            logger.warning("llm_reply_unparseable", words=len(chunk), preview=content[:200])
            return

        unassigned = {i for i in range(len(chunk))}
        for item in items:
            index = self._locate(item, chunk, unassigned)
            if index is None:
                continue
            code = _first(item, CODE_KEYS)
            code = str(code).strip().upper() if code is not None else None
            if not snapshot.is_valid_tagset(code):
                ancestor = snapshot.resolve_code(code)
                if ancestor == SENTINEL_CODE:
                    answer.rejected += 1
                    logger.warning(
                        "llm_code_rejected", word=chunk[index].word, tag_code=code
                    )
                    continue
                answer.downgraded += 1
                logger.warning(
                    "llm_code_downgraded", word=chunk[index].word, tag_code=code, ancestor=ancestor
                )
                code = ancestor
            unassigned.discard(index)
            justification = _first(item, JUSTIFICATION_KEYS)
            answer.results[offset + index] = LLMAnswer(
                tag_code=code,
                confidence=clamp_confidence(_first(item, CONFIDENCE_KEYS)),
                justification=str(justification) if justification is not None else None,
            )

    @staticmethod
    def _locate(
        item: dict[str, Any], chunk: Sequence[WordOccurrence], unassigned: set[int]
    ) -> int | None:
        """Position in ``chunk`` this answer belongs to: by ``id``, else by word."""
        raw_id = item.get("id")
        if raw_id is not None:
            try:
                index = int(raw_id) - 1
            except (TypeError, ValueError):
                index = -1
            if index in unassigned:
                word = _first(item, WORD_KEYS)
                if word is None or str(word).strip().lower() == chunk[index].word:
                    return index
        word = _first(item, WORD_KEYS)
        if word is None:
            return None
        word = str(word).strip().lower()
        return next((i for i in sorted(unassigned) if chunk[i].word == word), None)
