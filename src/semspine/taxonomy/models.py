"""
Taxonomy entities.

A :class:`Tagset` is one node of the hierarchical semantic vocabulary
(``"SE"`` → ``"SE.TRI"`` → ...). A :class:`TaxonomySnapshot` is the
immutable set of *active* tagsets read at one point in time; the cascade
and the orchestrator validate every code they are about to persist
against a snapshot taken at the start of the current tick.

Code shape:
    Two upper-case letters for the top-level domain, then up to three
    dot-separated segments of upper-case letters or digits::

        SE          depth 1
        SE.TRI      depth 2
        NA.FAU.AVE  depth 3
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

SENTINEL_CODE = "NC"
SENTINEL_NAME = "Não Classificado"

MAX_DEPTH = 4
CODE_PATTERN = re.compile(r"^[A-Z]{2}(\.[A-Z0-9]{1,8}){0,3}$")


class TagsetStatus(str, Enum):
    """Lifecycle of a tagset. Only ``ACTIVE`` codes may be written."""

    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


def is_well_formed(code: str) -> bool:
    return bool(code) and CODE_PATTERN.match(code) is not None


def depth_of(code: str) -> int:
    """``"SE"`` → 1, ``"SE.TRI"`` → 2."""
    return code.count(".") + 1


def top_level(code: str) -> str:
    """The two-character domain prefix of a code."""
    return code[:2]


def parent_of(code: str) -> str | None:
    if "." not in code:
        return None
    return code.rsplit(".", 1)[0]


@dataclass(frozen=True)
class Tagset:
    """One node of the semantic taxonomy (``sem_tagsets`` row)."""

    code: str
    name: str
    description: str | None = None
    parent_code: str | None = None
    depth_level: int = 1
    status: TagsetStatus = TagsetStatus.PENDING
    examples: tuple[str, ...] = ()
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: str | None = None
    rejection_reason: str | None = None
    created_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == TagsetStatus.ACTIVE

    @property
    def top_level(self) -> str:
        return top_level(self.code)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Tagset:
        examples = row.get("examples") or "[]"
        if isinstance(examples, str):
            examples = json.loads(examples)
        return cls(
            code=row["code"],
            name=row["name"],
            description=row.get("description"),
            parent_code=row.get("parent_code"),
            depth_level=int(row.get("depth_level") or depth_of(row["code"])),
            status=TagsetStatus(row.get("status") or TagsetStatus.PENDING.value),
            examples=tuple(examples),
            created_by=row.get("created_by"),
            approved_by=row.get("approved_by"),
            approved_at=row.get("approved_at"),
            rejection_reason=row.get("rejection_reason"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "parent_code": self.parent_code,
            "depth_level": self.depth_level,
            "status": self.status.value,
            "examples": list(self.examples),
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at,
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TaxonomySnapshot:
    """Point-in-time view of the active tagsets.

    Immutable: curators approving or rejecting tagsets after the snapshot
    was taken do not affect it. Take a fresh one per pipeline invocation
    via :meth:`semspine.taxonomy.store.TaxonomyStore.load_active_tagsets`.
    """

    tagsets: Mapping[str, Tagset] = field(default_factory=dict)
    taken_at: str | None = None

    @classmethod
    def of(cls, tagsets: Iterable[Tagset], taken_at: str | None = None) -> TaxonomySnapshot:
        active = {t.code: t for t in tagsets if t.is_active}
        return cls(tagsets=MappingProxyType(active), taken_at=taken_at)

    def __len__(self) -> int:
        return len(self.tagsets)

    def __contains__(self, code: object) -> bool:
        return code in self.tagsets

    def __iter__(self):
        return iter(self.tagsets.values())

    @property
    def codes(self) -> frozenset[str]:
        return frozenset(self.tagsets)

    def get(self, code: str) -> Tagset | None:
        return self.tagsets.get(code)

    def is_valid_tagset(self, code: str | None) -> bool:
        """True iff ``code`` is active and so is its level-1 domain."""
        if code is None or code not in self.tagsets:
            return False
        root = self.tagsets.get(top_level(code))
        return root is not None and root.depth_level == 1

    def resolve_code(self, code: str | None) -> str:
        """Nearest persistable code: the code, its top-level prefix, or ``NC``."""
        if self.is_valid_tagset(code):
            return code
        if code and self.is_valid_tagset(top_level(code)):
            return top_level(code)
        return SENTINEL_CODE

    def children(self, parent_code: str) -> list[Tagset]:
        """Active direct children of ``parent_code``, ordered by code."""
        return sorted(
            (t for t in self.tagsets.values() if t.parent_code == parent_code),
            key=lambda t: t.code,
        )

    def at_depth(self, depth: int) -> list[Tagset]:
        return sorted(
            (t for t in self.tagsets.values() if t.depth_level == depth),
            key=lambda t: t.code,
        )

    def family(self, code: str) -> list[Tagset]:
        """All active tagsets sharing ``code``'s top-level domain."""
        prefix = top_level(code)
        return sorted(
            (t for t in self.tagsets.values() if t.top_level == prefix),
            key=lambda t: t.code,
        )
