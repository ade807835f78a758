"""
Taxonomy Store: the single source of truth for which tag codes may be
written.

Manifesto:
    Curators add and retire tagsets while annotation jobs are running.
    Every writer therefore validates against the *current* committed
    state, never a module-level copy:

    - **Live checks** (:meth:`TaxonomyStore.is_valid_tagset`) hit the
      table directly.
    - **Snapshots** (:meth:`TaxonomyStore.load_active_tagsets`) are
      taken once per pipeline invocation (one job tick, one curation
      call) and passed down explicitly.

    Lifecycle transitions are one-way: ``pending → active`` or
    ``pending → rejected``. Anything else is a conflict.

Architecture:
    ::

        propose("SE.TRI", ...) ──► pending ──approve──► active
                                       │
                                       └──reject───► rejected

        load_active_tagsets() ──► TaxonomySnapshot (immutable)
                                   ├── is_valid_tagset(code)
                                   ├── resolve_code(code) → code | "SE" | "NC"
                                   └── children(parent) / at_depth(n)

Tags:
    taxonomy, tagset, validation, semantic-spine
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from semspine.core.errors import ConflictError, NotFoundError, ValidationError
from semspine.core.logging import get_logger
from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.timestamps import to_iso8601, utc_now
from semspine.taxonomy.models import (
    MAX_DEPTH,
    SENTINEL_CODE,
    SENTINEL_NAME,
    Tagset,
    TagsetStatus,
    TaxonomySnapshot,
    depth_of,
    is_well_formed,
    parent_of,
    top_level,
)

logger = get_logger(__name__)

_T = TABLES["tagsets"]


class TaxonomyStore(BaseRepository):
    """Reads and lifecycle writes for ``sem_tagsets``."""

    # -- Reads -------------------------------------------------------------

    def load_active_tagsets(self) -> TaxonomySnapshot:
        """All active tagsets as an immutable point-in-time snapshot."""
        rows = self.query(
            f"SELECT * FROM {_T} WHERE status = {self.ph(1)} ORDER BY code",
            (TagsetStatus.ACTIVE.value,),
        )
        return TaxonomySnapshot.of(
            (Tagset.from_row(r) for r in rows),
            taken_at=to_iso8601(utc_now()),
        )

    def is_valid_tagset(self, code: str | None) -> bool:
        """True iff ``code`` and its level-1 domain are both active right now."""
        if not code:
            return False
        wanted = {code, top_level(code)}
        count = self.scalar(
            f"SELECT COUNT(*) FROM {_T} WHERE status = {self.ph(1)} "
            f"AND code IN ({self.ph(1)}, {self.ph(1)})",
            (TagsetStatus.ACTIVE.value, code, top_level(code)),
            default=0,
        )
        return count == len(wanted)

    def get_child_tagsets(
        self,
        parent_code: str | None = None,
        *,
        depth: int | None = None,
    ) -> list[Tagset]:
        """Active children of ``parent_code``, or all active tagsets at ``depth``."""
        if parent_code is None and depth is None:
            raise ValueError("get_child_tagsets needs parent_code or depth")
        clauses = [f"status = {self.ph(1)}"]
        params: list[Any] = [TagsetStatus.ACTIVE.value]
        if parent_code is not None:
            clauses.append(f"parent_code = {self.ph(1)}")
            params.append(parent_code)
        if depth is not None:
            clauses.append(f"depth_level = {self.ph(1)}")
            params.append(depth)
        rows = self.query(
            f"SELECT * FROM {_T} WHERE {' AND '.join(clauses)} ORDER BY code",
            tuple(params),
        )
        return [Tagset.from_row(r) for r in rows]

    def get(self, code: str) -> Tagset | None:
        row = self.query_one(f"SELECT * FROM {_T} WHERE code = {self.ph(1)}", (code,))
        return Tagset.from_row(row) if row else None

    def require(self, code: str) -> Tagset:
        tagset = self.get(code)
        if tagset is None:
            raise NotFoundError(f"Tagset '{code}' not found").with_context(tag_code=code)
        return tagset

    def list_tagsets(
        self,
        status: TagsetStatus | str | None = None,
        *,
        limit: int = 500,
        offset: int = 0,
    ) -> tuple[list[Tagset], int]:
        """Tagsets ordered by code, optionally filtered by status. Returns ``(items, total)``."""
        where = ""
        params: tuple = ()
        if status is not None:
            where = f"WHERE status = {self.ph(1)}"
            params = (TagsetStatus(status).value,)
        total = self.scalar(f"SELECT COUNT(*) FROM {_T} {where}", params, default=0)
        rows = self.query(
            f"SELECT * FROM {_T} {where} ORDER BY code LIMIT {self.ph(1)} OFFSET {self.ph(1)}",
            (*params, limit, offset),
        )
        return [Tagset.from_row(r) for r in rows], total

    # -- Lifecycle ---------------------------------------------------------

    def propose(
        self,
        code: str,
        name: str,
        *,
        description: str | None = None,
        parent_code: str | None = None,
        examples: Iterable[str] = (),
        created_by: str | None = None,
    ) -> Tagset:
        """Create a ``pending`` tagset.

        Raises:
            ValidationError: malformed code, empty name, mismatched or
                missing/rejected parent.
            ConflictError: the code already exists (in any status).
        """
        code = (code or "").strip().upper()
        if not is_well_formed(code) or depth_of(code) > MAX_DEPTH:
            raise ValidationError(
                f"Malformed tagset code '{code}'",
                field="code",
                value=code,
                constraint="XX or XX.SEG[.SEG[.SEG]]",
            )
        if not (name or "").strip():
            raise ValidationError("Tagset name is required", field="name")

        expected_parent = parent_of(code)
        if parent_code is not None and parent_code != expected_parent:
            raise ValidationError(
                f"Parent '{parent_code}' does not match code '{code}'",
                field="parent_code",
                value=parent_code,
                constraint=f"must be {expected_parent!r}",
            )
        if expected_parent is not None:
            parent = self.get(expected_parent)
            if parent is None or parent.status == TagsetStatus.REJECTED:
                raise ValidationError(
                    f"Parent tagset '{expected_parent}' does not exist",
                    field="parent_code",
                    value=expected_parent,
                )

        if self.get(code) is not None:
            raise ConflictError(f"Tagset '{code}' already exists").with_context(tag_code=code)

        tagset = Tagset(
            code=code,
            name=name.strip(),
            description=description,
            parent_code=expected_parent,
            depth_level=depth_of(code),
            status=TagsetStatus.PENDING,
            examples=tuple(examples),
            created_by=created_by,
            created_at=to_iso8601(utc_now()),
        )
        self._insert(tagset)
        self.commit()
        logger.info("tagset_proposed", tag_code=code, created_by=created_by)
        return tagset

    def approve(self, code: str, approved_by: str | None = None) -> Tagset:
        """``pending`` → ``active``. Any other starting state is a conflict.

        A child can only be approved once its parent is active, so every
        active code hangs off an active level-1 domain.
        """
        parent = parent_of(code)
        if parent is not None and not self.is_valid_tagset(parent):
            self.require(code)
            raise ConflictError(
                f"Cannot approve tagset '{code}' before its parent '{parent}' is active"
            ).with_context(tag_code=code)
        now = to_iso8601(utc_now())
        updated = self.execute_rowcount(
            f"UPDATE {_T} SET status = {self.ph(1)}, approved_by = {self.ph(1)}, "
            f"approved_at = {self.ph(1)} WHERE code = {self.ph(1)} AND status = {self.ph(1)}",
            (TagsetStatus.ACTIVE.value, approved_by, now, code, TagsetStatus.PENDING.value),
        )
        self._require_transition(code, updated, "approve")
        self.commit()
        logger.info("tagset_approved", tag_code=code, approved_by=approved_by)
        return self.require(code)

    def reject(self, code: str, reason: str | None = None) -> Tagset:
        """``pending`` → ``rejected``. Any other starting state is a conflict."""
        updated = self.execute_rowcount(
            f"UPDATE {_T} SET status = {self.ph(1)}, rejection_reason = {self.ph(1)} "
            f"WHERE code = {self.ph(1)} AND status = {self.ph(1)}",
            (TagsetStatus.REJECTED.value, reason, code, TagsetStatus.PENDING.value),
        )
        self._require_transition(code, updated, "reject")
        self.commit()
        logger.info("tagset_rejected", tag_code=code, reason=reason)
        return self.require(code)

    def ensure_sentinel(self) -> None:
        """Make sure the ``NC`` sentinel exists and is active."""
        existing = self.get(SENTINEL_CODE)
        if existing is None:
            self._insert(
                Tagset(
                    code=SENTINEL_CODE,
                    name=SENTINEL_NAME,
                    description="Palavra sem classificação semântica determinada",
                    depth_level=1,
                    status=TagsetStatus.ACTIVE,
                    created_by="system",
                    approved_by="system",
                    created_at=to_iso8601(utc_now()),
                    approved_at=to_iso8601(utc_now()),
                )
            )
        elif not existing.is_active:
            self.execute(
                f"UPDATE {_T} SET status = {self.ph(1)} WHERE code = {self.ph(1)}",
                (TagsetStatus.ACTIVE.value, SENTINEL_CODE),
            )
        self.commit()

    def seed(self, tagsets: Iterable[Tagset]) -> int:
        """Insert tagsets that do not exist yet. Returns the number inserted."""
        inserted = 0
        for tagset in tagsets:
            if self.get(tagset.code) is None:
                self._insert(tagset)
                inserted += 1
        self.commit()
        return inserted

    # -- Internal ----------------------------------------------------------

    def _insert(self, tagset: Tagset) -> None:
        row = tagset.to_dict()
        row["examples"] = json.dumps(list(tagset.examples), ensure_ascii=False)
        self.insert(_T, row)

    def _require_transition(self, code: str, updated: int, action: str) -> None:
        if updated:
            return
        current = self.require(code)
        raise ConflictError(
            f"Cannot {action} tagset '{code}' in status '{current.status.value}'"
        ).with_context(tag_code=code)
