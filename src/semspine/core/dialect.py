"""
SQL dialect helpers.

Repositories build SQL with dialect placeholders instead of hard-coding
``?`` so the statement text stays portable. Both supported backends speak
qmark style at the repository boundary: ``sqlite3`` natively, and the
SQLAlchemy bridge (:class:`semspine.core.orm.session.SAConnectionBridge`)
by rewriting ``?`` into named binds before handing the statement to the
PostgreSQL driver. ``INSERT ... ON CONFLICT ... DO UPDATE ... WHERE`` is
understood by SQLite (3.24+) and PostgreSQL alike, which is what the
classification cache relies on for its curation guard.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """What repositories need from a SQL dialect."""

    @property
    def name(self) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def placeholders(self, count: int) -> str: ...

    def upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        *,
        update_columns: list[str] | None = None,
        where: str | None = None,
    ) -> str: ...


class SQLiteDialect:
    """Qmark dialect: ``?`` placeholders, ``ON CONFLICT`` upserts."""

    @property
    def name(self) -> str:
        return "sqlite"

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    # -- DML ---------------------------------------------------------------

    def upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        *,
        update_columns: list[str] | None = None,
        where: str | None = None,
    ) -> str:
        """Build an upsert, optionally guarded by a ``WHERE`` on the existing row.

        When the guard evaluates false the conflicting row is left untouched
        and the statement affects zero rows.
        """
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(key_columns)
        if update_columns is None:
            update_columns = [c for c in columns if c not in key_columns]
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_columns)
        sql = (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )
        if where:
            sql += f" WHERE {where}"
        return sql


__all__ = ["Dialect", "SQLiteDialect"]
