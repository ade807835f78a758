"""
Dialect-aware base class for repositories.

Every store in semantic-spine (tagsets, cache, jobs, corpus, anomalies,
telemetry) is a :class:`BaseRepository` subclass that turns raw rows into
typed entities at its boundary.
"""

from __future__ import annotations

from typing import Any

from semspine.core.dialect import Dialect, SQLiteDialect
from semspine.core.protocols import Connection


class BaseRepository:
    """Portable helpers for building and executing SQL.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use. Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    # -- Convenience shortcuts ---------------------------------------------

    def ph(self, count: int) -> str:
        """Shortcut for ``self.dialect.placeholders(count)``.

        Embed directly in f-strings:
            f"SELECT * FROM t WHERE id = {self.ph(1)}"
        """
        return self.dialect.placeholders(count)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        return self.conn.execute(sql, params)

    def execute_rowcount(self, sql: str, params: tuple = ()) -> int:
        """Execute a DML statement and return the number of affected rows."""
        cursor = self.conn.execute(sql, params)
        rowcount = getattr(cursor, "rowcount", None)
        return rowcount if isinstance(rowcount, int) and rowcount >= 0 else 0

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        Mapping rows (``sqlite3.Row``) are converted directly; plain tuples
        are zipped with the cursor ``description``.
        """
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []
        if hasattr(rows[0], "keys"):
            return [dict(row) for row in rows]
        description = getattr(cursor, "description", None)
        if description:
            columns = [desc[0] for desc in description]
            return [dict(zip(columns, row, strict=False)) for row in rows]
        return [{i: v for i, v in enumerate(row)} for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = (), default: Any = None) -> Any:
        """Execute a SELECT and return the first column of the first row."""
        row = self.query_one(sql, params)
        if not row:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    # -- Insert helpers ----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> Any:
        """Insert a single row from a dict."""
        columns = list(data.keys())
        values = list(data.values())
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.ph(len(values))})"
        return self.conn.execute(sql, tuple(values))

    def insert_many(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert multiple rows from a list of dicts. Returns the row count."""
        if not rows:
            return 0
        columns = list(rows[0].keys())
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.ph(len(columns))})"
        params = [tuple(row[col] for col in columns) for row in rows]
        self.conn.executemany(sql, params)
        return len(rows)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()


__all__ = [
    "BaseRepository",
]
