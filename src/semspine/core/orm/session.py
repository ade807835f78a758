"""
SQLAlchemy bridge for non-SQLite backends.

Repositories speak the qmark ``Connection`` protocol. For PostgreSQL the
connection is a SQLAlchemy ``Session`` wrapped in :class:`SAConnectionBridge`,
which rewrites ``?`` placeholders into named binds and exposes the
DB-API bits (``description``, ``rowcount``) the repositories use.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session


def create_semspine_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``).
    echo:
        If ``True``, log all SQL to stdout.
    pool_size:
        Connection pool size (ignored for SQLite).
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout = 5000")
            cursor.close()

        return engine

    if pool_size is not None:
        kwargs["pool_size"] = pool_size
    return _sa_create_engine(url, echo=echo, **kwargs)


class SemSpineSession(Session):
    """Session with ``expire_on_commit=False``."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def _rewrite_qmarks(sql: str) -> str:
    """Turn ``?`` placeholders into ``:p0, :p1, ...`` outside string literals."""
    out: list[str] = []
    idx = 0
    in_literal = False
    for ch in sql:
        if ch == "'":
            in_literal = not in_literal
            out.append(ch)
        elif ch == "?" and not in_literal:
            out.append(f":p{idx}")
            idx += 1
        else:
            out.append(ch)
    return "".join(out)


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Session`` look like a ``Connection``.

    Implements: ``execute``, ``executemany``, ``fetchone``, ``fetchall``,
    ``commit``, ``rollback``, ``close`` plus ``description``/``rowcount``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._last_result: Any = None

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> SAConnectionBridge:
        if parameters:
            mapping = {f"p{i}": v for i, v in enumerate(parameters)}
            self._last_result = self._session.execute(text(_rewrite_qmarks(sql)), mapping)
        else:
            self._last_result = self._session.execute(text(sql))
        return self

    def executemany(self, sql: str, seq_of_parameters: Sequence[Sequence[Any]]) -> SAConnectionBridge:
        for params in seq_of_parameters:
            self.execute(sql, params)
        return self

    # --- fetch ---

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        row = self._last_result.fetchone()
        return tuple(row) if row is not None else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        if self._last_result is None or not self._last_result.returns_rows:
            return []
        return [tuple(r) for r in self._last_result.fetchall()]

    # --- transaction ---

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()

    # --- DB-API bits used by BaseRepository ---

    @property
    def description(self) -> list[tuple[Any, ...]] | None:
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        return [(k, None, None, None, None, None, None) for k in self._last_result.keys()]

    @property
    def rowcount(self) -> int:
        if self._last_result is None:
            return -1
        return self._last_result.rowcount

    @property
    def session(self) -> Session:
        """Access the underlying SA session."""
        return self._session
