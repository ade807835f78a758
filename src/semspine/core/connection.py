"""Connection factory: create database connections from URL strings.

Every entry point (CLI, API, job driver, monitor loop) obtains its
connection through :func:`create_connection` rather than importing
backend-specific classes.

Supported URL schemes
---------------------
==================  ==========================================  ============
Scheme              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/semspine.db``                       SQLite file
``postgresql``      ``postgresql://user:pw@host:port/db``        PostgreSQL
``postgres``        ``postgres://user:pw@host:port/db``          PostgreSQL
==================  ==========================================  ============

Usage
-----
::

    from semspine.core.connection import create_connection

    conn, info = create_connection("sqlite:///semspine.db", init_schema=True)
    print(info)
    # ConnectionInfo(backend='sqlite', persistent=True, path='/abs/semspine.db')
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from semspine.core.errors import DatabaseConnectionError
from semspine.core.logging import get_logger

logger = get_logger(__name__)


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    """Backend identifier: ``"sqlite"`` or ``"postgresql"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the connection."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def is_postgres(self) -> bool:
        return self.backend == "postgresql"


# ── Backends ─────────────────────────────────────────────────────────────


def _create_sqlite_memory() -> tuple[Any, ConnectionInfo]:
    from semspine.ops.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    return conn, ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")


def _create_sqlite_file(path_str: str) -> tuple[Any, ConnectionInfo]:
    from semspine.ops.sqlite_conn import SqliteConnection

    path = Path(path_str).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    resolved = str(path.resolve())

    conn = SqliteConnection(resolved)
    info = ConnectionInfo(
        backend="sqlite",
        persistent=True,
        url=path_str,
        resolved_path=resolved,
    )
    return conn, info


def _create_postgresql(url: str) -> tuple[Any, ConnectionInfo]:
    """Create a PostgreSQL connection via the SQLAlchemy bridge."""
    from semspine.core.orm.session import (
        SAConnectionBridge,
        SemSpineSession,
        create_semspine_engine,
    )

    try:
        engine = create_semspine_engine(url)
        session = SemSpineSession(bind=engine)
        conn = SAConnectionBridge(session)
        conn.execute("SELECT 1")
    except Exception as exc:
        raise DatabaseConnectionError(
            f"Cannot connect to PostgreSQL: {exc}", cause=exc
        ) from exc
    return conn, ConnectionInfo(backend="postgresql", persistent=True, url=url)


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``.

    ``scheme`` is one of ``"memory"``, ``"sqlite"``, ``"postgresql"``,
    ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    if db.startswith(("postgresql://", "postgres://")):
        return "postgresql", db

    if db.startswith(("postgresql+", "postgres+")):
        # postgresql+psycopg://... keeps its driver for SQLAlchemy
        return "postgresql", db

    return "file", db


# ── Main factory ─────────────────────────────────────────────────────────


def create_connection(
    db: str | None = None,
    *,
    init_schema: bool = False,
    data_dir: str | Path | None = None,
) -> tuple[Any, ConnectionInfo]:
    """Create a database connection from a URL, path, or keyword.

    Parameters
    ----------
    db:
        ``None``/``"memory"`` for in-memory SQLite, a file path or
        ``sqlite:///`` URL for file SQLite, or a ``postgresql://`` URL.
    init_schema:
        If ``True``, create the pipeline tables (idempotent) and seed the
        ``NC`` sentinel tagset.
    data_dir:
        Resolve relative SQLite paths within this directory.

    Raises
    ------
    DatabaseConnectionError
        If a PostgreSQL server cannot be reached.
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn, info = _create_sqlite_memory()
    elif scheme in ("sqlite", "file"):
        if data_dir and not Path(target).is_absolute():
            target = str(Path(data_dir).expanduser() / target)
        conn, info = _create_sqlite_file(target)
    else:
        conn, info = _create_postgresql(target)

    if init_schema:
        _init_schema(conn)

    logger.debug("connection_created", backend=info.backend, persistent=info.persistent)
    return conn, info


def _init_schema(conn: Any) -> None:
    from semspine.core.schema import create_tables
    from semspine.taxonomy.store import TaxonomyStore

    create_tables(conn)
    TaxonomyStore(conn).ensure_sentinel()
    conn.commit()
