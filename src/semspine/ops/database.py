"""
Database operations.

Thin wrappers around :mod:`semspine.core.schema` for table creation,
default taxonomy seeding and health checks.
"""

from __future__ import annotations

import time

from semspine.core.logging import get_logger
from semspine.core.schema import TABLES, create_tables
from semspine.ops.context import OperationContext
from semspine.ops.responses import DatabaseHealth, DatabaseInitResult
from semspine.ops.result import OperationResult, fail_from_error, start_timer
from semspine.ops.services import taxonomy_store
from semspine.taxonomy.seed import seed_default_taxonomy

logger = get_logger(__name__)


def initialize_database(
    ctx: OperationContext,
    *,
    seed: bool = True,
) -> OperationResult[DatabaseInitResult]:
    """Create all pipeline tables (idempotent) and optionally seed the taxonomy."""
    timer = start_timer()
    tables = sorted(TABLES.values())

    if ctx.dry_run:
        return OperationResult.ok(
            DatabaseInitResult(tables_created=tables, dry_run=True),
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        create_tables(ctx.conn)
        store = taxonomy_store(ctx)
        seeded = seed_default_taxonomy(store) if seed else 0
        store.ensure_sentinel()
        logger.info("database_initialized", tables=len(tables), seeded_tagsets=seeded)
        return OperationResult.ok(
            DatabaseInitResult(tables_created=tables, seeded_tagsets=seeded),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return fail_from_error(exc, elapsed_ms=timer.elapsed_ms)


def check_database_health(ctx: OperationContext) -> OperationResult[DatabaseHealth]:
    """Check database connectivity and table status."""
    timer = start_timer()

    try:
        start = time.perf_counter()
        ctx.conn.execute("SELECT 1")
        ctx.conn.fetchone()
        latency = (time.perf_counter() - start) * 1000

        table_count = 0
        for table in TABLES.values():
            try:
                ctx.conn.execute(f"SELECT 1 FROM {table} LIMIT 0")  # noqa: S608
                table_count += 1
            except Exception as exc:
                logger.debug("table_missing", table=table, error=str(exc))
                ctx.conn.rollback()

        return OperationResult.ok(
            DatabaseHealth(
                connected=True,
                backend=_detect_backend(ctx.conn),
                table_count=table_count,
                latency_ms=round(latency, 2),
            ),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.ok(
            DatabaseHealth(connected=False),
            warnings=[f"Health check error: {exc}"],
            elapsed_ms=timer.elapsed_ms,
        )


def _detect_backend(conn) -> str:
    return "postgresql" if hasattr(conn, "session") else "sqlite"
