"""
FastAPI dependency injection: shared singletons and per-request factories.

Usage in routers::

    from semspine.api.deps import OpContext

    @router.get("/jobs")
    def list_jobs(ctx: OpContext):
        ...

Settings are loaded once per process; every request gets its own
connection and :class:`OperationContext`. The LLM client is built per
request over that connection so usage rows land in the same transaction
scope as the classifications they paid for.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Request

from semspine.api.settings import SemSpineAPISettings
from semspine.core.connection import create_connection
from semspine.llm.client import LLMClient
from semspine.ops.context import OperationContext
from semspine.ops.services import llm_client

# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> SemSpineAPISettings:
    """Cached settings, loaded once per process."""
    return SemSpineAPISettings()


# ── Database connection (per-request) ────────────────────────────────────


def get_connection(
    settings: Annotated[SemSpineAPISettings, Depends(get_settings)],
) -> Generator[Any, None, None]:
    """Yield a database connection for the request lifespan."""
    conn, _info = create_connection(settings.resolve_database_url(), data_dir=settings.data_dir)
    try:
        yield conn
    finally:
        if hasattr(conn, "close"):
            conn.close()


# ── LLM client (per-request) ─────────────────────────────────────────────


def get_llm_client(
    settings: Annotated[SemSpineAPISettings, Depends(get_settings)],
    conn: Annotated[Any, Depends(get_connection)],
) -> LLMClient | None:
    """An LLM client when an API key is configured, else ``None``."""
    return llm_client(settings, conn)


# ── Operation context (per-request) ──────────────────────────────────────


def get_operation_context(
    request: Request,
    settings: Annotated[SemSpineAPISettings, Depends(get_settings)],
    conn: Annotated[Any, Depends(get_connection)],
    llm: Annotated[LLMClient | None, Depends(get_llm_client)],
) -> OperationContext:
    """Build an :class:`OperationContext` from the current request."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    return OperationContext(
        conn=conn,
        settings=settings,
        llm=llm,
        request_id=request_id,
        caller="api",
        user=request.headers.get("X-User"),
    )


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[SemSpineAPISettings, Depends(get_settings)]
Conn = Annotated[Any, Depends(get_connection)]
OpContext = Annotated[OperationContext, Depends(get_operation_context)]
