"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers and lifespan
events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root: middleware, routers
    and the optional background loops (job driver, anomaly monitor) are
    wired here so the rest of the codebase never touches ``FastAPI``.

Architecture:
    ::

        Request → Timing → RequestID → CORS → router → ops → domain
                                                      ↓
                                  OperationResult → SuccessResponse
                                                  → ProblemDetail (4xx/5xx)

        Lifespan (optional, per settings):
            JobDriver     ── ticks runnable jobs every tick_interval_seconds
            MonitorLoop   ── sweeps anomaly checks every monitor_interval_seconds

Tags:
    api, app-factory, composition-root, FastAPI, semantic-spine
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from semspine.api.deps import Conn, get_settings
from semspine.api.middleware.errors import unhandled_exception_handler
from semspine.api.middleware.request_id import RequestIDMiddleware
from semspine.api.middleware.timing import TimingMiddleware
from semspine.api.settings import SemSpineAPISettings
from semspine.api.utils import _payload
from semspine.core.connection import create_connection
from semspine.core.logging import get_logger

logger = get_logger("semspine.api")


def _start_background(settings: SemSpineAPISettings) -> tuple[Any, list[Any]]:
    """Start the configured loops on a dedicated connection."""
    from semspine.jobs.driver import JobDriver
    from semspine.monitor.monitor import MonitorLoop
    from semspine.ops.context import OperationContext
    from semspine.ops.services import anomaly_monitor, llm_client, orchestrator

    conn, _info = create_connection(settings.resolve_database_url(), data_dir=settings.data_dir)
    ctx = OperationContext(
        conn=conn,
        settings=settings,
        llm=llm_client(settings, conn),
        caller="driver",
    )
    loops: list[Any] = []
    if settings.run_job_driver:
        loops.append(JobDriver(orchestrator(ctx), interval_seconds=settings.tick_interval_seconds))
    if settings.run_monitor:
        loops.append(MonitorLoop(anomaly_monitor(ctx), interval_seconds=settings.monitor_interval_seconds))
    for loop in loops:
        loop.start()
    return conn, loops


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: schema bootstrap, background loops, shutdown."""
    settings: SemSpineAPISettings = app.state.settings
    logger.info("api_starting", version=app.version)

    conn = None
    try:
        conn, info = create_connection(
            settings.resolve_database_url(),
            init_schema=True,
            data_dir=settings.data_dir,
        )
        logger.info("database_initialized", backend=info.backend)
    except Exception as exc:
        logger.warning("database_auto_init_failed", error=str(exc))
    finally:
        if conn is not None and hasattr(conn, "close"):
            conn.close()

    bg_conn, loops = None, []
    if settings.run_job_driver or settings.run_monitor:
        bg_conn, loops = _start_background(settings)
        logger.info("background_loops_started", loops=len(loops))

    yield

    for loop in loops:
        loop.stop()
    if bg_conn is not None and hasattr(bg_conn, "close"):
        bg_conn.close()
    logger.info("api_shutting_down")


def create_app(*, settings: SemSpineAPISettings | None = None) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : SemSpineAPISettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from semspine.api.routers import anomalies, cache, jobs, tagsets

    prefix = settings.api_prefix
    app.include_router(tagsets.router, prefix=prefix, tags=["tagsets"])
    app.include_router(jobs.router, prefix=prefix, tags=["jobs"])
    app.include_router(cache.router, prefix=prefix, tags=["cache"])
    app.include_router(anomalies.router, prefix=prefix, tags=["anomalies"])

    @app.get("/health", tags=["health"])
    def health(conn: Conn) -> dict[str, Any]:
        """Liveness plus database connectivity, at the root for container probes."""
        from semspine.ops.context import OperationContext
        from semspine.ops.database import check_database_health

        db = check_database_health(OperationContext(conn=conn, settings=settings, caller="api"))
        report = _payload(db.data) if db.data else {}
        return {
            "status": "healthy" if report.get("connected") else "degraded",
            "service": "semantic-spine",
            "version": settings.api_version,
            "database": report,
        }

    return app
