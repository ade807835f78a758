"""
API-specific settings.

Extends :class:`semspine.core.settings.SemSpineSettings` with the
parameters of the REST transport (bind address, prefix, CORS) and the
switches for the in-process background loops.
"""

from __future__ import annotations

from pydantic import Field

from semspine.core.settings import SemSpineSettings


class SemSpineAPISettings(SemSpineSettings):
    """Settings for the semantic-spine REST API.

    Order of precedence (highest → lowest):
        1. Environment variables (``SEMSPINE_API_PREFIX``, ``SEMSPINE_PORT``, ...)
        2. ``.env`` file
        3. Defaults below
    """

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=12100, description="Bind port")

    # ── API ──────────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api/v1", description="URL prefix for all endpoints")
    api_title: str = Field(default="semantic-spine API", description="OpenAPI title")
    api_version: str = Field(default="0.1.0", description="OpenAPI version string")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # ── Background loops ─────────────────────────────────────────────────
    run_job_driver: bool = Field(default=False, description="Tick runnable jobs inside the API process")
    run_monitor: bool = Field(default=False, description="Run the anomaly sweep inside the API process")
