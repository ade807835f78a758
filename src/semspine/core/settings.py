"""
Settings for semantic-spine, loaded from the environment.

Order of precedence (highest → lowest):
    1. Environment variables (``SEMSPINE_CHUNK_SIZE``, ``SEMSPINE_LLM_API_KEY``, ...)
    2. ``.env`` file
    3. Defaults below

The thresholds of the anomaly monitor and the time constants of dedup and
auto-resolution are product-tuning values and live here rather than in
code; :class:`semspine.monitor.config.MonitorConfig` and
:class:`semspine.jobs.models.JobConfig` are built from these fields.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SemSpineSettings(BaseSettings):
    """Core settings shared by the CLI, the API and the job driver."""

    model_config = SettingsConfigDict(
        env_prefix="SEMSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool | None = Field(
        default=None, description="Force JSON logs (None = auto-detect from tty)"
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = Field(
        default="sqlite:///semspine.db",
        description="sqlite:///path, a bare file path, :memory:, or postgresql://",
    )
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".semspine",
        description="Directory for relative SQLite paths",
    )

    # ── Cascade ──────────────────────────────────────────────────
    context_window: int = Field(default=5, ge=1, description="Tokens on each side of a word")
    lexicon_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    cache_ttl_days: int = Field(default=30, ge=1)

    # ── LLM gateway ──────────────────────────────────────────────
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_api_key: SecretStr | None = None
    llm_model: str = "google/gemini-2.5-flash"
    llm_timeout_seconds: float = 60.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 4096
    llm_batch_size: int = Field(default=40, ge=1, description="Words per LLM prompt")
    llm_token_budget: int | None = Field(
        default=None, description="Per-process token ceiling (None = unlimited)"
    )

    # ── Jobs ─────────────────────────────────────────────────────
    chunk_size: int = Field(default=50, ge=1)
    tick_interval_seconds: float = 2.0
    stall_after_seconds: float = 120.0
    max_failed_chunks: int = Field(default=10, ge=0, description="0 disables the repeated-failure stop")

    # ── Anomaly monitor ──────────────────────────────────────────
    monitor_interval_seconds: float = 300.0
    throughput_lookback_hours: int = 48
    throughput_warning_z: float = -2.0
    throughput_critical_z: float = -3.0
    error_window_hours: int = 24
    error_iqr_k: float = 1.5
    error_critical_ratio: float = 0.5
    latency_lookback_hours: int = 168
    latency_warning_z: float = 2.5
    latency_critical_z: float = 4.0
    quota_window_hours: int = 24
    daily_token_limit: int = 1_000_000
    quota_warning_ratio: float = 0.8
    quota_critical_ratio: float = 0.95
    dedup_window_minutes: int = 60
    auto_resolve_after_minutes: int = 120
    min_stddev_ratio: float = Field(default=0.05, ge=0.0)

    def resolve_database_url(self) -> str:
        """Resolve relative SQLite file paths against ``data_dir``."""
        url = self.database_url
        if url in ("", "memory", ":memory:") or ("://" in url and not url.startswith("sqlite")):
            return url
        path = url.split("sqlite:///", 1)[1] if url.startswith("sqlite:///") else url
        if path in ("", ":memory:") or Path(path).is_absolute():
            return url
        return str(Path(self.data_dir).expanduser() / path)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, SemSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> SemSpineSettings:
    """Load, validate, and cache the process-wide :class:`SemSpineSettings`."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = SemSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    _settings_cache.clear()
