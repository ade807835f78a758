"""Read-only telemetry series for the anomaly checks.

All series come back chronological (oldest first) so the checks can take
the last element as the current observation. Hour buckets are the first
13 characters of the stored ISO timestamps (``YYYY-MM-DDTHH``), which
works the same on SQLite and PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from semspine.core.repository import BaseRepository
from semspine.core.schema import TABLES
from semspine.core.timestamps import hour_bucket, to_iso8601


def _floor_hour(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


class TelemetryRepository(BaseRepository):
    """Aggregations over ``sem_chunk_metrics`` and ``sem_llm_usage``."""

    def hourly_words_processed(self, now: datetime, hours: int) -> list[float]:
        """Words processed per completed hour, zero-filled.

        The in-progress hour is excluded. The series starts at the first
        hour in the window that has any data.
        """
        until = _floor_hour(now)
        since = until - timedelta(hours=hours)
        rows = self.query(
            f"""
            SELECT substr(recorded_at, 1, 13) AS bucket, SUM(words_processed) AS words
            FROM {TABLES["chunk_metrics"]}
            WHERE recorded_at >= {self.ph(1)} AND recorded_at < {self.ph(1)}
            GROUP BY substr(recorded_at, 1, 13)
            """,
            (to_iso8601(since), to_iso8601(until)),
        )
        totals = {row["bucket"]: float(row["words"] or 0) for row in rows}
        if not totals:
            return []
        buckets = [hour_bucket(since + timedelta(hours=i)) for i in range(hours)]
        first = next(i for i, b in enumerate(buckets) if b in totals)
        return [totals.get(b, 0.0) for b in buckets[first:]]

    def job_error_ratios(self, now: datetime, hours: int) -> list[float]:
        """failed/processed per job with activity in the window, by last activity."""
        since = now - timedelta(hours=hours)
        rows = self.query(
            f"""
            SELECT job_id,
                   SUM(words_failed) AS failed,
                   SUM(words_processed) AS processed,
                   MAX(recorded_at) AS last_at
            FROM {TABLES["chunk_metrics"]}
            WHERE recorded_at >= {self.ph(1)}
            GROUP BY job_id
            HAVING SUM(words_processed) > 0
            ORDER BY MAX(recorded_at), job_id
            """,
            (to_iso8601(since),),
        )
        return [float(row["failed"] or 0) / float(row["processed"]) for row in rows]

    def hourly_llm_latency(self, now: datetime, hours: int) -> list[float]:
        """Average LLM call latency (ms) per hour that saw calls."""
        since = _floor_hour(now) - timedelta(hours=hours - 1)
        rows = self.query(
            f"""
            SELECT substr(recorded_at, 1, 13) AS bucket, AVG(latency_ms) AS latency
            FROM {TABLES["llm_usage"]}
            WHERE recorded_at >= {self.ph(1)}
            GROUP BY substr(recorded_at, 1, 13)
            ORDER BY substr(recorded_at, 1, 13)
            """,
            (to_iso8601(since),),
        )
        return [float(row["latency"] or 0) for row in rows]

    def tokens_used(self, now: datetime, hours: int) -> int:
        since = now - timedelta(hours=hours)
        total = self.scalar(
            f"""
            SELECT SUM(prompt_tokens + completion_tokens) FROM {TABLES["llm_usage"]}
            WHERE recorded_at >= {self.ph(1)}
            """,
            (to_iso8601(since),),
            default=0,
        )
        return int(total)
