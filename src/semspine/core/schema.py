"""
Tables of the semantic annotation pipeline.

Defines table names and DDL for the taxonomy, the corpus, the dialect
lexicon, the classification cache, annotation jobs, operational telemetry
and anomaly detections.

Architecture:
    ::

        Table Registry (TABLES):
        ┌────────────────────────────────────────────────────────────┐
        │ tagsets        → sem_tagsets        (taxonomy)             │
        │ songs          → sem_songs          (corpus, read-mostly)  │
        │ lexicon        → sem_lexicon        (curated dialect dict) │
        │ cache          → sem_cache          (word × context → tag) │
        │ jobs           → sem_jobs           (resumable runs)       │
        │ chunk_metrics  → sem_chunk_metrics  (per-chunk telemetry)  │
        │ llm_usage      → sem_llm_usage      (per-call telemetry)   │
        │ anomalies      → sem_anomalies      (monitor alerts)       │
        └────────────────────────────────────────────────────────────┘

        Natural keys:
        ┌────────────────────────────────────────────────────────────┐
        │ sem_tagsets  PRIMARY KEY (code)                            │
        │ sem_cache    PRIMARY KEY (word, context_hash)              │
        │              ON CONFLICT upsert guarded by source          │
        └────────────────────────────────────────────────────────────┘

    Timestamps are ISO 8601 UTC strings with microsecond precision
    (see :mod:`semspine.core.timestamps`); JSON columns are TEXT.
    The DDL sticks to TEXT/INTEGER/REAL so it runs unchanged on SQLite
    and PostgreSQL.

Tags:
    schema, ddl, sqlite, postgresql, semantic-spine
"""

TABLES = {
    "tagsets": "sem_tagsets",
    "songs": "sem_songs",
    "lexicon": "sem_lexicon",
    "cache": "sem_cache",
    "jobs": "sem_jobs",
    "chunk_metrics": "sem_chunk_metrics",
    "llm_usage": "sem_llm_usage",
    "anomalies": "sem_anomalies",
}


DDL = {
    # =========================================================================
    # SEM_TAGSETS: hierarchical taxonomy. Only status='active' rows may be
    # written into sem_cache. Approval/rejection are one-way.
    # =========================================================================
    "tagsets": """
        CREATE TABLE IF NOT EXISTS sem_tagsets (
            code TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            parent_code TEXT,
            depth_level INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            examples TEXT NOT NULL DEFAULT '[]',
            created_by TEXT,
            approved_by TEXT,
            approved_at TEXT,
            rejection_reason TEXT,
            created_at TEXT NOT NULL
        )
    """,
    "tagsets_status_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_tagsets_status
        ON sem_tagsets (status, depth_level)
    """,
    # =========================================================================
    # SEM_SONGS: the corpus. A target (artist or corpus id) owns an ordered
    # list of songs; order is (position, title, id) and must stay stable
    # while a job is running.
    # =========================================================================
    "songs": """
        CREATE TABLE IF NOT EXISTS sem_songs (
            id TEXT PRIMARY KEY,
            target_id TEXT NOT NULL,
            title TEXT NOT NULL,
            lyrics TEXT,
            position INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """,
    "songs_target_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_songs_target
        ON sem_songs (target_id, position)
    """,
    # =========================================================================
    # SEM_LEXICON: curated dialect/grammar dictionary (stage 1 of the cascade)
    # =========================================================================
    "lexicon": """
        CREATE TABLE IF NOT EXISTS sem_lexicon (
            id TEXT PRIMARY KEY,
            headword TEXT NOT NULL,
            headword_normalized TEXT NOT NULL,
            variants TEXT NOT NULL DEFAULT '[]',
            grammatical_class TEXT,
            thematic_categories TEXT NOT NULL DEFAULT '[]',
            definition TEXT,
            origin TEXT,
            extraction_confidence REAL,
            human_validated INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """,
    "lexicon_headword_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_lexicon_headword
        ON sem_lexicon (headword_normalized)
    """,
    # =========================================================================
    # SEM_CACHE: memoized classifications keyed by (word, context_hash).
    # source='curation' rows are never overwritten by automated writers.
    # =========================================================================
    "cache": """
        CREATE TABLE IF NOT EXISTS sem_cache (
            word TEXT NOT NULL,
            context_hash TEXT NOT NULL,
            tag_code TEXT NOT NULL,
            confidence REAL NOT NULL,
            source TEXT NOT NULL,
            justification TEXT,
            hit_count INTEGER NOT NULL DEFAULT 0,
            curated_by TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            PRIMARY KEY (word, context_hash)
        )
    """,
    "cache_tag_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_cache_tag
        ON sem_cache (tag_code, source)
    """,
    "cache_expiry_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_cache_expiry
        ON sem_cache (expires_at)
    """,
    # =========================================================================
    # SEM_JOBS: one resumable annotation run per row. The cursor
    # (current_song_index, current_word_index) is the next unprocessed word.
    # =========================================================================
    "jobs": """
        CREATE TABLE IF NOT EXISTS sem_jobs (
            id TEXT PRIMARY KEY,
            target_id TEXT NOT NULL,
            status TEXT NOT NULL,
            total_songs INTEGER NOT NULL,
            total_words INTEGER NOT NULL,
            processed_words INTEGER NOT NULL DEFAULT 0,
            cached_words INTEGER NOT NULL DEFAULT 0,
            new_words INTEGER NOT NULL DEFAULT 0,
            current_song_index INTEGER NOT NULL DEFAULT 0,
            current_word_index INTEGER NOT NULL DEFAULT 0,
            chunk_size INTEGER NOT NULL,
            chunks_processed INTEGER NOT NULL DEFAULT 0,
            started_at TEXT NOT NULL,
            last_chunk_at TEXT,
            finished_at TEXT,
            error_message TEXT
        )
    """,
    "jobs_target_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_jobs_target
        ON sem_jobs (target_id, status)
    """,
    # At most one non-terminal job per target.
    "jobs_active_target_idx": """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_sem_jobs_active_target
        ON sem_jobs (target_id)
        WHERE status IN ('iniciado', 'processando', 'pausado')
    """,
    # =========================================================================
    # Telemetry read by the anomaly monitor
    # =========================================================================
    "chunk_metrics": """
        CREATE TABLE IF NOT EXISTS sem_chunk_metrics (
            id TEXT PRIMARY KEY,
            job_id TEXT NOT NULL,
            recorded_at TEXT NOT NULL,
            words_processed INTEGER NOT NULL,
            words_failed INTEGER NOT NULL DEFAULT 0,
            cached_words INTEGER NOT NULL DEFAULT 0,
            duration_ms REAL NOT NULL DEFAULT 0
        )
    """,
    "chunk_metrics_time_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_chunk_metrics_time
        ON sem_chunk_metrics (recorded_at)
    """,
    "llm_usage": """
        CREATE TABLE IF NOT EXISTS sem_llm_usage (
            id TEXT PRIMARY KEY,
            recorded_at TEXT NOT NULL,
            model TEXT NOT NULL,
            purpose TEXT NOT NULL,
            prompt_tokens INTEGER NOT NULL DEFAULT 0,
            completion_tokens INTEGER NOT NULL DEFAULT 0,
            latency_ms REAL NOT NULL DEFAULT 0,
            success INTEGER NOT NULL DEFAULT 1,
            error TEXT
        )
    """,
    "llm_usage_time_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_llm_usage_time
        ON sem_llm_usage (recorded_at)
    """,
    # =========================================================================
    # SEM_ANOMALIES: monitor alerts. Never deleted; resolved rows are an
    # audit trail.
    # =========================================================================
    "anomalies": """
        CREATE TABLE IF NOT EXISTS sem_anomalies (
            id TEXT PRIMARY KEY,
            check_name TEXT NOT NULL,
            anomaly_type TEXT NOT NULL,
            severity TEXT NOT NULL,
            expected_value REAL,
            actual_value REAL,
            deviation_score REAL,
            context TEXT NOT NULL DEFAULT '{}',
            detected_at TEXT NOT NULL,
            resolved_at TEXT,
            acknowledged_at TEXT,
            acknowledged_by TEXT,
            resolution_notes TEXT,
            auto_resolved INTEGER NOT NULL DEFAULT 0
        )
    """,
    "anomalies_check_idx": """
        CREATE INDEX IF NOT EXISTS idx_sem_anomalies_check
        ON sem_anomalies (check_name, resolved_at, detected_at)
    """,
}


def create_tables(conn) -> None:
    """
    Create all pipeline tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in DDL.items():
        conn.execute(ddl)
    conn.commit()
