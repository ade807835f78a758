"""Tests for semspine.jobs: lifecycle, the chunk loop, resumability and progress."""

from datetime import UTC, datetime, timedelta

import pytest

from semspine.cache.models import CacheSource
from semspine.core.errors import ConflictError, NotFoundError, ValidationError
from semspine.core.timestamps import to_iso8601
from semspine.jobs.driver import JobDriver
from semspine.jobs.models import AnnotationJob, JobConfig, JobProgress, JobStatus, SongStatus, format_eta
from semspine.jobs.orchestrator import JobOrchestrator, TickOutcome
from semspine.jobs.repository import JobRepository

# Nonsense words: no rule, lexicon or cache entry resolves them locally.
SONGS = [
    ("Canção A", "quux blorf zorp"),
    ("Canção B", "frob plugh xyzzy"),
    ("Canção C", "grault garply"),
]


def _seed(corpus, target="gaucho", songs=SONGS):
    for position, (title, lyrics) in enumerate(songs):
        corpus.add_song(target, title, lyrics, position=position)


def _orchestrator(conn, corpus, cascade, clock, **config):
    config.setdefault("chunk_size", 4)
    config.setdefault("max_failed_chunks", 0)
    return JobOrchestrator(JobRepository(conn), corpus, cascade, config=JobConfig(**config), clock=clock)


class TestCorpus:
    def test_songs_ordered_by_position(self, corpus):
        corpus.add_song("t", "Segunda", "b", position=1)
        corpus.add_song("t", "Primeira", "a", position=0)
        assert [s.title for s in corpus.list_songs("t")] == ["Primeira", "Segunda"]

    def test_tokenized_shape(self, corpus):
        corpus.add_song("t", "Vazia", "")
        corpus.add_song("t", "Cheia", "Bah, tchê! Que saudade.", position=1)
        loaded = corpus.load("t")
        assert loaded.total_songs == 2
        assert loaded.total_words == 4
        assert loaded.songs[1].tokens == ("bah", "tchê", "que", "saudade")

    def test_title_required(self, corpus):
        with pytest.raises(ValidationError):
            corpus.add_song("t", "", "letra")

    def test_targets(self, corpus):
        _seed(corpus)
        corpus.add_song("outro", "X", "y")
        assert [(t["target_id"], t["songs"]) for t in corpus.targets()] == [("gaucho", 3), ("outro", 1)]


class TestStart:
    def test_records_totals(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        assert job.status == JobStatus.INICIADO
        assert job.total_songs == 3
        assert job.total_words == 8
        assert job.cursor == (0, 0)
        assert job.chunk_size == 4

    def test_chunk_size_override(self, orchestrator, corpus):
        _seed(corpus)
        assert orchestrator.start_job("gaucho", chunk_size=2).chunk_size == 2

    def test_empty_target(self, orchestrator):
        with pytest.raises(ValidationError):
            orchestrator.start_job("ninguem")

    def test_target_with_only_empty_songs(self, orchestrator, corpus):
        corpus.add_song("t", "Instrumental", None)
        with pytest.raises(ValidationError):
            orchestrator.start_job("t")

    def test_one_active_job_per_target(self, orchestrator, corpus):
        _seed(corpus)
        orchestrator.start_job("gaucho")
        with pytest.raises(ConflictError):
            orchestrator.start_job("gaucho")

    def test_new_job_after_terminal(self, orchestrator, corpus):
        _seed(corpus)
        first = orchestrator.start_job("gaucho")
        orchestrator.cancel_job(first.id)
        assert orchestrator.start_job("gaucho").id != first.id

    def test_store_refuses_second_active_job(self, conn):
        jobs = JobRepository(conn)

        def job(job_id, status):
            return AnnotationJob(
                id=job_id,
                target_id="t",
                status=status,
                total_songs=1,
                total_words=3,
                chunk_size=4,
                started_at="2026-03-02T12:00:00Z",
            )

        jobs.create(job("j1", JobStatus.PROCESSANDO))
        with pytest.raises(ConflictError):
            jobs.create(job("j2", JobStatus.PROCESSANDO))
        assert jobs.get("j2") is None
        assert jobs.get("j1").status == JobStatus.PROCESSANDO

        jobs.create(job("j3", JobStatus.CANCELADO))
        assert jobs.get("j3") is not None

    def test_unknown_job(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.get_job("nope")
        with pytest.raises(NotFoundError):
            orchestrator.tick("nope")


class TestChunkLoop:
    def test_runs_to_completion(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        done = orchestrator.run_to_completion(job.id)
        assert done.status == JobStatus.CONCLUIDO
        assert done.processed_words == done.total_words == 8
        assert done.chunks_processed == 2
        assert done.current_song_index == done.total_songs
        assert done.finished_at is not None

    def test_chunks_cross_song_boundaries(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        result = orchestrator.tick(job.id)
        assert result.outcome == TickOutcome.ADVANCED
        assert result.words == 4
        assert result.job.status == JobStatus.PROCESSANDO
        assert result.job.cursor == (1, 1)

    def test_progress_is_monotonic(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho", chunk_size=3)
        seen = [0]
        while True:
            result = orchestrator.tick(job.id)
            if result.outcome != TickOutcome.ADVANCED:
                break
            seen.append(result.job.processed_words)
            if result.job.is_terminal:
                break
        assert seen == sorted(seen)
        assert seen[-1] == 8

    def test_empty_songs_are_skipped(self, orchestrator, corpus):
        corpus.add_song("t", "Vazia", "", position=0)
        corpus.add_song("t", "Cheia", "quux blorf", position=1)
        corpus.add_song("t", "Vazia 2", "", position=2)
        job = orchestrator.start_job("t")
        done = orchestrator.run_to_completion(job.id)
        assert done.status == JobStatus.CONCLUIDO
        assert done.processed_words == 2

    def test_tick_skips_non_runnable(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.pause_job(job.id)
        result = orchestrator.tick(job.id)
        assert result.outcome == TickOutcome.SKIPPED
        assert result.to_dict()["status"] == "pausado"

    def test_second_run_is_served_from_cache(self, orchestrator, corpus):
        _seed(corpus)
        first = orchestrator.run_to_completion(orchestrator.start_job("gaucho").id)
        assert first.new_words == 8
        second = orchestrator.run_to_completion(orchestrator.start_job("gaucho").id)
        assert second.cached_words == 8
        assert second.new_words == 0

    def test_records_chunk_metrics(self, orchestrator, corpus, conn):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.run_to_completion(job.id)
        rows = conn.execute(
            "SELECT words_processed FROM sem_chunk_metrics WHERE job_id = ?", (job.id,)
        ).fetchall()
        assert sorted(r["words_processed"] for r in rows) == [4, 4]

    def test_tick_runnable_covers_every_job(self, orchestrator, corpus):
        _seed(corpus, target="a")
        _seed(corpus, target="b")
        orchestrator.start_job("a")
        orchestrator.start_job("b")
        results = orchestrator.tick_runnable()
        assert len(results) == 2
        assert all(r.outcome == TickOutcome.ADVANCED for r in results)


class TestResumability:
    def test_new_orchestrator_continues_from_cursor(self, orchestrator, conn, corpus, cascade, clock):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.tick(job.id)

        restarted = _orchestrator(conn, corpus, cascade, clock)
        resumed = restarted.get_job(job.id)
        assert resumed.cursor == (1, 1)
        assert resumed.processed_words == 4

        done = restarted.run_to_completion(job.id)
        assert done.status == JobStatus.CONCLUIDO
        assert done.processed_words == 8
        assert done.chunks_processed == 2

    def test_lost_race_is_discarded(self, conn, corpus, cascade, clock):
        _seed(corpus)

        class PausingCascade:
            """Pauses the job while its chunk is being classified."""

            orchestrator = None
            job_id = None

            def classify_batch(self, occurrences, snapshot=None):
                self.orchestrator.pause_job(self.job_id)
                return cascade.classify_batch(occurrences, snapshot)

        racing = PausingCascade()
        orch = _orchestrator(conn, corpus, racing, clock)
        job = orch.start_job("gaucho")
        racing.orchestrator = orch
        racing.job_id = job.id

        result = orch.tick(job.id)
        assert result.outcome == TickOutcome.STALE
        stored = orch.get_job(job.id)
        assert stored.status == JobStatus.PAUSADO
        assert stored.processed_words == 0
        assert stored.chunks_processed == 0

    def test_corpus_change_fails_the_job(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.tick(job.id)
        corpus.add_song("gaucho", "Intrusa", "nova letra", position=9)
        result = orchestrator.tick(job.id)
        assert result.outcome == TickOutcome.ERRORED
        stored = orchestrator.get_job(job.id)
        assert stored.status == JobStatus.ERRO
        assert "changed" in stored.error_message
        assert stored.finished_at is not None

    def test_repeated_total_failure_fails_the_job(self, conn, corpus, offline_cascade, clock):
        corpus.add_song("t", "S", "quux blorf zorp frob plugh xyzzy")
        orch = _orchestrator(conn, corpus, offline_cascade, clock, chunk_size=2, max_failed_chunks=2)
        job = orch.start_job("t")

        first = orch.tick(job.id)
        assert first.outcome == TickOutcome.ADVANCED
        assert first.failed == 2

        second = orch.tick(job.id)
        assert second.outcome == TickOutcome.ERRORED
        assert second.error == "Classificação falhou em todas as palavras de 2 chunks consecutivos"
        assert orch.get_job(job.id).status == JobStatus.ERRO

    def test_failure_limit_disabled(self, conn, corpus, offline_cascade, clock):
        corpus.add_song("t", "S", "quux blorf zorp frob plugh xyzzy")
        orch = _orchestrator(conn, corpus, offline_cascade, clock, chunk_size=2, max_failed_chunks=0)
        done = orch.run_to_completion(orch.start_job("t").id)
        assert done.status == JobStatus.CONCLUIDO


class TestLifecycle:
    def test_pause_resume(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.tick(job.id)
        paused = orchestrator.pause_job(job.id)
        assert paused.status == JobStatus.PAUSADO
        assert paused.cursor == (1, 1)

        resumed = orchestrator.resume_job(job.id)
        assert resumed.status == JobStatus.PROCESSANDO
        assert resumed.cursor == (1, 1)
        assert orchestrator.run_to_completion(job.id).processed_words == 8

    def test_pause_twice(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.pause_job(job.id)
        with pytest.raises(ConflictError):
            orchestrator.pause_job(job.id)

    def test_resume_requires_pause_or_stall(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        with pytest.raises(ConflictError):
            orchestrator.resume_job(job.id)

    def test_resume_stalled_job(self, orchestrator, corpus, clock):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        clock.advance(seconds=121)
        assert orchestrator.is_stalled(orchestrator.get_job(job.id))
        assert orchestrator.progress(job.id).stalled
        resumed = orchestrator.resume_job(job.id)
        assert resumed.status == JobStatus.INICIADO

    def test_recent_chunk_is_not_stalled(self, orchestrator, corpus, clock):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        clock.advance(seconds=100)
        orchestrator.tick(job.id)
        clock.advance(seconds=100)
        assert not orchestrator.is_stalled(orchestrator.get_job(job.id))

    def test_cancel_is_terminal(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        cancelled = orchestrator.cancel_job(job.id)
        assert cancelled.status == JobStatus.CANCELADO
        assert cancelled.finished_at is not None
        with pytest.raises(ConflictError):
            orchestrator.resume_job(job.id)
        with pytest.raises(ConflictError):
            orchestrator.cancel_job(job.id)
        assert orchestrator.tick(job.id).outcome == TickOutcome.SKIPPED

    def test_cancel_paused(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.pause_job(job.id)
        assert orchestrator.cancel_job(job.id).status == JobStatus.CANCELADO

    def test_completed_job_cannot_be_paused(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        orchestrator.run_to_completion(job.id)
        with pytest.raises(ConflictError):
            orchestrator.pause_job(job.id)


class TestProgress:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(None, None), (0, "~0s"), (44.2, "~45s"), (60, "~1min"), (700, "~12min"), (7500, "~2h 5min")],
    )
    def test_format_eta(self, seconds, expected):
        assert format_eta(seconds) == expected

    def _job(self, started, **changes):
        return AnnotationJob(
            id="j1",
            target_id="t",
            status=JobStatus.PROCESSANDO,
            total_songs=10,
            total_words=200,
            chunk_size=50,
            started_at=to_iso8601(started),
            **changes,
        )

    def test_rate_and_eta(self):
        started = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
        progress = JobProgress.from_job(self._job(started, processed_words=50), started + timedelta(seconds=10))
        assert progress.progress == 0.25
        assert progress.words_per_second == 5.0
        assert progress.eta_seconds == 30.0
        assert progress.to_dict()["eta_text"] == "~30s"

    def test_no_rate_in_first_second(self):
        started = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
        progress = JobProgress.from_job(
            self._job(started, processed_words=50), started + timedelta(milliseconds=500)
        )
        assert progress.words_per_second is None
        assert progress.eta_seconds is None

    def test_song_progress(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        before = orchestrator.song_progress(job.id)
        assert [s.status for s in before] == [SongStatus.PROCESSING, SongStatus.PENDING, SongStatus.PENDING]

        orchestrator.tick(job.id)
        during = orchestrator.song_progress(job.id)
        assert [s.status for s in during] == [SongStatus.COMPLETED, SongStatus.PROCESSING, SongStatus.PENDING]
        assert [s.processed_words for s in during] == [3, 1, 0]

        orchestrator.run_to_completion(job.id)
        after = orchestrator.song_progress(job.id)
        assert all(s.status == SongStatus.COMPLETED for s in after)
        assert [s.title for s in after] == ["Canção A", "Canção B", "Canção C"]


class TestDriver:
    def test_tick_once(self, orchestrator, corpus):
        _seed(corpus)
        job = orchestrator.start_job("gaucho")
        driver = JobDriver(orchestrator, interval_seconds=0.01)
        results = driver.tick_once()
        assert [r.job_id for r in results] == [job.id]
        assert not driver.is_running

    def test_tick_once_without_jobs(self, orchestrator):
        assert JobDriver(orchestrator).tick_once() == []


class RecordingCascade:
    """Passes batches through to the real cascade and keeps every classification."""

    def __init__(self, cascade):
        self.cascade = cascade
        self.classifications = []

    def classify_batch(self, occurrences, snapshot=None):
        result = self.cascade.classify_batch(occurrences, snapshot)
        self.classifications.extend(result.classifications)
        return result


class TestEndToEnd:
    def test_same_word_in_two_contexts(self, conn, corpus, cascade, cache, clock, llm_answers):
        llm_answers["saudade"] = "SE.TRI"
        _seed(corpus, songs=[
            ("Querência", "bah que saudade do pago"),
            ("Estrada", "minha saudade querida"),
            ("Volta", "bah que saudade do pago"),
        ])
        recorder = RecordingCascade(cascade)
        orchestrator = _orchestrator(conn, corpus, recorder, clock)

        job = orchestrator.run_to_completion(orchestrator.start_job("gaucho").id)
        assert job.status == JobStatus.CONCLUIDO
        assert job.processed_words == 13

        saudade = [c for c in recorder.classifications if c.word == "saudade"]
        assert len(saudade) == 3
        first, second, third = saudade
        assert first.context_hash != second.context_hash
        assert third.context_hash == first.context_hash
        assert [c.tag_code for c in saudade] == ["SE.TRI", "SE.TRI", "SE.TRI"]
        assert first.source == CacheSource.LLM
        assert second.source == CacheSource.LLM
        assert third.source == CacheSource.CACHE_HIT

        assert cache.peek("saudade", first.context_hash).hit_count == 1
        assert cache.peek("saudade", second.context_hash).hit_count == 0
        assert {e.context_hash for e in cache.list_by_tag("SE.TRI") if e.word == "saudade"} == {
            first.context_hash,
            second.context_hash,
        }
