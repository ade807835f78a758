"""Tests for semspine.ops: result envelopes and error-code mapping of every operation family."""

import pytest

from semspine.core.errors import ConflictError, NetworkError, NotFoundError, ValidationError
from semspine.ops import anomalies as anomaly_ops
from semspine.ops import cache as cache_ops
from semspine.ops import jobs as job_ops
from semspine.ops import tagsets as tagset_ops
from semspine.ops.context import OperationContext
from semspine.ops.database import check_database_health, initialize_database
from semspine.ops.requests import (
    AddSongRequest,
    AnomalyActionRequest,
    CurateRequest,
    JobRequest,
    ListAnomaliesRequest,
    ListCacheRequest,
    ListJobsRequest,
    ListTagsetsRequest,
    ProposeTagsetRequest,
    ReclassifyCommonRequest,
    RefineRequest,
    ReviewTagsetRequest,
    StartJobRequest,
    SuggestionsRequest,
)
from semspine.ops.result import OperationResult, PagedResult, error_code, fail_from_error
from semspine.ops.sqlite_conn import SqliteConnection


class TestResult:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (NotFoundError("x"), "NOT_FOUND"),
            (ConflictError("x"), "CONFLICT"),
            (ValidationError("x"), "VALIDATION_FAILED"),
            (NetworkError("x"), "TRANSIENT"),
            (RuntimeError("x"), "INTERNAL"),
        ],
    )
    def test_error_code(self, exc, code):
        assert error_code(exc) == code

    def test_fail_keeps_field(self):
        result = fail_from_error(ValidationError("bad", field="code"))
        assert not result.success
        assert result.error.details["field"] == "code"
        assert result.to_dict()["error"]["code"] == "VALIDATION_FAILED"

    def test_paged_has_more(self):
        page = PagedResult.from_items([1, 2], 5, limit=2, offset=2)
        assert page.has_more
        assert page.to_dict()["total"] == 5
        assert not PagedResult.from_items([1], 3, limit=2, offset=2).has_more

    def test_ok_to_dict(self):
        assert OperationResult.ok({"a": 1}).to_dict() == {"success": True, "data": {"a": 1}}

    def test_parameterized_envelopes(self):
        assert OperationResult[int].ok(3).data == 3
        page = PagedResult[str].from_items(["saudade"], 1)
        assert page.data == ["saudade"]
        assert not page.has_more


class TestDatabase:
    def test_initialize_fresh_database(self, settings):
        conn = SqliteConnection(":memory:")
        ctx = OperationContext(conn=conn, settings=settings)
        result = initialize_database(ctx)
        assert result.success
        assert result.data.seeded_tagsets > 0
        assert "sem_tagsets" in result.data.tables_created
        again = initialize_database(ctx)
        assert again.data.seeded_tagsets == 0
        conn.close()

    def test_initialize_without_seed_keeps_sentinel(self, settings):
        conn = SqliteConnection(":memory:")
        ctx = OperationContext(conn=conn, settings=settings)
        initialize_database(ctx, seed=False)
        listed = tagset_ops.list_tagsets(ctx, ListTagsetsRequest())
        assert [t.code for t in listed.data] == ["NC"]
        conn.close()

    def test_dry_run(self, settings):
        conn = SqliteConnection(":memory:")
        result = initialize_database(OperationContext(conn=conn, settings=settings, dry_run=True))
        assert result.data.dry_run
        assert check_database_health(OperationContext(conn=conn, settings=settings)).data.table_count == 0
        conn.close()

    def test_health(self, ops_ctx):
        health = check_database_health(ops_ctx).data
        assert health.connected
        assert health.backend == "sqlite"
        assert health.table_count > 0


class TestTagsetOps:
    def test_propose_approve(self, ops_ctx):
        proposed = tagset_ops.propose_tagset(ops_ctx, ProposeTagsetRequest(code="SE.RAI", name="Raiva"))
        assert proposed.success
        approved = tagset_ops.approve_tagset(ops_ctx, ReviewTagsetRequest(code="SE.RAI", reviewer="ana"))
        assert approved.data.approved_by == "ana"

    def test_error_codes(self, ops_ctx):
        assert tagset_ops.get_tagset(ops_ctx, "ZZ").error.code == "NOT_FOUND"
        dup = tagset_ops.propose_tagset(ops_ctx, ProposeTagsetRequest(code="NA", name="Natureza"))
        assert dup.error.code == "CONFLICT"
        bad = tagset_ops.propose_tagset(ops_ctx, ProposeTagsetRequest(code="natureza!", name="x"))
        assert bad.error.code == "VALIDATION_FAILED"
        assert bad.error.details["field"] == "code"

    def test_unknown_status_filter(self, ops_ctx):
        result = tagset_ops.list_tagsets(ops_ctx, ListTagsetsRequest(status="maybe"))
        assert isinstance(result, PagedResult)
        assert result.error.code == "VALIDATION_FAILED"


class TestJobOps:
    def _song(self, ctx, target="gaucho", lyrics="quux blorf zorp frob plugh"):
        return job_ops.add_song(ctx, AddSongRequest(target_id=target, title="Canção", lyrics=lyrics))

    def test_full_lifecycle(self, ops_ctx):
        assert self._song(ops_ctx).success
        started = job_ops.start_job(ops_ctx, StartJobRequest(target_id="gaucho"))
        job_id = started.data.id
        assert started.data.chunk_size == 4

        tick = job_ops.tick_job(ops_ctx, JobRequest(job_id))
        assert tick.data.to_dict()["outcome"] == "advanced"

        detail = job_ops.get_job(ops_ctx, JobRequest(job_id)).data.to_dict()
        assert detail["processed_words"] == 4
        assert detail["progress"]["progress"] == 0.8

        songs = job_ops.job_songs(ops_ctx, JobRequest(job_id)).data
        assert songs[0].processed_words == 4

        assert job_ops.pause_job(ops_ctx, JobRequest(job_id)).data.status.value == "pausado"
        assert job_ops.resume_job(ops_ctx, JobRequest(job_id)).data.status.value == "processando"
        assert job_ops.cancel_job(ops_ctx, JobRequest(job_id)).data.status.value == "cancelado"

        listed = job_ops.list_jobs(ops_ctx, ListJobsRequest(status="cancelado"))
        assert listed.total == 1

    def test_error_codes(self, ops_ctx):
        assert job_ops.get_job(ops_ctx, JobRequest("nope")).error.code == "NOT_FOUND"
        assert job_ops.start_job(ops_ctx, StartJobRequest(target_id="ninguem")).error.code == "VALIDATION_FAILED"
        self._song(ops_ctx)
        job_ops.start_job(ops_ctx, StartJobRequest(target_id="gaucho"))
        assert job_ops.start_job(ops_ctx, StartJobRequest(target_id="gaucho")).error.code == "CONFLICT"
        assert job_ops.list_jobs(ops_ctx, ListJobsRequest(status="rodando")).error.code == "VALIDATION_FAILED"

    def test_resume_terminal_conflicts(self, ops_ctx):
        self._song(ops_ctx)
        job_id = job_ops.start_job(ops_ctx, StartJobRequest(target_id="gaucho")).data.id
        job_ops.cancel_job(ops_ctx, JobRequest(job_id))
        assert job_ops.resume_job(ops_ctx, JobRequest(job_id)).error.code == "CONFLICT"

    def test_dry_run_lifecycle_changes_nothing(self, ops_ctx):
        self._song(ops_ctx)
        job_id = job_ops.start_job(ops_ctx, StartJobRequest(target_id="gaucho")).data.id
        ops_ctx.dry_run = True
        preview = job_ops.cancel_job(ops_ctx, JobRequest(job_id))
        assert preview.metadata == {"dry_run": True, "action": "cancel_job"}
        ops_ctx.dry_run = False
        assert job_ops.get_job(ops_ctx, JobRequest(job_id)).data.job["status"] == "iniciado"

    def test_targets(self, ops_ctx):
        self._song(ops_ctx, target="a")
        self._song(ops_ctx, target="b")
        assert [t["target_id"] for t in job_ops.list_targets(ops_ctx).data] == ["a", "b"]


class TestCacheOps:
    def test_curate_validates_tag(self, ops_ctx):
        bad = cache_ops.curate_entry(
            ops_ctx, CurateRequest(word="saudade", context_hash="h", tag_code="ZZ.NOPE", curator="ana")
        )
        assert bad.error.code == "VALIDATION_FAILED"
        assert bad.error.details["field"] == "tag_code"

        good = cache_ops.curate_entry(
            ops_ctx, CurateRequest(word="saudade", context_hash="h", tag_code="se.tri", curator="ana")
        )
        assert good.data.tag_code == "SE.TRI"
        entries = cache_ops.list_cache_entries(ops_ctx, ListCacheRequest(tag_code="se.tri")).data
        assert [e.word for e in entries] == ["saudade"]
        assert cache_ops.cache_stats(ops_ctx).data["total_entries"] == 1

    def test_curator_required(self, ops_ctx):
        result = cache_ops.curate_entry(
            ops_ctx, CurateRequest(word="saudade", context_hash="h", tag_code="SE.TRI", curator=" ")
        )
        assert result.error.code == "VALIDATION_FAILED"

    def test_evict(self, ops_ctx):
        assert cache_ops.evict_expired(ops_ctx).data.evicted == 0

    def test_reclassify_mode_validated(self, ops_ctx):
        result = cache_ops.reclassify_common(ops_ctx, ReclassifyCommonRequest(mode="maybe"))
        assert result.error.code == "VALIDATION_FAILED"

    def test_reclassify_dry_run_forces_analyze(self, ops_ctx):
        ops_ctx.dry_run = True
        result = cache_ops.reclassify_common(ops_ctx, ReclassifyCommonRequest(mode="execute"))
        assert result.data.mode.value == "analyze"

    def test_refine_needs_llm(self, ops_ctx):
        ops_ctx.llm = None
        assert cache_ops.refine_top_level(ops_ctx, RefineRequest()).error.code == "VALIDATION_FAILED"

    def test_suggestions_warn_without_llm(self, ops_ctx):
        ops_ctx.llm = None
        result = cache_ops.nc_suggestions(ops_ctx, SuggestionsRequest())
        assert result.success
        assert result.warnings


class TestAnomalyOps:
    def test_sweep_and_feed(self, ops_ctx):
        sweep = anomaly_ops.run_sweep(ops_ctx)
        assert sweep.success
        listed = anomaly_ops.list_anomalies(ops_ctx, ListAnomaliesRequest(state="all"))
        assert listed.total == len(sweep.data.anomalies)

    def test_error_codes(self, ops_ctx):
        assert anomaly_ops.get_anomaly(ops_ctx, "nope").error.code == "NOT_FOUND"
        missing = anomaly_ops.resolve_anomaly(ops_ctx, AnomalyActionRequest(anomaly_id="nope"))
        assert missing.error.code == "NOT_FOUND"
        no_by = anomaly_ops.acknowledge_anomaly(ops_ctx, AnomalyActionRequest(anomaly_id="nope"))
        assert no_by.error.code == "VALIDATION_FAILED"
        bad_state = anomaly_ops.list_anomalies(ops_ctx, ListAnomaliesRequest(state="closed"))
        assert bad_state.error.code == "VALIDATION_FAILED"
