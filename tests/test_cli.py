"""CLI tests: Typer commands driven through CliRunner over the in-memory database."""

import pytest
from typer.testing import CliRunner

from semspine.cli.app import app

runner = CliRunner()


@pytest.fixture
def cli_ctx(monkeypatch, ops_ctx, conn):
    """Point every command module's ``make_context`` at the test context."""

    def fake_make_context(database=None, *, dry_run=False, with_llm=False):
        ops_ctx.dry_run = dry_run
        return ops_ctx, conn

    for module in ("tagsets", "jobs", "cache", "anomaly", "monitor", "db"):
        monkeypatch.setattr(f"semspine.cli.{module}.make_context", fake_make_context)
    return ops_ctx


@pytest.fixture
def lyrics_file(tmp_path):
    path = tmp_path / "letra.txt"
    path.write_text("quux blorf zorp frob plugh", encoding="utf-8")
    return path


def _start_job(lyrics_file) -> str:
    runner.invoke(app, ["jobs", "add-song", "gaucho", "--title", "Canção", "--file", str(lyrics_file)])
    result = runner.invoke(app, ["jobs", "start", "gaucho", "--json"])
    assert result.exit_code == 0, result.output
    return result.output.split('"id": "', 1)[1].split('"', 1)[0]


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("semantic-spine")

    def test_help_lists_groups(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for group in ("tagsets", "jobs", "cache", "anomaly", "monitor"):
            assert group in result.output


class TestTagsetCommands:
    def test_list_json(self, cli_ctx):
        result = runner.invoke(app, ["tagsets", "list", "--status", "active", "--json"])
        assert result.exit_code == 0
        assert '"code": "NC"' in result.output

    def test_propose_and_approve(self, cli_ctx):
        proposed = runner.invoke(app, ["tagsets", "propose", "SE.RAI", "--name", "Raiva", "--json"])
        assert proposed.exit_code == 0
        assert '"status": "pending"' in proposed.output

        approved = runner.invoke(app, ["tagsets", "approve", "SE.RAI", "--by", "ana", "--json"])
        assert approved.exit_code == 0
        assert '"status": "active"' in approved.output

    def test_reject_requires_reason(self, cli_ctx):
        runner.invoke(app, ["tagsets", "propose", "SE.RAI", "--name", "Raiva"])
        assert runner.invoke(app, ["tagsets", "reject", "SE.RAI"]).exit_code != 0

    def test_unknown_code_exits_1(self, cli_ctx):
        assert runner.invoke(app, ["tagsets", "show", "ZZ"]).exit_code == 1


class TestJobCommands:
    def test_add_song_and_targets(self, cli_ctx, lyrics_file):
        added = runner.invoke(app, ["jobs", "add-song", "gaucho", "--title", "Canção", "--file", str(lyrics_file)])
        assert added.exit_code == 0, added.output
        targets = runner.invoke(app, ["jobs", "targets", "--json"])
        assert '"target_id": "gaucho"' in targets.output

    def test_start_without_words_exits_1(self, cli_ctx):
        assert runner.invoke(app, ["jobs", "start", "ninguem"]).exit_code == 1

    def test_run_to_completion(self, cli_ctx, lyrics_file):
        job_id = _start_job(lyrics_file)
        result = runner.invoke(app, ["jobs", "run", job_id])
        assert result.exit_code == 0, result.output
        assert "concluido" in result.output

        status = runner.invoke(app, ["jobs", "status", job_id, "--json"])
        assert '"processed_words": 5' in status.output

    def test_run_unknown_job(self, cli_ctx):
        assert runner.invoke(app, ["jobs", "run", "nope"]).exit_code == 1

    def test_tick_and_lifecycle(self, cli_ctx, lyrics_file):
        job_id = _start_job(lyrics_file)
        tick = runner.invoke(app, ["jobs", "tick", job_id, "--json"])
        assert '"outcome": "advanced"' in tick.output

        assert '"status": "pausado"' in runner.invoke(app, ["jobs", "pause", job_id, "--json"]).output
        assert '"status": "processando"' in runner.invoke(app, ["jobs", "resume", job_id, "--json"]).output
        assert '"status": "cancelado"' in runner.invoke(app, ["jobs", "cancel", job_id, "--json"]).output
        assert runner.invoke(app, ["jobs", "resume", job_id]).exit_code == 1

        listed = runner.invoke(app, ["jobs", "list", "--status", "cancelado", "--json"])
        assert '"total": 1' in listed.output


class TestCacheCommands:
    def test_curate_and_stats(self, cli_ctx):
        curated = runner.invoke(app, ["cache", "curate", "saudade", "h", "SE.TRI", "--by", "ana", "--json"])
        assert curated.exit_code == 0, curated.output
        assert '"source": "curation"' in curated.output
        stats = runner.invoke(app, ["cache", "stats", "--json"])
        assert '"total_entries": 1' in stats.output

    def test_reclassify_analyze(self, cli_ctx):
        result = runner.invoke(app, ["cache", "reclassify-common", "--json"])
        assert result.exit_code == 0
        assert '"mode": "analyze"' in result.output


class TestAnomalyCommands:
    def test_sweep_and_list(self, cli_ctx):
        assert runner.invoke(app, ["monitor", "sweep"]).exit_code == 0
        listed = runner.invoke(app, ["anomaly", "list", "--state", "all", "--json"])
        assert listed.exit_code == 0
        assert '"total": 0' in listed.output

    def test_unknown_anomaly(self, cli_ctx):
        assert runner.invoke(app, ["anomaly", "show", "nope"]).exit_code == 1


class TestDbCommands:
    def test_init_dry_run(self, cli_ctx):
        result = runner.invoke(app, ["db", "init", "--dry-run", "--json"])
        assert result.exit_code == 0, result.output
        assert '"dry_run": true' in result.output
        assert '"sem_jobs"' in result.output

    def test_health(self, cli_ctx):
        result = runner.invoke(app, ["db", "health", "--json"])
        assert result.exit_code == 0, result.output
        assert '"connected": true' in result.output
        assert '"backend": "sqlite"' in result.output
