"""
CLI: ``semspine jobs``: corpus loading and annotation job control.
"""

from __future__ import annotations

import time
from pathlib import Path

import typer

from semspine.cli.utils import console, err_console, make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)

_JOB_COLUMNS = ["id", "target_id", "status", "processed_words", "total_words", "chunks_processed", "started_at"]


@app.command("add-song")
def add_song(
    target_id: str = typer.Argument(..., help="Artist or corpus id"),
    title: str = typer.Option(..., "--title", "-t"),
    lyrics_file: Path = typer.Option(..., "--file", "-f", exists=True, dir_okay=False, help="UTF-8 lyrics file"),
    position: int = typer.Option(0, "--position"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Add a song to a target's corpus."""
    from semspine.ops.jobs import add_song as _add
    from semspine.ops.requests import AddSongRequest

    ctx, _ = make_context(database)
    request = AddSongRequest(
        target_id=target_id,
        title=title,
        lyrics=lyrics_file.read_text(encoding="utf-8"),
        position=position,
    )
    output_result(_add(ctx, request), as_json=json_out, title="Song")


@app.command("targets")
def targets(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List corpus targets and their song counts."""
    from semspine.ops.jobs import list_targets

    ctx, _ = make_context(database)
    output_result(list_targets(ctx), as_json=json_out, title="Targets")


@app.command("start")
def start(
    target_id: str = typer.Argument(...),
    chunk_size: int | None = typer.Option(None, "--chunk-size", "-c", min=1),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Start an annotation job for a target."""
    from semspine.ops.jobs import start_job
    from semspine.ops.requests import StartJobRequest

    ctx, _ = make_context(database)
    result = start_job(ctx, StartJobRequest(target_id=target_id, chunk_size=chunk_size))
    output_result(result, as_json=json_out, title="Job started")


@app.command("list")
def list_jobs(
    status: str | None = typer.Option(None, "--status", "-s"),
    target_id: str | None = typer.Option(None, "--target", "-t"),
    limit: int = typer.Option(50, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List annotation jobs, newest first."""
    from semspine.ops.jobs import list_jobs as _list
    from semspine.ops.requests import ListJobsRequest

    ctx, _ = make_context(database)
    request = ListJobsRequest(status=status, target_id=target_id, limit=limit, offset=offset)
    output_paged(_list(ctx, request), as_json=json_out, title="Jobs", columns=_JOB_COLUMNS)


@app.command("status")
def status(
    job_id: str = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a job with progress, rate and ETA."""
    from semspine.ops.jobs import get_job
    from semspine.ops.requests import JobRequest

    ctx, _ = make_context(database)
    output_result(get_job(ctx, JobRequest(job_id=job_id)), as_json=json_out, title=f"Job {job_id}")


@app.command("songs")
def songs(
    job_id: str = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Per-song progress of a job."""
    from semspine.ops.jobs import job_songs
    from semspine.ops.requests import JobRequest

    ctx, _ = make_context(database)
    output_result(job_songs(ctx, JobRequest(job_id=job_id)), as_json=json_out, title="Songs")


@app.command("tick")
def tick(
    job_id: str = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Process one chunk of a job."""
    from semspine.ops.jobs import tick_job
    from semspine.ops.requests import JobRequest

    ctx, _ = make_context(database, with_llm=True)
    output_result(tick_job(ctx, JobRequest(job_id=job_id)), as_json=json_out, title="Tick")


@app.command("run")
def run(
    job_id: str = typer.Argument(...),
    max_ticks: int | None = typer.Option(None, "--max-ticks", min=1),
    retry_delay: float = typer.Option(5.0, "--retry-delay", help="Seconds to wait after a transient failure"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Process a job chunk by chunk in the foreground until it stops."""
    from semspine.core.errors import NotFoundError
    from semspine.jobs.orchestrator import TickOutcome
    from semspine.ops.services import orchestrator

    ctx, _ = make_context(database, with_llm=True)
    if ctx.llm is None:
        err_console.print("[yellow]warning:[/yellow] no LLM configured; unresolved words become NC")
    orch = orchestrator(ctx)

    ticks = 0
    try:
        while max_ticks is None or ticks < max_ticks:
            result = orch.tick(job_id)
            ticks += 1
            if result.outcome == TickOutcome.RETRY:
                err_console.print(f"[yellow]transient failure:[/yellow] {result.error}; retrying")
                time.sleep(retry_delay)
                continue
            if result.outcome in (TickOutcome.SKIPPED, TickOutcome.ERRORED):
                break
            progress = orch.progress(job_id)
            console.print(
                f"  {progress.processed_words}/{progress.total_words} "
                f"({progress.progress:.1%})  eta {progress.eta_text or '-'}"
            )
    except NotFoundError as exc:
        err_console.print(f"[bold red]Error[/bold red] (NOT_FOUND): {exc}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped; the job resumes from its cursor next time[/yellow]")

    job = orch.get_job(job_id)
    style = "green" if job.status.value == "concluido" else "yellow"
    console.print(f"[bold {style}]{job.status.value}[/bold {style}] after {ticks} tick(s)")
    if job.error_message:
        err_console.print(f"[red]{job.error_message}[/red]")
        raise typer.Exit(code=1)


@app.command("drive")
def drive(
    interval: float | None = typer.Option(None, "--interval", help="Seconds between ticks"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Tick every runnable job on an interval until interrupted."""
    from semspine.jobs.driver import JobDriver
    from semspine.ops.services import orchestrator

    ctx, _ = make_context(database, with_llm=True)
    seconds = interval or ctx.settings.tick_interval_seconds
    driver = JobDriver(orchestrator(ctx), interval_seconds=seconds)
    console.print(f"[bold green]Job driver running[/bold green] (every {seconds}s, Ctrl-C to stop)")
    driver.start()
    try:
        while driver.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[yellow]Driver stopped by user[/yellow]")
    finally:
        driver.stop()


def _lifecycle_command(action: str, title: str):
    def command(
        job_id: str = typer.Argument(...),
        database: str | None = typer.Option(None, "--database", "-d"),
        dry_run: bool = typer.Option(False, "--dry-run"),
        json_out: bool = typer.Option(False, "--json"),
    ) -> None:
        from semspine.ops import jobs as job_ops
        from semspine.ops.requests import JobRequest

        ctx, _ = make_context(database, dry_run=dry_run)
        result = getattr(job_ops, action)(ctx, JobRequest(job_id=job_id))
        output_result(result, as_json=json_out, title=title)

    return command


app.command("pause", help="Pause a running job.")(_lifecycle_command("pause_job", "Paused"))
app.command("resume", help="Resume a paused or stalled job.")(_lifecycle_command("resume_job", "Resumed"))
app.command("cancel", help="Cancel a job; it cannot be resumed.")(_lifecycle_command("cancel_job", "Cancelled"))
