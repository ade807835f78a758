"""
CLI: ``semspine monitor``: run the anomaly checks.
"""

from __future__ import annotations

import time

import typer

from semspine.cli.utils import console, make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command("sweep")
def sweep(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run every check once, record new anomalies and auto-resolve old ones."""
    from semspine.ops.anomalies import run_sweep

    ctx, _ = make_context(database)
    output_result(run_sweep(ctx), as_json=json_out, title="Sweep")


@app.command("run")
def run(
    interval: float | None = typer.Option(None, "--interval", help="Seconds between sweeps"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Sweep on an interval until interrupted."""
    from semspine.monitor.monitor import MonitorLoop
    from semspine.ops.services import anomaly_monitor

    ctx, _ = make_context(database)
    seconds = interval or ctx.settings.monitor_interval_seconds
    loop = MonitorLoop(anomaly_monitor(ctx), interval_seconds=seconds)
    console.print(f"[bold green]Anomaly monitor running[/bold green] (every {seconds}s, Ctrl-C to stop)")
    loop.start()
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[yellow]Monitor stopped by user[/yellow]")
    finally:
        loop.stop()
