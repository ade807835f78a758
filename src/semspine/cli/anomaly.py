"""
CLI: ``semspine anomaly``: the monitor's alert feed.
"""

from __future__ import annotations

import typer

from semspine.cli.utils import make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["id", "check_name", "severity", "actual_value", "expected_value", "detected_at", "acknowledged_by"]


@app.command("list")
def list_anomalies(
    state: str = typer.Option("open", "--state", help="open | resolved | all"),
    severity: str | None = typer.Option(None, "--severity", "-s"),
    check_name: str | None = typer.Option(None, "--check", "-c"),
    limit: int = typer.Option(50, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List anomalies, newest first."""
    from semspine.ops.anomalies import list_anomalies as _list
    from semspine.ops.requests import ListAnomaliesRequest

    ctx, _ = make_context(database)
    request = ListAnomaliesRequest(
        state=state, severity=severity, check_name=check_name, limit=limit, offset=offset,
    )
    output_paged(_list(ctx, request), as_json=json_out, title="Anomalies", columns=_COLUMNS)


@app.command("show")
def show(
    anomaly_id: str = typer.Argument(...),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one anomaly with its message and suggested action."""
    from semspine.ops.anomalies import get_anomaly

    ctx, _ = make_context(database)
    output_result(get_anomaly(ctx, anomaly_id), as_json=json_out, title="Anomaly")


@app.command("ack")
def acknowledge(
    anomaly_id: str = typer.Argument(...),
    by: str = typer.Option(..., "--by"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Acknowledge an anomaly."""
    from semspine.ops.anomalies import acknowledge_anomaly
    from semspine.ops.requests import AnomalyActionRequest

    ctx, _ = make_context(database)
    result = acknowledge_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, by=by))
    output_result(result, as_json=json_out, title="Acknowledged")


@app.command("resolve")
def resolve(
    anomaly_id: str = typer.Argument(...),
    notes: str | None = typer.Option(None, "--notes"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Resolve an anomaly with optional notes."""
    from semspine.ops.anomalies import resolve_anomaly
    from semspine.ops.requests import AnomalyActionRequest

    ctx, _ = make_context(database)
    result = resolve_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, notes=notes))
    output_result(result, as_json=json_out, title="Resolved")


@app.command("dismiss")
def dismiss(
    anomaly_id: str = typer.Argument(...),
    notes: str | None = typer.Option(None, "--notes"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Dismiss an anomaly as noise."""
    from semspine.ops.anomalies import dismiss_anomaly
    from semspine.ops.requests import AnomalyActionRequest

    ctx, _ = make_context(database)
    result = dismiss_anomaly(ctx, AnomalyActionRequest(anomaly_id=anomaly_id, notes=notes))
    output_result(result, as_json=json_out, title="Dismissed")
