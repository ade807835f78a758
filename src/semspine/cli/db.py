"""``semspine db``: schema and connectivity."""

from __future__ import annotations

import typer

from semspine.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    no_seed: bool = typer.Option(False, "--no-seed", help="Skip the default taxonomy"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changes"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create tables and seed the default taxonomy."""
    from semspine.ops.database import initialize_database

    ctx, _conn = make_context(database, dry_run=dry_run)
    result = initialize_database(ctx, seed=not no_seed)
    output_result(result, as_json=json_out, title="Database Init")


@app.command()
def health(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check database connectivity and tables."""
    from semspine.ops.database import check_database_health

    ctx, _conn = make_context(database)
    result = check_database_health(ctx)
    output_result(result, as_json=json_out, title="Database Health")
