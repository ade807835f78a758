"""
Root Typer application for the semspine CLI.

Each command module imports its ops lazily so ``semspine --help`` stays
fast and does not pull in FastAPI or SQLAlchemy.
"""

from __future__ import annotations

import typer
from typer import Typer

from semspine.cli.anomaly import app as anomaly_app
from semspine.cli.cache import app as cache_app
from semspine.cli.db import app as db_app
from semspine.cli.jobs import app as jobs_app
from semspine.cli.monitor import app as monitor_app
from semspine.cli.serve import app as serve_app
from semspine.cli.tagsets import app as tagsets_app

app = Typer(
    name="semspine",
    help="semantic-spine: semantic annotation of song lyrics.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from semspine import __version__

        try:
            v = pkg_version("semantic-spine")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"semantic-spine {v}")
        raise typer.Exit()


@app.callback()
def root(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override SEMSPINE_LOG_LEVEL"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """semantic-spine CLI: taxonomy, jobs, cache and anomaly monitoring."""
    from semspine.core.logging import configure_logging
    from semspine.core.settings import get_settings

    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=True if json_logs else settings.json_logs,
    )


app.add_typer(db_app, name="db", help="Database schema and health.")
app.add_typer(tagsets_app, name="tagsets", help="Taxonomy browsing and review.")
app.add_typer(jobs_app, name="jobs", help="Corpus loading and annotation jobs.")
app.add_typer(cache_app, name="cache", help="Classification cache maintenance.")
app.add_typer(anomaly_app, name="anomaly", help="Anomaly feed.")
app.add_typer(monitor_app, name="monitor", help="Anomaly checks.")
app.add_typer(serve_app, name="serve", help="Start the API server.")


def main() -> None:
    app()
