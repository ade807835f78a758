"""
CLI: ``semspine cache``: inspect, curate and maintain the classification cache.
"""

from __future__ import annotations

import typer

from semspine.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command("stats")
def stats(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Entry counts by source, top tags and hit/miss metrics."""
    from semspine.ops.cache import cache_stats

    ctx, _ = make_context(database)
    output_result(cache_stats(ctx), as_json=json_out, title="Cache")


@app.command("entries")
def entries(
    tag_code: str = typer.Argument(...),
    limit: int = typer.Option(100, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Cache entries classified under one tag."""
    from semspine.ops.cache import list_cache_entries
    from semspine.ops.requests import ListCacheRequest

    ctx, _ = make_context(database)
    result = list_cache_entries(ctx, ListCacheRequest(tag_code=tag_code, limit=limit, offset=offset))
    output_result(result, as_json=json_out, title=f"Entries for {tag_code}")


@app.command("curate")
def curate(
    word: str = typer.Argument(...),
    context_hash: str = typer.Argument(..., help="Hash of the context window"),
    tag_code: str = typer.Argument(...),
    curator: str = typer.Option(..., "--by"),
    notes: str | None = typer.Option(None, "--notes"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Pin a human classification; automated writers never overwrite it."""
    from semspine.ops.cache import curate_entry
    from semspine.ops.requests import CurateRequest

    ctx, _ = make_context(database)
    request = CurateRequest(
        word=word, context_hash=context_hash, tag_code=tag_code, curator=curator, notes=notes
    )
    output_result(curate_entry(ctx, request), as_json=json_out, title="Curated")


@app.command("evict")
def evict(
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Delete expired automated entries."""
    from semspine.ops.cache import evict_expired

    ctx, _ = make_context(database, dry_run=dry_run)
    output_result(evict_expired(ctx), as_json=json_out, title="Evicted")


@app.command("reclassify-common")
def reclassify_common(
    execute: bool = typer.Option(False, "--execute", help="Apply instead of analyze"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Map frequent NC function words to their level-1 codes."""
    from semspine.ops.cache import reclassify_common as _reclassify
    from semspine.ops.requests import ReclassifyCommonRequest

    ctx, _ = make_context(database)
    mode = "execute" if execute else "analyze"
    output_result(_reclassify(ctx, ReclassifyCommonRequest(mode=mode)), as_json=json_out, title="Reclassify")


@app.command("suggestions")
def suggestions(
    limit: int = typer.Option(20, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Suggest classifications for the most frequent NC words (read-only)."""
    from semspine.ops.cache import nc_suggestions
    from semspine.ops.requests import SuggestionsRequest

    ctx, _ = make_context(database, with_llm=True)
    output_result(nc_suggestions(ctx, SuggestionsRequest(limit=limit)), as_json=json_out, title="Suggestions")


@app.command("refine")
def refine(
    limit: int = typer.Option(200, "--limit", "-n"),
    cross_family: bool = typer.Option(False, "--allow-cross-family"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Refine level-1 entries to a specific child code via the LLM."""
    from semspine.ops.cache import refine_top_level
    from semspine.ops.requests import RefineRequest

    ctx, _ = make_context(database, dry_run=dry_run, with_llm=True)
    request = RefineRequest(limit=limit, allow_cross_family=cross_family)
    output_result(refine_top_level(ctx, request), as_json=json_out, title="Refinement")
