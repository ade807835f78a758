"""
CLI: ``semspine tagsets``: browse the taxonomy and review proposals.
"""

from __future__ import annotations

import typer

from semspine.cli.utils import make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["code", "name", "depth_level", "parent_code", "status"]


@app.command("list")
def list_tagsets(
    status: str | None = typer.Option(None, "--status", "-s", help="pending | active | rejected"),
    limit: int = typer.Option(200, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List tagsets ordered by code."""
    from semspine.ops.requests import ListTagsetsRequest
    from semspine.ops.tagsets import list_tagsets as _list

    ctx, _ = make_context(database)
    result = _list(ctx, ListTagsetsRequest(status=status, limit=limit, offset=offset))
    output_paged(result, as_json=json_out, title="Tagsets", columns=_COLUMNS)


@app.command("show")
def show(
    code: str = typer.Argument(..., help="Tagset code, e.g. NA.FAU"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one tagset."""
    from semspine.ops.tagsets import get_tagset

    ctx, _ = make_context(database)
    output_result(get_tagset(ctx, code), as_json=json_out, title=f"Tagset {code}")


@app.command("propose")
def propose(
    code: str = typer.Argument(..., help="Dotted code; the parent must already exist"),
    name: str = typer.Option(..., "--name"),
    description: str | None = typer.Option(None, "--description"),
    example: list[str] = typer.Option([], "--example", "-e", help="Example word (repeatable)"),
    created_by: str | None = typer.Option(None, "--by"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Propose a new tagset; it starts as pending."""
    from semspine.ops.requests import ProposeTagsetRequest
    from semspine.ops.tagsets import propose_tagset

    ctx, _ = make_context(database)
    request = ProposeTagsetRequest(
        code=code,
        name=name,
        description=description,
        examples=list(example),
        created_by=created_by,
    )
    output_result(propose_tagset(ctx, request), as_json=json_out, title="Proposed")


@app.command("approve")
def approve(
    code: str = typer.Argument(...),
    reviewer: str | None = typer.Option(None, "--by"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Approve a pending tagset."""
    from semspine.ops.requests import ReviewTagsetRequest
    from semspine.ops.tagsets import approve_tagset

    ctx, _ = make_context(database)
    result = approve_tagset(ctx, ReviewTagsetRequest(code=code, reviewer=reviewer))
    output_result(result, as_json=json_out, title="Approved")


@app.command("reject")
def reject(
    code: str = typer.Argument(...),
    reason: str = typer.Option(..., "--reason", "-r"),
    reviewer: str | None = typer.Option(None, "--by"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Reject a pending tagset with a reason."""
    from semspine.ops.requests import ReviewTagsetRequest
    from semspine.ops.tagsets import reject_tagset

    ctx, _ = make_context(database)
    result = reject_tagset(ctx, ReviewTagsetRequest(code=code, reviewer=reviewer, reason=reason))
    output_result(result, as_json=json_out, title="Rejected")
