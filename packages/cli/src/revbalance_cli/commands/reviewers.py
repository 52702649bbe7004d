"""reviewers command group — inspect the shared reviewer pool."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from revbalance_store.errors import NotFoundError
from revbalance_store.models import NEVER_SELECTED

console = Console()


@click.group("reviewers")
def reviewers_cmd():
    """Inspect and prune the reviewer pool."""


@reviewers_cmd.command("list")
@click.option("--lru", is_flag=True, help="Order by rotation position (next to be picked first).")
@click.pass_context
def list_cmd(ctx, lru: bool):
    """List reviewers and when each was last selected."""
    reviewers = ctx.obj["store"].list_reviewers()
    if not reviewers:
        console.print("[yellow]The reviewer pool is empty. Run `revbalance reconcile` first.[/yellow]")
        return
    if lru:
        reviewers = sorted(reviewers, key=lambda r: (r.last_selected_at, r.alias))

    table = Table(title="Reviewer Pool", show_header=True, header_style="bold cyan")
    table.add_column("Alias", style="bold")
    table.add_column("Host ID")
    table.add_column("Last Selected", width=20)
    for r in reviewers:
        table.add_row(
            r.alias,
            r.external_id or "[red]unresolved[/red]",
            "never" if r.last_selected_at == NEVER_SELECTED else r.last_selected_at.isoformat()[:19].replace("T", " "),
        )
    console.print(table)


@reviewers_cmd.command("remove")
@click.argument("alias")
@click.pass_context
def remove_cmd(ctx, alias: str):
    """Remove ALIAS from the pool. The next reconcile re-adds it if it is still declared."""
    try:
        ctx.obj["store"].delete_reviewer(alias)
    except NotFoundError:
        raise click.UsageError(f"Reviewer {alias} is not in the pool.")
    console.print(f"Removed {alias}")
