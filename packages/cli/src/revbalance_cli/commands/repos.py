"""repos command group — manage the repositories the balancer watches."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from revbalance_core.config import parse_repo_name
from revbalance_store.errors import NotFoundError
from revbalance_store.models import Repository

console = Console()


def _split(full_name: str) -> tuple[str, str]:
    try:
        return parse_repo_name(full_name)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="REPO")


def _set_enabled(ctx, full_name: str, enabled: bool) -> None:
    store = ctx.obj["store"]
    project, name = _split(full_name)
    try:
        repository = store.get_repository(project, name)
    except NotFoundError:
        raise click.UsageError(f"Repository {full_name} is not registered.")
    repository.enabled = enabled
    store.update_repository(repository)
    state = "[green]enabled[/green]" if enabled else "[yellow]disabled[/yellow]"
    console.print(f"{full_name} {state}")


@click.group("repos")
def repos_cmd():
    """Register and manage watched repositories."""


@repos_cmd.command("add")
@click.argument("full_name", metavar="REPO")
@click.option("--disabled", is_flag=True, help="Register without enabling balancing yet.")
@click.pass_context
def add_cmd(ctx, full_name: str, disabled: bool):
    """Register REPO (PROJECT/NAME). Its host id is resolved on first reconcile."""
    project, name = _split(full_name)
    try:
        ctx.obj["store"].add_repository(Repository(name=name, project_name=project, enabled=not disabled))
    except ValueError as e:
        raise click.UsageError(str(e))
    console.print(f"[green]Registered {full_name}[/green]")


@repos_cmd.command("list")
@click.pass_context
def list_cmd(ctx):
    """List registered repositories."""
    repositories = ctx.obj["store"].list_repositories()
    if not repositories:
        console.print("[yellow]No repositories registered.[/yellow]")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Host ID")
    table.add_column("Enabled", width=8)
    table.add_column("Last Reconciled", width=20)
    for r in repositories:
        table.add_row(
            r.full_name,
            r.external_repo_id or "[dim]unresolved[/dim]",
            "[green]yes[/green]" if r.enabled else "[yellow]no[/yellow]",
            r.last_reconciled_at.isoformat()[:19].replace("T", " ") if r.last_reconciled_at else "never",
        )
    console.print(table)


@repos_cmd.command("enable")
@click.argument("full_name", metavar="REPO")
@click.pass_context
def enable_cmd(ctx, full_name: str):
    """Resume balancing REPO."""
    _set_enabled(ctx, full_name, True)


@repos_cmd.command("disable")
@click.argument("full_name", metavar="REPO")
@click.pass_context
def disable_cmd(ctx, full_name: str):
    """Stop balancing REPO without forgetting it."""
    _set_enabled(ctx, full_name, False)


@repos_cmd.command("remove")
@click.argument("full_name", metavar="REPO")
@click.pass_context
def remove_cmd(ctx, full_name: str):
    """Forget REPO. Reviewers stay in the shared pool."""
    project, name = _split(full_name)
    try:
        ctx.obj["store"].delete_repository(project, name)
    except NotFoundError:
        raise click.UsageError(f"Repository {full_name} is not registered.")
    console.print(f"Removed {full_name}")
