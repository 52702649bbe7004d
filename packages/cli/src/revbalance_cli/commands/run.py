"""run, balance and reconcile commands — drive the engine against GitHub."""

from __future__ import annotations

import signal
import threading
from datetime import timedelta

import click
from rich.console import Console
from rich.table import Table

from revbalance_core.balancer import BalancerOptions, Outcome, ReviewBalancer
from revbalance_core.config import parse_repo_name
from revbalance_core.errors import NotFoundError, RevBalanceError
from revbalance_core.gh.directory import GitHubDirectory
from revbalance_core.gh.host import GitHubHost, build_client
from revbalance_core.manager import Manager
from revbalance_core.reconciler import Reconciler
from revbalance_core.triggers import build_triggers

console = Console()

_OUTCOME_STYLE = {
    Outcome.BALANCED: "green",
    Outcome.DRY_RUN: "cyan",
    Outcome.FILTERED: "dim",
    Outcome.ALREADY_BALANCED: "dim",
    Outcome.NO_REVIEWERS: "yellow",
    Outcome.FAILED: "red",
}


def _build_engine(ctx, dry_run: bool = False):
    """Wire host, directory, store and options into a Manager.

    Lives in the CLI so revbalance_core never reads the CLI config format
    beyond load_config().
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set REVBALANCE_GITHUB_TOKEN or GITHUB_TOKEN, or run `gh auth login` first."
        )

    client = build_client(token, base_url=config.get("github_base_url"), timeout=config.get("request_timeout", 30))
    host = GitHubHost(client)
    directory = GitHubDirectory(client)
    triggers = [] if dry_run else build_triggers(config)
    options = BalancerOptions.from_config(config, triggers=triggers, dry_run=dry_run)

    reconciler = Reconciler(host, directory, store)
    balancer = ReviewBalancer(host, store, options, directory=directory)
    manager = Manager(
        store,
        reconciler,
        balancer,
        reconcile_interval=timedelta(hours=config.get("reconcile_interval_hours", 24)),
        poll_interval=config.get("poll_interval", 300),
    )
    return reconciler, balancer, manager


def _get_repository(ctx, full_name: str):
    try:
        project, name = parse_repo_name(full_name)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--repo")
    try:
        return ctx.obj["store"].get_repository(project, name)
    except NotFoundError:
        raise click.UsageError(f"Repository {full_name} is not registered. Run `revbalance repos add {full_name}`.")


def _print_results(title: str, results) -> None:
    if not results:
        console.print("[yellow]No open pull requests.[/yellow]")
        return
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=7)
    table.add_column("Outcome", width=18)
    table.add_column("Required")
    table.add_column("Optional")
    for r in results:
        style = _OUTCOME_STYLE.get(r.outcome, "white")
        if r.outcome is Outcome.DRY_RUN:
            required, optional = ", ".join(sorted(r.required_pool)), ", ".join(sorted(r.optional_pool))
        else:
            required, optional = r.required or "", r.optional or r.error or ""
        table.add_row(f"#{r.pr_id}", f"[{style}]{r.outcome.value}[/{style}]", required, optional)
    console.print(table)


@click.command("run")
@click.option("--once", is_flag=True, help="Run a single cycle over all enabled repositories and exit.")
@click.pass_context
def run_cmd(ctx, once: bool):
    """Reconcile when due and balance every enabled repository, every poll interval."""
    _, _, manager = _build_engine(ctx)

    if once:
        reports = manager.run_once()
        for report in reports:
            if report.error:
                console.print(f"[red]{report.repository}: {report.error}[/red]")
            else:
                _print_results(f"Balance — {report.repository}", report.results)
        if any(r.error for r in reports):
            ctx.exit(1)
        return

    stop = threading.Event()

    def _stop(signum, frame):
        console.print("[yellow]Stopping after the current cycle...[/yellow]")
        stop.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    manager.run_forever(stop)


@click.command("balance")
@click.option("--repo", "full_name", required=True, help="Repository in PROJECT/NAME format.")
@click.option("--dry-run", is_flag=True, help="Show candidate pools without assigning or commenting.")
@click.pass_context
def balance_cmd(ctx, full_name: str, dry_run: bool):
    """Run one balance cycle for a single repository."""
    repository = _get_repository(ctx, full_name)
    reconciler, balancer, _ = _build_engine(ctx, dry_run=dry_run)
    try:
        reconciler.ensure_repo_id(repository)
        results = balancer.run(repository)
    except (RevBalanceError, NotFoundError) as e:
        raise click.ClickException(str(e))
    _print_results(f"Balance — {repository.full_name}", results)


@click.command("reconcile")
@click.option("--repo", "full_name", required=True, help="Repository in PROJECT/NAME format.")
@click.pass_context
def reconcile_cmd(ctx, full_name: str):
    """Refresh the reviewer pool from the repository's owners files."""
    repository = _get_repository(ctx, full_name)
    reconciler, _, _ = _build_engine(ctx)
    try:
        report = reconciler.reconcile(repository)
    except (RevBalanceError, NotFoundError) as e:
        raise click.ClickException(str(e))

    console.print(f"\n[bold]Reconciled [cyan]{report.repository}[/cyan][/bold]")
    console.print(f"  Owners files:  {report.owners_files}")
    console.print(f"  Aliases:       {len(report.aliases)}")
    console.print(f"  Added:         {len(report.added)}")
    console.print(f"  Updated:       {len(report.updated)}")
    if report.failed:
        console.print(f"  [red]Unresolved:    {', '.join(report.failed)}[/red]")
