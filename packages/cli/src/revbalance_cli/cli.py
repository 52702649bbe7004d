"""CLI entry point for revbalance.

Commands:
  run        — poll forever (or once) over every enabled repository
  balance    — run one balance cycle for a single repository
  reconcile  — refresh the reviewer pool from a repository's owners files
  repos      — register, list, enable, disable and remove repositories
  reviewers  — inspect and remove reviewers in the pool
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from revbalance_cli.commands.repos import repos_cmd
from revbalance_cli.commands.reviewers import reviewers_cmd
from revbalance_cli.commands.run import balance_cmd, reconcile_cmd, run_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .revbalance.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .revbalance.db)
      store: memory → MemoryStore (nothing survives the process)
    """
    store_type = config.get("store", "sqlite")

    if store_type == "memory":
        from revbalance_store.memory import MemoryStore

        return MemoryStore()

    if store_type == "sqlite":
        from revbalance_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".revbalance.db"))

    raise click.UsageError(f"Unknown store {store_type!r}. Use 'sqlite' or 'memory'.")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("revbalance"),
    prog_name="revbalance",
)
@click.option(
    "--config",
    "config_path",
    default=".revbalance.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVBALANCE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """Assign pull request reviewers from owners.txt files, fairly."""
    from revbalance_cli.auth import resolve_github_token
    from revbalance_core.config import load_config

    _configure_logging(log_level)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(run_cmd)
main.add_command(balance_cmd)
main.add_command(reconcile_cmd)
main.add_command(repos_cmd)
main.add_command(reviewers_cmd)
