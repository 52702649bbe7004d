import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_BOT_MARKER = "b03f5f7f11d50a3a"

DEFAULT_CONFIG: dict = {
    "store": "sqlite",  # "sqlite" | "memory"
    "store_path": ".revbalance.db",
    "bot_marker": DEFAULT_BOT_MARKER,
    "poll_interval": 300,  # seconds between balance cycles
    "reconcile_interval_hours": 24,
    "title_filters": ["WIP"],  # PRs whose title contains any of these are skipped
    "target_branches": [],  # empty = only the repository's default branch
    "balance_draft_prs": False,
    "exclude_author": False,  # drop the PR author from both candidate pools
    "request_timeout": 30,
    "github_base_url": None,  # None = github.com; set for GitHub Enterprise
    "slack": {"channel": None, "alias_map": {}},
}


def load_config(config_path: str = ".revbalance.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .revbalance.yml in the current directory
      3. CLI argument overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "title_filters": list(DEFAULT_CONFIG["title_filters"]),
        "target_branches": list(DEFAULT_CONFIG["target_branches"]),
        "slack": {"channel": None, "alias_map": {}},
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        slack = file_config.pop("slack", None) or {}
        config.update(file_config)
        config["slack"].update(slack)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Credentials come from the environment only, never from the file.
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["slack"]["token"] = os.environ.get("SLACK_BOT_TOKEN")

    return config


def parse_repo_name(full_name: str) -> tuple[str, str]:
    """Split ``project/name`` into its two parts. Raises ValueError on anything else."""
    project, sep, name = full_name.strip().partition("/")
    if not sep or not project or not name or "/" in name:
        raise ValueError(f"Expected PROJECT/NAME, got {full_name!r}")
    return project, name
