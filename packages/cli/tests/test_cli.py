"""Tests for the CLI entry point."""

import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock

import click
import pytest
from click.testing import CliRunner

from revbalance_cli.auth import resolve_github_token
from revbalance_cli.cli import _build_store, main
from revbalance_core.balancer import BalanceResult, Outcome
from revbalance_core.errors import TransportError
from revbalance_core.manager import CycleReport
from revbalance_core.reconciler import ReconcileReport
from revbalance_store.memory import MemoryStore
from revbalance_store.models import Repository, Reviewer
from revbalance_store.sqlite import SQLiteStore


def _make_config(github_token="tok", store="memory"):
    return {
        "github_token": github_token,
        "store": store,
        "store_path": ".revbalance.db",
        "bot_marker": "marker",
        "poll_interval": 300,
        "reconcile_interval_hours": 24,
        "title_filters": ["WIP"],
        "target_branches": [],
        "balance_draft_prs": False,
        "exclude_author": False,
        "request_timeout": 30,
        "github_base_url": None,
        "slack": {"channel": None, "alias_map": {}, "token": None},
    }


def _patch_common(mocker, config=None, token="tok", store=None):
    """Patch load_config, resolve_github_token and _build_store; return the store the CLI will use."""
    cfg = config or _make_config()
    mocker.patch("revbalance_core.config.load_config", return_value=cfg)
    mocker.patch("revbalance_cli.auth.resolve_github_token", return_value=token)
    store = store or MemoryStore()
    mocker.patch("revbalance_cli.cli._build_store", return_value=store)
    return cfg, store


def _patch_engine(mocker):
    reconciler, balancer, manager = MagicMock(), MagicMock(), MagicMock()
    mocker.patch("revbalance_cli.commands.run._build_engine", return_value=(reconciler, balancer, manager))
    return reconciler, balancer, manager


# ---------------------------------------------------------------------------
# Store construction
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_memory(self):
        assert isinstance(_build_store({"store": "memory"}), MemoryStore)

    def test_sqlite(self, tmp_path):
        store = _build_store({"store": "sqlite", "store_path": str(tmp_path / "rb.db")})
        assert isinstance(store, SQLiteStore)
        store.close()

    def test_unknown(self):
        with pytest.raises(click.UsageError):
            _build_store({"store": "redis"})


# ---------------------------------------------------------------------------
# Token resolution
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_prefers_dedicated_variable(self, monkeypatch):
        monkeypatch.setenv("REVBALANCE_GITHUB_TOKEN", "bot")
        monkeypatch.setenv("GITHUB_TOKEN", "personal")
        assert resolve_github_token() == "bot"

    def test_falls_back_to_github_token(self, monkeypatch):
        monkeypatch.delenv("REVBALANCE_GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "personal")
        assert resolve_github_token() == "personal"

    def test_uses_gh_cli(self, monkeypatch, mocker):
        monkeypatch.delenv("REVBALANCE_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch("subprocess.run", return_value=MagicMock(returncode=0, stdout="gho_abc\n"))
        assert resolve_github_token() == "gho_abc"

    def test_gh_not_installed(self, monkeypatch, mocker):
        monkeypatch.delenv("REVBALANCE_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch("subprocess.run", side_effect=FileNotFoundError)
        assert resolve_github_token() is None

    def test_gh_times_out(self, monkeypatch, mocker):
        monkeypatch.delenv("REVBALANCE_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5))
        assert resolve_github_token() is None

    def test_gh_not_logged_in(self, monkeypatch, mocker):
        monkeypatch.delenv("REVBALANCE_GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch("subprocess.run", return_value=MagicMock(returncode=1, stdout=""))
        assert resolve_github_token() is None


# ---------------------------------------------------------------------------
# repos
# ---------------------------------------------------------------------------


class TestReposCommands:
    def test_add_and_list(self, mocker):
        _, store = _patch_common(mocker)
        runner = CliRunner()

        result = runner.invoke(main, ["repos", "add", "acme/widgets"])
        assert result.exit_code == 0, result.output
        assert store.get_repository("acme", "widgets").enabled is True

        result = runner.invoke(main, ["repos", "list"])
        assert result.exit_code == 0
        assert "acme/widgets" in result.output

    def test_add_disabled(self, mocker):
        _, store = _patch_common(mocker)
        CliRunner().invoke(main, ["repos", "add", "acme/widgets", "--disabled"])
        assert store.get_repository("acme", "widgets").enabled is False

    def test_add_duplicate_fails(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme"))
        result = CliRunner().invoke(main, ["repos", "add", "acme/widgets"])
        assert result.exit_code != 0
        assert "already registered" in result.output

    def test_add_malformed_name_fails(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["repos", "add", "widgets"])
        assert result.exit_code != 0
        assert "PROJECT/NAME" in result.output

    def test_disable_and_enable(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme"))
        runner = CliRunner()

        runner.invoke(main, ["repos", "disable", "acme/widgets"])
        assert store.get_repository("acme", "widgets").enabled is False
        runner.invoke(main, ["repos", "enable", "acme/widgets"])
        assert store.get_repository("acme", "widgets").enabled is True

    def test_enable_unknown_fails(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["repos", "enable", "acme/ghost"])
        assert result.exit_code != 0
        assert "not registered" in result.output

    def test_remove(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme"))
        result = CliRunner().invoke(main, ["repos", "remove", "acme/widgets"])
        assert result.exit_code == 0
        assert store.list_repositories() == []

    def test_list_empty(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["repos", "list"])
        assert result.exit_code == 0
        assert "No repositories registered" in result.output


# ---------------------------------------------------------------------------
# reviewers
# ---------------------------------------------------------------------------


class TestReviewersCommands:
    def test_list_shows_never_selected(self, mocker):
        _, store = _patch_common(mocker)
        store.upsert_reviewer(Reviewer(alias="alice", external_id="42"))
        store.upsert_reviewer(
            Reviewer(alias="bob", external_id="43", last_selected_at=datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc))
        )

        result = CliRunner().invoke(main, ["reviewers", "list", "--lru"])

        assert result.exit_code == 0
        assert "alice" in result.output
        assert "never" in result.output
        assert "2024-03-01 09:30:00" in result.output
        assert result.output.index("alice") < result.output.index("bob")

    def test_list_empty(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["reviewers", "list"])
        assert "empty" in result.output

    def test_remove(self, mocker):
        _, store = _patch_common(mocker)
        store.upsert_reviewer(Reviewer(alias="alice"))
        result = CliRunner().invoke(main, ["reviewers", "remove", "alice"])
        assert result.exit_code == 0
        assert store.list_reviewers() == []

    def test_remove_unknown_fails(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["reviewers", "remove", "ghost"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# run / balance / reconcile
# ---------------------------------------------------------------------------


class TestEngineCommands:
    def test_missing_github_token(self, mocker):
        _, store = _patch_common(mocker, config=_make_config(github_token=None), token=None)
        store.add_repository(Repository(name="widgets", project_name="acme"))

        result = CliRunner().invoke(main, ["balance", "--repo", "acme/widgets"])

        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_unregistered_repository(self, mocker):
        _patch_common(mocker)
        _patch_engine(mocker)
        result = CliRunner().invoke(main, ["balance", "--repo", "acme/widgets"])
        assert result.exit_code != 0
        assert "repos add" in result.output

    def test_balance_prints_results(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme", external_repo_id="1001"))
        reconciler, balancer, _ = _patch_engine(mocker)
        balancer.run.return_value = [
            BalanceResult(pr_id=7, outcome=Outcome.BALANCED, required="alice", optional="carol"),
            BalanceResult(pr_id=8, outcome=Outcome.FILTERED),
        ]

        result = CliRunner().invoke(main, ["balance", "--repo", "acme/widgets"])

        assert result.exit_code == 0, result.output
        reconciler.ensure_repo_id.assert_called_once()
        assert "#7" in result.output
        assert "alice" in result.output
        assert "filtered" in result.output

    def test_balance_dry_run_builds_dry_engine(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme", external_repo_id="1001"))
        build = mocker.patch(
            "revbalance_cli.commands.run._build_engine", return_value=(MagicMock(), MagicMock(), MagicMock())
        )
        build.return_value[1].run.return_value = [
            BalanceResult(pr_id=7, outcome=Outcome.DRY_RUN, required_pool={"alice"}, optional_pool={"carol"})
        ]

        result = CliRunner().invoke(main, ["balance", "--repo", "acme/widgets", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert build.call_args.kwargs["dry_run"] is True
        assert "dry_run" in result.output

    def test_balance_host_error_is_reported(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme", external_repo_id="1001"))
        _, balancer, _ = _patch_engine(mocker)
        balancer.run.side_effect = TransportError("open pull requests of 1001: HTTP 502")

        result = CliRunner().invoke(main, ["balance", "--repo", "acme/widgets"])

        assert result.exit_code == 1
        assert "HTTP 502" in result.output

    def test_reconcile_prints_summary(self, mocker):
        _, store = _patch_common(mocker)
        store.add_repository(Repository(name="widgets", project_name="acme"))
        reconciler, _, _ = _patch_engine(mocker)
        reconciler.reconcile.return_value = ReconcileReport(
            repository="acme/widgets", owners_files=3, aliases={"alice", "bob"}, added=["alice"], failed=["ghost"]
        )

        result = CliRunner().invoke(main, ["reconcile", "--repo", "acme/widgets"])

        assert result.exit_code == 0, result.output
        assert "Owners files:  3" in result.output
        assert "ghost" in result.output

    def test_run_once(self, mocker):
        _patch_common(mocker)
        _, _, manager = _patch_engine(mocker)
        manager.run_once.return_value = [
            CycleReport(
                repository="acme/widgets",
                results=[BalanceResult(pr_id=7, outcome=Outcome.BALANCED, required="alice")],
            )
        ]

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 0, result.output
        manager.run_forever.assert_not_called()
        assert "alice" in result.output

    def test_run_once_exits_nonzero_on_repository_error(self, mocker):
        _patch_common(mocker)
        _, _, manager = _patch_engine(mocker)
        manager.run_once.return_value = [CycleReport(repository="acme/widgets", error="TransportError: HTTP 502")]

        result = CliRunner().invoke(main, ["run", "--once"])

        assert result.exit_code == 1
        assert "HTTP 502" in result.output

    def test_run_forever_installs_signal_handlers(self, mocker):
        _patch_common(mocker)
        _, _, manager = _patch_engine(mocker)
        signal_mock = mocker.patch("revbalance_cli.commands.run.signal.signal")

        result = CliRunner().invoke(main, ["run"])

        assert result.exit_code == 0, result.output
        manager.run_forever.assert_called_once()
        assert signal_mock.call_count == 2
