"""Refresh the reviewer pool from the owners files checked into a repository.

Runs on a slow cadence (daily by default) because it walks the whole tree.
The balancer only ever pops reviewers that a reconcile has put into the
store, so a newly added owner becomes selectable after the next reconcile.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field, replace

from revbalance_core.errors import NotFoundError, ResolutionError
from revbalance_core.owners import OWNERS_FILENAME, parse_owners_file
from revbalance_core.teams import expand_teams
from revbalance_store.base import BaseStore
from revbalance_store.models import Repository, Reviewer

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    repository: str
    owners_files: int = 0
    aliases: set[str] = field(default_factory=set)
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class Reconciler:
    def __init__(self, host, directory, store: BaseStore):
        self._host = host
        self._directory = directory
        self._store = store

    def reconcile(self, repository: Repository) -> ReconcileReport:
        """Bring the store in line with the owners files of ``repository``.

        Raises NotFoundError if the repository does not exist under its
        project, and TransportError if the host fails. A single alias that
        cannot be resolved is recorded in the report and skipped.
        """
        logger.info("Reconciling reviewers for %s", repository.full_name)
        self.ensure_repo_id(repository)
        report = ReconcileReport(repository=repository.full_name)

        owners, teams = self._collect_declarations(repository, report)
        team_members = expand_teams(self._host, repository.project_name, teams)
        report.aliases = owners | team_members

        for alias in sorted(report.aliases):
            self._ensure_reviewer(alias, report)

        repository.last_reconciled_at = self._store.now()
        self._store.update_repository(repository)

        logger.info(
            "Reconciled %s: %d alias(es), %d added, %d updated, %d failed",
            repository.full_name,
            len(report.aliases),
            len(report.added),
            len(report.updated),
            len(report.failed),
        )
        return report

    def ensure_repo_id(self, repository: Repository) -> None:
        """Resolve and persist the host's id for the repository if it is not known yet."""
        if repository.external_repo_id:
            return

        for name, external_id in self._host.list_repositories(repository.project_name):
            if name == repository.name:
                repository.external_repo_id = external_id
                self._store.update_repository(repository)
                logger.info("Resolved %s to repository id %s", repository.full_name, external_id)
                return

        raise NotFoundError(f"repository {repository.name} not found in project {repository.project_name}")

    def _collect_declarations(self, repository: Repository, report: ReconcileReport) -> tuple[set[str], set[str]]:
        owners: set[str] = set()
        teams: set[str] = set()

        paths = [
            p for p in self._host.list_files(repository.external_repo_id) if posixpath.basename(p) == OWNERS_FILENAME
        ]
        for path in sorted(paths):
            try:
                content = self._host.get_file_content(repository.external_repo_id, path)
            except NotFoundError:
                logger.warning("Owners file %s disappeared before it could be read; skipping it", path)
                continue
            group = parse_owners_file(content)
            owners |= group.owners
            teams |= group.teams
            report.owners_files += 1

        logger.debug(
            "%s: %d owners file(s), %d owner(s), %d team(s)", repository.full_name, len(paths), len(owners), len(teams)
        )
        return owners, teams

    def _ensure_reviewer(self, alias: str, report: ReconcileReport) -> None:
        try:
            existing = self._store.get_reviewer(alias)
        except NotFoundError:
            existing = None

        if existing is not None and existing.external_id:
            return

        try:
            external_id = self._directory.resolve_alias(alias)
        except (ResolutionError, NotFoundError) as e:
            logger.warning("Could not resolve reviewer %r: %s", alias, e)
            report.failed.append(alias)
            return

        if existing is None:
            self._store.upsert_reviewer(Reviewer(alias=alias, external_id=external_id))
            logger.info("Added reviewer %s", alias)
            report.added.append(alias)
        else:
            self._store.upsert_reviewer(replace(existing, external_id=external_id))
            logger.info("Back-filled external id for reviewer %s", alias)
            report.updated.append(alias)
