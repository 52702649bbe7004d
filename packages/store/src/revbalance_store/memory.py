"""MemoryStore — process-local store with no persistence.

Useful for tests and for one-off `revbalance balance --dry-run` style runs
where rotation state does not need to survive the process. Records are
copied on the way in and out so callers never share mutable state with the
store.
"""

from __future__ import annotations

from dataclasses import replace

from revbalance_store.base import BaseStore, Clock
from revbalance_store.errors import NotFoundError
from revbalance_store.models import Repository, Reviewer


class MemoryStore(BaseStore):
    def __init__(self, clock: Clock | None = None):
        super().__init__(clock=clock)
        self._reviewers: dict[str, Reviewer] = {}
        self._repositories: dict[int, Repository] = {}
        self._next_repository_id = 1

    def get_reviewer(self, alias: str) -> Reviewer:
        try:
            return replace(self._reviewers[alias])
        except KeyError:
            raise NotFoundError(f"reviewer {alias!r} not found")

    def get_reviewer_by_external_id(self, external_id: str) -> Reviewer:
        for alias in sorted(self._reviewers):
            reviewer = self._reviewers[alias]
            if external_id and reviewer.external_id == external_id:
                return replace(reviewer)
        raise NotFoundError(f"no reviewer with external id {external_id!r}")

    def upsert_reviewer(self, reviewer: Reviewer) -> None:
        self._reviewers[reviewer.alias] = replace(reviewer)

    def list_reviewers(self) -> list[Reviewer]:
        return [replace(self._reviewers[a]) for a in sorted(self._reviewers)]

    def delete_reviewer(self, alias: str) -> None:
        if self._reviewers.pop(alias, None) is None:
            raise NotFoundError(f"reviewer {alias!r} not found")

    def _least_recently_selected(self, aliases: set[str]) -> Reviewer:
        known = [self._reviewers[a] for a in aliases if a in self._reviewers]
        if not known:
            raise NotFoundError(f"none of {sorted(aliases)} are known reviewers")
        return replace(min(known, key=lambda r: (r.last_selected_at, r.alias)))

    def add_repository(self, repository: Repository) -> Repository:
        try:
            self.get_repository(repository.project_name, repository.name)
        except NotFoundError:
            pass
        else:
            raise ValueError(f"repository {repository.full_name} is already registered")
        repository.id = self._next_repository_id
        self._next_repository_id += 1
        self._repositories[repository.id] = replace(repository)
        return repository

    def get_repository(self, project_name: str, name: str) -> Repository:
        for repository in self._repositories.values():
            if repository.project_name == project_name and repository.name == name:
                return replace(repository)
        raise NotFoundError(f"repository {project_name}/{name} not found")

    def list_repositories(self, enabled_only: bool = False) -> list[Repository]:
        repositories = [replace(r) for r in self._repositories.values() if r.enabled or not enabled_only]
        return sorted(repositories, key=lambda r: (r.project_name, r.name))

    def update_repository(self, repository: Repository) -> None:
        if repository.id not in self._repositories:
            raise NotFoundError(f"repository {repository.full_name} not found")
        self._repositories[repository.id] = replace(repository)

    def delete_repository(self, project_name: str, name: str) -> None:
        repository = self.get_repository(project_name, name)
        del self._repositories[repository.id]
