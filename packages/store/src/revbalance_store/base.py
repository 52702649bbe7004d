"""Abstract store interface.

Every backend (SQLite, in-memory) implements this interface. Core code
depends on BaseStore, not on a concrete backend, so backends are swappable
without touching the balancer or reconciler.

LRU selection is implemented here once, as a template method:

    pop_lru_reviewer() → [selection lock + backend transaction]
                       → _least_recently_selected() → _write_selection()

Backends implement the hooks; the critical section lives in one place.
The lock is a plain threading.Lock owned by the store instance, so
selection is serialised per process only. That is the scaling ceiling of
this design: several processes sharing one database get no guarantee that
two of them will not pick the same reviewer.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

if TYPE_CHECKING:
    from revbalance_store.models import Repository, Reviewer

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseStore(ABC):
    """Durable reviewer pool plus the registry of watched repositories."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or utc_now
        self._selection_lock = threading.Lock()

    def now(self) -> datetime:
        """The store's notion of the current time, always in UTC; the clock is injectable for tests."""
        return self._clock().astimezone(timezone.utc)

    # ------------------------------------------------------------------ #
    # Reviewer pool                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_reviewer(self, alias: str) -> Reviewer:
        """Return the reviewer with this alias. Raises NotFoundError."""

    @abstractmethod
    def get_reviewer_by_external_id(self, external_id: str) -> Reviewer:
        """Return the reviewer with this host identity. Raises NotFoundError."""

    @abstractmethod
    def upsert_reviewer(self, reviewer: Reviewer) -> None:
        """Insert the reviewer, or fully replace the record with the same alias."""

    @abstractmethod
    def list_reviewers(self) -> list[Reviewer]:
        """Return every reviewer, ordered by alias."""

    @abstractmethod
    def delete_reviewer(self, alias: str) -> None:
        """Remove a reviewer. Raises NotFoundError."""

    def pop_lru_reviewer(self, aliases: Iterable[str]) -> Reviewer:
        """Pick the least recently selected reviewer among ``aliases``.

        The chosen record is stamped with the current time and persisted
        before the lock is released; the record as it was *before* the
        stamp is returned. Ties on ``last_selected_at`` go to the
        lexically smallest alias.

        Raises NotFoundError when none of the aliases is in the store.
        """
        candidates = set(aliases)
        with self._selection_lock, self._selection_transaction():
            reviewer = self._least_recently_selected(candidates)
            self._write_selection(replace(reviewer, last_selected_at=self.now()))
        return reviewer

    @abstractmethod
    def _least_recently_selected(self, aliases: set[str]) -> Reviewer:
        """Return the stored reviewer in ``aliases`` with the smallest (last_selected_at, alias)."""

    def _write_selection(self, reviewer: Reviewer) -> None:
        self.upsert_reviewer(reviewer)

    @contextmanager
    def _selection_transaction(self) -> Iterator[None]:
        """Wrap the read-then-write of a selection. No-op unless the backend has transactions."""
        yield

    # ------------------------------------------------------------------ #
    # Repository registry                                                  #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_repository(self, repository: Repository) -> Repository:
        """Insert a repository and return it with its store id set.

        Raises ValueError if (project_name, name) is already registered.
        """

    @abstractmethod
    def get_repository(self, project_name: str, name: str) -> Repository:
        """Raises NotFoundError."""

    @abstractmethod
    def list_repositories(self, enabled_only: bool = False) -> list[Repository]:
        """Return repositories ordered by project then name."""

    @abstractmethod
    def update_repository(self, repository: Repository) -> None:
        """Replace the stored record matching repository.id. Raises NotFoundError."""

    @abstractmethod
    def delete_repository(self, project_name: str, name: str) -> None:
        """Raises NotFoundError."""

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
