"""Reviewer pool and repository registry data models.

Kept free of any host or core imports so the store layer can be used
independently. Entities reference each other only by alias or id strings,
never by holding another entity's record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

# Sort key for reviewers that have never been selected: older than any real selection.
NEVER_SELECTED = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Reviewer:
    """A person who can be picked as a reviewer.

    Created by the reconciler the first time its alias shows up in an
    owners file. ``external_id`` is back-filled once the host can resolve
    the alias; ``last_selected_at`` is only ever advanced by
    ``BaseStore.pop_lru_reviewer``.
    """

    alias: str
    external_id: str = ""
    last_selected_at: datetime = NEVER_SELECTED


@dataclass
class Repository:
    """A repository the balancer watches.

    ``external_repo_id`` is resolved lazily by the reconciler from
    ``project_name``/``name``. ``id`` is assigned by the store on insert.
    """

    name: str
    project_name: str
    external_repo_id: str = ""
    enabled: bool = True
    last_reconciled_at: datetime | None = None
    id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.project_name}/{self.name}"
