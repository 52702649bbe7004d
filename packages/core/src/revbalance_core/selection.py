"""Pick one required and one optional reviewer from the candidate pools."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from revbalance_core.errors import NotFoundError
from revbalance_store.base import BaseStore
from revbalance_store.models import Reviewer

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    required: Reviewer | None = None
    optional: Reviewer | None = None

    @property
    def reviewers(self) -> list[Reviewer]:
        return [r for r in (self.required, self.optional) if r is not None]


def candidate_pools(
    required_owners: Iterable[str], team_members: Iterable[str], exclude: Iterable[str] = ()
) -> tuple[set[str], set[str]]:
    """Return (required pool, optional pool).

    An owner never sits in the optional pool, so one person cannot fill
    both slots. Aliases in ``exclude`` are removed from both.
    """
    excluded = set(exclude)
    owners = set(required_owners) - excluded
    members = set(team_members) - set(required_owners) - excluded
    return owners, members


def select_reviewers(
    store: BaseStore,
    required_owners: Iterable[str],
    team_members: Iterable[str],
    exclude: Iterable[str] = (),
) -> Selection:
    """Pop the least recently used reviewer from each pool.

    An empty required pool leaves the required slot empty without touching
    the store. A non-empty required pool with no stored reviewer raises
    NotFoundError. The optional slot is best effort: an empty or unknown
    pool just leaves it empty.
    """
    owners, members = candidate_pools(required_owners, team_members, exclude)
    selection = Selection()

    if owners:
        selection.required = store.pop_lru_reviewer(owners)
    else:
        logger.info("No required owners to choose from")

    if members:
        try:
            selection.optional = store.pop_lru_reviewer(members)
        except NotFoundError:
            logger.info("None of the team members %s are known reviewers; no optional reviewer", sorted(members))

    return selection
