from __future__ import annotations

import logging
from typing import Iterable

from revbalance_core.errors import NotFoundError

logger = logging.getLogger(__name__)


def expand_teams(host, project: str, teams: Iterable[str]) -> set[str]:
    """Return the union of member aliases of ``teams``.

    A team the host does not know is logged and skipped; a typo in one
    owners file must not block every PR it governs. Transport errors
    propagate.
    """
    members: set[str] = set()
    for team in sorted(set(teams)):
        try:
            team_members = host.list_team_members(project, team)
        except NotFoundError:
            logger.warning("Team %r not found in %s; skipping it", team, project)
            continue
        logger.debug("Team %r expands to %d member(s)", team, len(team_members))
        members.update(team_members)
    return members
