"""Identity directory: maps a human alias to the host's stable user id.

On GitHub the alias is the login and the stable identity is the numeric
user id, which survives renames. Results are cached for the life of the
directory object because a reconcile cycle can look up the same alias for
several repositories.
"""

from __future__ import annotations

import logging

from github import Github

from revbalance_core.errors import NotFoundError, ResolutionError
from revbalance_core.gh.host import translate_errors

logger = logging.getLogger(__name__)


class GitHubDirectory:
    def __init__(self, client: Github):
        self._gh = client
        self._cache: dict[str, str] = {}

    def resolve_alias(self, alias: str) -> str:
        """Return the external id for ``alias``.

        Raises ResolutionError when the host knows no such user. Transport
        failures propagate as TransportError.
        """
        if alias in self._cache:
            return self._cache[alias]
        try:
            with translate_errors(f"user {alias}"):
                external_id = str(self._gh.get_user(alias).id)
        except NotFoundError as e:
            raise ResolutionError(f"alias {alias!r} does not match any user") from e
        logger.debug("Resolved %s to %s", alias, external_id)
        self._cache[alias] = external_id
        return external_id
