"""Map a pull request's changed files to the owners files that govern them.

For each changed path the governing owners file is the nearest
``owners.txt`` at or above the path's directory. Lookups go through the
host one directory at a time, so every directory visited is memoised for
the rest of the call: a PR touching a hundred files under ``src/api/``
costs one walk, not a hundred.

The walk always terminates because every step strictly shortens the
directory, ending at the repository root ("").
"""

from __future__ import annotations

import logging
import posixpath

from revbalance_core.errors import NotFoundError, PaginationError
from revbalance_core.gh.pull_request import PullRequestView
from revbalance_core.owners import OWNERS_FILENAME, ReviewerGroup, parse_owners_file

logger = logging.getLogger(__name__)


def fetch_changed_paths(host, pr: PullRequestView) -> list[str]:
    """Collect every changed path of the PR, following pages until the host reports none left."""
    paths: list[str] = []
    page = 0
    while True:
        batch, next_page = host.list_changed_paths(pr.repository_id, pr.id, page)
        paths.extend(batch)
        if next_page is None:
            break
        if next_page <= page:
            raise PaginationError(f"page token did not advance ({page} → {next_page}) for PR #{pr.id}")
        page = next_page
    return paths


def _normalize_dir(path: str) -> str:
    directory = posixpath.dirname(path.strip("/"))
    return "" if directory in ("", ".") else directory


def _owners_path(directory: str) -> str:
    return posixpath.join(directory, OWNERS_FILENAME) if directory else OWNERS_FILENAME


class OwnersLookup:
    """Per-call cache of directory → governing owners file.

    ``governing`` maps a directory to the path of its governing owners file,
    or None when nothing up to the root declares owners. ``contents`` holds
    the raw text of every owners file found.
    """

    def __init__(self, host, repository_id: str):
        self._host = host
        self._repository_id = repository_id
        self.governing: dict[str, str | None] = {}
        self.contents: dict[str, str] = {}

    def find(self, directory: str) -> str | None:
        visited = []
        current: str | None = directory
        found: str | None = None
        while current is not None:
            if current in self.governing:
                found = self.governing[current]
                break
            visited.append(current)
            candidate = _owners_path(current)
            try:
                self.contents[candidate] = self._host.get_file_content(self._repository_id, candidate)
            except NotFoundError:
                current = posixpath.dirname(current) if current else None
                continue
            found = candidate
            break

        for seen in visited:
            self.governing[seen] = found
        return found


def resolve_required_groups(host, pr: PullRequestView) -> list[ReviewerGroup]:
    """Return one ReviewerGroup per distinct owners file governing the PR's changes.

    Raises TransportError (or RateLimitedError) when the host fails; a
    missing owners file anywhere in the walk is not an error.
    """
    lookup = OwnersLookup(host, pr.repository_id)
    governing_files: set[str] = set()

    for path in fetch_changed_paths(host, pr):
        owners_file = lookup.find(_normalize_dir(path))
        if owners_file is None:
            logger.debug("No owners file governs %s in PR #%s", path, pr.id)
            continue
        governing_files.add(owners_file)

    groups = [parse_owners_file(lookup.contents[f]) for f in sorted(governing_files)]
    logger.info("PR #%s: %d owners file(s) govern the change", pr.id, len(groups))
    return groups
