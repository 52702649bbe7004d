"""Pull request filters.

A filter returns True when the pull request should be skipped. Filters are
evaluated in order and the first match wins; a filtered PR causes no host
calls and no state change.
"""

from __future__ import annotations

from typing import Callable, Iterable

from revbalance_core.gh.pull_request import PullRequestView

Filter = Callable[[PullRequestView], bool]


def title_filter(needles: Iterable[str]) -> Filter:
    """Skip PRs whose title contains any of ``needles`` (case-sensitive, like "WIP")."""
    needles = [n for n in needles if n]

    def _filter(pr: PullRequestView) -> bool:
        return any(n in pr.title for n in needles)

    return _filter


def target_branch_filter(branches: Iterable[str] = ()) -> Filter:
    """Skip PRs that do not target one of ``branches``.

    With no branches configured, only PRs against the repository's default
    branch are balanced.
    """
    allowed = {b.removeprefix("refs/heads/").lower() for b in branches}

    def _filter(pr: PullRequestView) -> bool:
        target = pr.target_branch.removeprefix("refs/heads/").lower()
        if allowed:
            return target not in allowed
        return target != pr.default_branch.lower()

    return _filter


def draft_filter(pr: PullRequestView) -> bool:
    return pr.is_draft


def build_filters(config: dict) -> list[Filter]:
    filters: list[Filter] = [
        title_filter(config.get("title_filters", [])),
        target_branch_filter(config.get("target_branches", [])),
    ]
    if not config.get("balance_draft_prs", False):
        filters.append(draft_filter)
    return filters
