"""Review balancing: assign reviewers to open pull requests.

Per pull request the balancer moves through

    fetched → filtered                                        (terminal)
    fetched → already balanced                                (terminal)
    fetched → reviewers resolved → applied → commented → triggers fired

The marker comment is the only record that a PR has been handled, which
makes every poll idempotent: a PR carrying the marker is never touched
again. A PR whose reviewers were applied but whose comment failed to post
is retried on the next poll and may get a second reviewer; review requests
themselves are idempotent on GitHub, the rotation pop is not.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace

from revbalance_core.config import DEFAULT_BOT_MARKER
from revbalance_core.errors import NotFoundError, ResolutionError, RevBalanceError
from revbalance_core.filters import Filter, build_filters
from revbalance_core.gh.pull_request import PullRequestView, contains_marker, marker_comment
from revbalance_core.resolver import resolve_required_groups
from revbalance_core.selection import Selection, candidate_pools, select_reviewers
from revbalance_core.teams import expand_teams
from revbalance_core.triggers import ReviewerTrigger
from revbalance_store.base import BaseStore
from revbalance_store.models import Repository, Reviewer

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    FILTERED = "filtered"
    ALREADY_BALANCED = "already_balanced"
    NO_REVIEWERS = "no_reviewers"
    DRY_RUN = "dry_run"
    BALANCED = "balanced"
    FAILED = "failed"


@dataclass
class BalanceResult:
    pr_id: int
    outcome: Outcome
    required: str | None = None
    optional: str | None = None
    required_pool: set[str] = field(default_factory=set)
    optional_pool: set[str] = field(default_factory=set)
    error: str | None = None


@dataclass
class BalancerOptions:
    bot_marker: str = DEFAULT_BOT_MARKER
    filters: list[Filter] = field(default_factory=list)
    triggers: list[ReviewerTrigger] = field(default_factory=list)
    exclude_author: bool = False
    dry_run: bool = False

    @classmethod
    def from_config(cls, config: dict, triggers: list[ReviewerTrigger] | None = None, dry_run: bool = False):
        return cls(
            bot_marker=config.get("bot_marker") or DEFAULT_BOT_MARKER,
            filters=build_filters(config),
            triggers=list(triggers or []),
            exclude_author=bool(config.get("exclude_author", False)),
            dry_run=dry_run,
        )


def build_comment(selection: Selection, marker: str) -> str:
    """Render the assignment comment. Always ends with the bot marker."""
    lines = []
    if selection.required is not None:
        lines += [
            f"Hello @{selection.required.alias},",
            "",
            "You have been selected as the **required** code reviewer of this change.",
            "",
            "Please review **each** iteration of this pull request until sign-off.",
            "",
        ]
    if selection.optional is not None:
        lines += [f"@{selection.optional.alias} has been added as an optional reviewer.", ""]
    lines += ["Thank you,", "Review Balancer", marker_comment(marker)]
    return "\n".join(lines)


class ReviewBalancer:
    def __init__(self, host, store: BaseStore, options: BalancerOptions | None = None, directory=None):
        self._host = host
        self._store = store
        self._options = options or BalancerOptions()
        self._directory = directory

    def run(self, repository: Repository) -> list[BalanceResult]:
        """Balance every open pull request of ``repository``.

        A failure on one pull request is logged and recorded; the remaining
        pull requests are still processed. Failing to list pull requests at
        all propagates.
        """
        results = []
        for pr in self._host.list_open_pull_requests(repository.external_repo_id):
            try:
                result = self.balance(repository, pr)
            except (RevBalanceError, NotFoundError) as e:
                logger.error("Failed to balance PR #%s in %s: %s", pr.id, repository.full_name, e)
                result = BalanceResult(pr_id=pr.id, outcome=Outcome.FAILED, error=str(e))
            results.append(result)
        return results

    def balance(self, repository: Repository, pr: PullRequestView) -> BalanceResult:
        if self.should_filter(pr):
            logger.debug("PR #%s filtered out", pr.id)
            return BalanceResult(pr_id=pr.id, outcome=Outcome.FILTERED)

        if contains_marker(self._host.list_comments(pr.repository_id, pr.id), self._options.bot_marker):
            logger.debug("PR #%s already balanced", pr.id)
            return BalanceResult(pr_id=pr.id, outcome=Outcome.ALREADY_BALANCED)

        groups = resolve_required_groups(self._host, pr)
        required_owners: set[str] = set()
        teams: set[str] = set()
        for group in groups:
            required_owners |= group.owners
            teams |= group.teams
        team_members = expand_teams(self._host, repository.project_name, teams)
        exclude = self._excluded_aliases(pr)

        if self._options.dry_run:
            owners_pool, members_pool = candidate_pools(required_owners, team_members, exclude)
            return BalanceResult(
                pr_id=pr.id, outcome=Outcome.DRY_RUN, required_pool=owners_pool, optional_pool=members_pool
            )

        selection = select_reviewers(self._store, required_owners, team_members, exclude)
        if not selection.reviewers:
            logger.warning(
                "PR #%s in %s has no candidate reviewers; leaving it for the next poll", pr.id, repository.full_name
            )
            return BalanceResult(pr_id=pr.id, outcome=Outcome.NO_REVIEWERS)

        self._apply(pr, selection)
        self._host.post_comment(pr.repository_id, pr.id, build_comment(selection, self._options.bot_marker))
        self._fire_triggers(pr, selection)

        required = selection.required.alias if selection.required else None
        optional = selection.optional.alias if selection.optional else None
        logger.info(
            "Added %s as required and %s as optional reviewer to PR #%s in %s",
            required,
            optional,
            pr.id,
            repository.full_name,
        )
        return BalanceResult(pr_id=pr.id, outcome=Outcome.BALANCED, required=required, optional=optional)

    def should_filter(self, pr: PullRequestView) -> bool:
        return any(f(pr) for f in self._options.filters)

    def _excluded_aliases(self, pr: PullRequestView) -> set[str]:
        if not self._options.exclude_author or not pr.author_id:
            return set()
        try:
            return {self._store.get_reviewer_by_external_id(pr.author_id).alias}
        except NotFoundError:
            return set()

    def _apply(self, pr: PullRequestView, selection: Selection) -> None:
        if selection.required is not None:
            external_id = self._external_id(selection.required)
            self._host.add_reviewer(pr.repository_id, pr.id, external_id, required=True)
        if selection.optional is not None:
            external_id = self._external_id(selection.optional)
            self._host.add_reviewer(pr.repository_id, pr.id, external_id, required=False)

    def _external_id(self, reviewer: Reviewer) -> str:
        """Return the reviewer's host id, resolving and back-filling it if the store lacks it."""
        if reviewer.external_id:
            return reviewer.external_id
        if self._directory is None:
            raise ResolutionError(f"reviewer {reviewer.alias!r} has no external id yet")
        external_id = self._directory.resolve_alias(reviewer.alias)
        current = self._store.get_reviewer(reviewer.alias)
        self._store.upsert_reviewer(replace(current, external_id=external_id))
        return external_id

    def _fire_triggers(self, pr: PullRequestView, selection: Selection) -> None:
        required = [selection.required] if selection.required else []
        optional = [selection.optional] if selection.optional else []
        for trigger in self._options.triggers:
            try:
                trigger.fire(required, optional, pr.url)
            except Exception as e:
                # The assignment already happened; a notification failure must not undo or block it.
                logger.error("Trigger %s failed for PR #%s: %s", trigger.name, pr.id, e)
