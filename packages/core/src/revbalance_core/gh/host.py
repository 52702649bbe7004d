"""GitHub as the source-control host, through PyGithub.

Every method translates PyGithub failures into the engine's error kinds:

    UnknownObjectException / HTTP 404   → NotFoundError
    RateLimitExceededException          → RateLimitedError
    other GithubException, OSError      → TransportError

OSError covers requests' transport exceptions (timeouts, refused
connections), which PyGithub lets through unwrapped.

GitHub has no per-reviewer "required" flag on review requests. A required
reviewer is requested *and* assigned to the pull request; an optional
reviewer is only requested. Re-requesting an existing reviewer is a no-op
on GitHub, which keeps add_reviewer idempotent. GitHub refuses review
requests for the pull request author, so an author picked as required
reviewer is only assigned.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Iterator

from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException

from revbalance_core.errors import NotFoundError, RateLimitedError, TransportError
from revbalance_core.gh.pull_request import PullRequestView, changed_paths, to_view

logger = logging.getLogger(__name__)

_PER_PAGE = 100


def team_slug(team_name: str) -> str:
    """GitHub addresses teams by slug: "Platform Infra" → "platform-infra"."""
    return re.sub(r"[^a-z0-9_]+", "-", team_name.strip().lower()).strip("-")


@contextmanager
def translate_errors(what: str) -> Iterator[None]:
    try:
        yield
    except UnknownObjectException as e:
        raise NotFoundError(f"{what}: not found") from e
    except RateLimitExceededException as e:
        raise RateLimitedError(f"{what}: rate limited") from e
    except GithubException as e:
        if e.status == 404:
            raise NotFoundError(f"{what}: not found") from e
        raise TransportError(f"{what}: HTTP {e.status}") from e
    except OSError as e:
        raise TransportError(f"{what}: {type(e).__name__}: {e}") from e


def build_client(token: str, base_url: str | None = None, timeout: int = 30) -> Github:
    """Create a PyGithub client with a bounded timeout and no automatic retry."""
    kwargs = {"auth": Auth.Token(token), "timeout": timeout, "retry": None, "per_page": _PER_PAGE}
    if base_url:
        kwargs["base_url"] = base_url
    return Github(**kwargs)


class GitHubHost:
    """Source-host collaborator used by the resolver, reconciler and balancer.

    ``repo_id`` arguments are GitHub's numeric repository ids as strings,
    the value stored in ``Repository.external_repo_id``.
    """

    def __init__(self, client: Github):
        self._gh = client
        self._repos: dict[str, object] = {}

    def _repo(self, repo_id: str):
        if repo_id not in self._repos:
            with translate_errors(f"repository {repo_id}"):
                self._repos[repo_id] = self._gh.get_repo(int(repo_id))
        return self._repos[repo_id]

    def _pull(self, repo_id: str, pr_id: int):
        repo = self._repo(repo_id)
        with translate_errors(f"pull request {repo_id}#{pr_id}"):
            return repo.get_pull(pr_id)

    def list_open_pull_requests(self, repo_id: str) -> list[PullRequestView]:
        repo = self._repo(repo_id)
        with translate_errors(f"open pull requests of {repo_id}"):
            return [to_view(pr, repo_id) for pr in repo.get_pulls(state="open")]

    def list_changed_paths(self, repo_id: str, pr_id: int, page: int = 0) -> tuple[list[str], int | None]:
        """Return one page of changed paths and the next page number, or None on the last page.

        GitHub's PR files listing is the cumulative diff across every push,
        so there is no per-iteration walk to do.
        """
        pr = self._pull(repo_id, pr_id)
        with translate_errors(f"changed files of {repo_id}#{pr_id}"):
            files = pr.get_files().get_page(page)
        next_page = page + 1 if len(files) >= _PER_PAGE else None
        return changed_paths(files), next_page

    def get_file_content(self, repo_id: str, path: str) -> str:
        """Return a file's text from the default branch. Raises NotFoundError."""
        repo = self._repo(repo_id)
        with translate_errors(f"file {path} in {repo_id}"):
            content = repo.get_contents(path.lstrip("/"))
        if isinstance(content, list):
            raise NotFoundError(f"file {path} in {repo_id}: is a directory")
        return content.decoded_content.decode("utf-8", errors="replace")

    def list_files(self, repo_id: str) -> list[str]:
        """Recursively list every blob path on the default branch."""
        repo = self._repo(repo_id)
        with translate_errors(f"tree of {repo_id}"):
            tree = repo.get_git_tree(repo.default_branch, recursive=True)
        raw = getattr(tree, "raw_data", None)
        if isinstance(raw, dict) and raw.get("truncated"):
            logger.warning("Tree listing of %s was truncated by GitHub; some owners files may be missed.", repo_id)
        return [element.path for element in tree.tree if element.type == "blob"]

    def list_comments(self, repo_id: str, pr_id: int) -> list[str]:
        pr = self._pull(repo_id, pr_id)
        with translate_errors(f"comments of {repo_id}#{pr_id}"):
            return [c.body or "" for c in pr.get_issue_comments()]

    def post_comment(self, repo_id: str, pr_id: int, text: str) -> None:
        pr = self._pull(repo_id, pr_id)
        with translate_errors(f"comment on {repo_id}#{pr_id}"):
            pr.create_issue_comment(text)

    def add_reviewer(self, repo_id: str, pr_id: int, external_id: str, required: bool) -> None:
        pr = self._pull(repo_id, pr_id)
        with translate_errors(f"user {external_id}"):
            login = self._gh.get_user_by_id(int(external_id)).login
        author = pr.user.login if pr.user is not None else None
        with translate_errors(f"review request on {repo_id}#{pr_id}"):
            if login == author:
                # GitHub answers 422 when a review is requested from the PR author.
                logger.info("%s authored %s#%s; not requesting their review", login, repo_id, pr_id)
            else:
                pr.create_review_request(reviewers=[login])
            if required:
                pr.add_to_assignees(login)

    def list_repositories(self, project: str) -> list[tuple[str, str]]:
        """Return (name, external_repo_id) for every repository owned by ``project``."""
        try:
            with translate_errors(f"organization {project}"):
                owner = self._gh.get_organization(project)
                return [(r.name, str(r.id)) for r in owner.get_repos()]
        except NotFoundError:
            logger.debug("%s is not an organization, trying it as a user", project)
        with translate_errors(f"user {project}"):
            return [(r.name, str(r.id)) for r in self._gh.get_user(project).get_repos()]

    def list_team_members(self, project: str, team_name: str) -> list[str]:
        with translate_errors(f"team {team_name} in {project}"):
            team = self._gh.get_organization(project).get_team_by_slug(team_slug(team_name))
            return [member.login for member in team.get_members()]
