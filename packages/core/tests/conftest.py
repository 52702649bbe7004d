"""Shared fakes for the core test-suite.

FakeHost and FakeDirectory implement the same duck-typed interfaces as
GitHubHost and GitHubDirectory, backed by plain dicts, and record every
mutating call so tests can assert on side effects.
"""

from datetime import datetime, timedelta, timezone

import pytest

from revbalance_core.errors import NotFoundError, ResolutionError
from revbalance_core.gh.pull_request import PullRequestView
from revbalance_store.memory import MemoryStore
from revbalance_store.models import Repository

REPO_ID = "1001"


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


class FakeHost:
    def __init__(self):
        self.files: dict[str, str] = {}
        self.changed: dict[int, list[str]] = {}
        self.comments: dict[int, list[str]] = {}
        self.teams: dict[str, list[str]] = {}
        self.repositories: list[tuple[str, str]] = [("widgets", REPO_ID)]
        self.pull_requests: list[PullRequestView] = []
        self.page_size = 100

        self.fetched: list[str] = []
        self.page_requests: list[int] = []
        self.reviewers_added: list[tuple[int, str, bool]] = []
        self.posted: list[tuple[int, str]] = []

    def list_open_pull_requests(self, repo_id):
        return list(self.pull_requests)

    def list_changed_paths(self, repo_id, pr_id, page=0):
        self.page_requests.append(page)
        paths = self.changed.get(pr_id, [])
        start = page * self.page_size
        end = start + self.page_size
        return paths[start:end], (page + 1 if end < len(paths) else None)

    def get_file_content(self, repo_id, path):
        self.fetched.append(path)
        try:
            return self.files[path]
        except KeyError:
            raise NotFoundError(path)

    def list_files(self, repo_id):
        return sorted(self.files)

    def list_comments(self, repo_id, pr_id):
        return list(self.comments.get(pr_id, []))

    def post_comment(self, repo_id, pr_id, text):
        self.comments.setdefault(pr_id, []).append(text)
        self.posted.append((pr_id, text))

    def add_reviewer(self, repo_id, pr_id, external_id, required):
        self.reviewers_added.append((pr_id, external_id, required))

    def list_repositories(self, project):
        return list(self.repositories)

    def list_team_members(self, project, team_name):
        try:
            return list(self.teams[team_name])
        except KeyError:
            raise NotFoundError(team_name)


class FakeDirectory:
    def __init__(self, ids=None):
        self.ids: dict[str, str] = dict(ids or {})
        self.lookups: list[str] = []

    def resolve_alias(self, alias):
        self.lookups.append(alias)
        try:
            return self.ids[alias]
        except KeyError:
            raise ResolutionError(alias)


def make_pr(pr_id=1, title="Add feature", target_branch="main", author_id="", is_draft=False):
    return PullRequestView(
        id=pr_id,
        repository_id=REPO_ID,
        author_id=author_id,
        title=title,
        target_branch=target_branch,
        default_branch="main",
        url=f"https://github.com/acme/widgets/pull/{pr_id}",
        is_draft=is_draft,
    )


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def repository(store):
    return store.add_repository(Repository(name="widgets", project_name="acme", external_repo_id=REPO_ID))


@pytest.fixture
def pr_factory():
    return make_pr
