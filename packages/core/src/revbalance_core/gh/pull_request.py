from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PullRequestView:
    """The parts of an upstream pull request the balancer needs. Never persisted."""

    id: int
    repository_id: str
    author_id: str
    title: str
    target_branch: str
    default_branch: str = ""
    url: str = ""
    is_draft: bool = False


def to_view(pr, repository_id: str) -> PullRequestView:
    """Project a PyGithub PullRequest onto a PullRequestView."""
    user = pr.user
    return PullRequestView(
        id=pr.number,
        repository_id=repository_id,
        author_id=str(user.id) if user is not None else "",
        title=pr.title or "",
        target_branch=pr.base.ref,
        default_branch=pr.base.repo.default_branch or "",
        url=pr.html_url or "",
        is_draft=bool(pr.draft),
    )


def marker_comment(marker: str) -> str:
    """Render the bot marker as an HTML comment so it stays invisible in the rendered PR."""
    return f"<!-- revbalance: {marker} -->"


def contains_marker(comment_bodies, marker: str) -> bool:
    """Return True if any comment body carries the bot marker."""
    return any(marker in (body or "") for body in comment_bodies)


def changed_paths(files) -> list[str]:
    """Flatten PR file entries into paths; a rename contributes its old and new path."""
    paths = []
    for f in files:
        paths.append(f.filename)
        previous = getattr(f, "previous_filename", None)
        if previous and previous != f.filename:
            paths.append(previous)
    return paths
