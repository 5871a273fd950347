"""Classify GitHub remotes and decide which one each operation should use.

Pure functions only. Every remote-dependent operation (PR lookup, mark-ready,
commit URLs, CI status) orders its attempts through ``remote_attempts_for``
so the fork preference is decided in exactly one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# git@github.com:owner/repo(.git), ssh://git@github.com/owner/repo(.git)
# or https://github.com/owner/repo(.git)
_GITHUB_REMOTE = re.compile(
    r"^(?:git@github\.com:|ssh://git@github\.com(?::\d+)?/|https://(?:[^@/\s]+@)?github\.com/)"
    r"(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)


class RemoteLabel(str, Enum):
    ORIGIN = "origin"
    UPSTREAM = "upstream"


@dataclass(frozen=True)
class OwnerRepo:
    """A GitHub ``owner/repo`` pair."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class RepoIdentity:
    """Cached facts about a workspace's repository.

    ``owner_repo`` is the repository operations should target; in a fork it
    points at upstream while ``origin_owner_repo`` keeps the contributor's fork.
    """

    current_branch: str
    owner_repo: str | None
    is_fork: bool = False
    origin_owner_repo: str | None = None

    @property
    def is_complete(self) -> bool:
        """A record missing branch or owner/repo counts as a cache miss."""
        return bool(self.current_branch) and bool(self.owner_repo)


@dataclass(frozen=True)
class RemoteAttempt:
    repo_ref: str
    remote_label: RemoteLabel


def parse_owner_repo(url: str | None) -> OwnerRepo | None:
    """Extract ``owner/repo`` from an SSH or HTTPS GitHub remote URL.

    Returns None for empty input and for remotes hosted anywhere but github.com.
    """
    if not url:
        return None
    match = _GITHUB_REMOTE.match(url.strip())
    if match is None:
        return None
    return OwnerRepo(owner=match.group("owner"), repo=match.group("repo"))


def is_fork_pair(origin: OwnerRepo | None, upstream: OwnerRepo | None) -> bool:
    if origin is None or upstream is None:
        return False
    return origin.repo == upstream.repo and origin.owner != upstream.owner


def is_fork_of(origin_url: str | None, upstream_url: str | None) -> bool:
    """True iff both URLs parse, name the same repo and have different owners."""
    return is_fork_pair(parse_owner_repo(origin_url), parse_owner_repo(upstream_url))


def identity_from_remotes(
    current_branch: str,
    origin_url: str | None,
    upstream_url: str | None,
) -> RepoIdentity:
    """Build a complete identity record from probed branch and remote URLs."""
    origin = parse_owner_repo(origin_url)
    upstream = parse_owner_repo(upstream_url)
    is_fork = is_fork_pair(origin, upstream)

    if is_fork and upstream is not None:
        owner_repo: str | None = upstream.full_name
    elif origin is not None:
        owner_repo = origin.full_name
    elif upstream is not None:
        owner_repo = upstream.full_name
    else:
        owner_repo = None

    return RepoIdentity(
        current_branch=current_branch,
        owner_repo=owner_repo,
        is_fork=is_fork,
        origin_owner_repo=origin.full_name if origin is not None else None,
    )


def remote_attempts_for(identity: RepoIdentity | None) -> list[RemoteAttempt]:
    """Ordered remotes to try: upstream then origin for forks, otherwise origin only."""
    if identity is None or not identity.owner_repo:
        return []
    if identity.is_fork:
        attempts = [RemoteAttempt(identity.owner_repo, RemoteLabel.UPSTREAM)]
        if identity.origin_owner_repo:
            attempts.append(RemoteAttempt(identity.origin_owner_repo, RemoteLabel.ORIGIN))
        return attempts
    return [RemoteAttempt(identity.owner_repo, RemoteLabel.ORIGIN)]


def origin_owner(identity: RepoIdentity) -> str | None:
    if not identity.origin_owner_repo:
        return None
    return identity.origin_owner_repo.split("/", 1)[0]


def branch_ref_for(attempt: RemoteAttempt, branch: str, origin_owner_name: str | None) -> str:
    """Branch reference as gh expects it for the attempted repository.

    Cross-fork PR heads on upstream are addressed as ``<fork-owner>:<branch>``.
    """
    if attempt.remote_label == RemoteLabel.UPSTREAM and origin_owner_name:
        return f"{origin_owner_name}:{branch}"
    return branch
