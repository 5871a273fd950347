"""Pull request lookup and mutation through the gh CLI.

Every operation walks the remote attempts from ``remote_attempts_for`` in
order and stops at the first remote that answers. A failing or malformed
answer moves on to the next remote; running out of remotes means "no pull
request", which is a normal outcome.
"""

from __future__ import annotations

import json
import logging
import re

from worksync.exceptions import ValidationError
from worksync.models.git import CommitUrlData, MarkReadyData, PullRequestData
from worksync.services.command_executor import (
    CommandExecutor,
    CommandResult,
    CommandSpec,
    OperationType,
)
from worksync.services.identity_cache import RepositoryIdentityCache
from worksync.services.remote_resolver import (
    RemoteAttempt,
    RepoIdentity,
    branch_ref_for,
    origin_owner,
    remote_attempts_for,
)
from worksync.services.session_store import Workspace

logger = logging.getLogger(__name__)

PR_VIEW_TIMEOUT_SECONDS = 8.0
PR_READY_TIMEOUT_SECONDS = 30.0
PR_VIEW_FIELDS = "number,url,state,isDraft"

_COMMIT_HASH = re.compile(r"^[0-9a-fA-F]{4,64}$")


def parse_pull_request_view(stdout: str) -> PullRequestData | None:
    """Normalize ``gh pr view --json number,url,state,isDraft`` output.

    Returns None when the payload is not JSON or lacks a number and url.
    """
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    number = data.get("number")
    url = data.get("url")
    if not isinstance(number, int) or isinstance(number, bool) or not isinstance(url, str) or not url:
        return None

    if data.get("state") == "MERGED":
        state = "merged"
    elif data.get("isDraft"):
        state = "draft"
    else:
        state = "open"
    return PullRequestData(number=number, url=url, state=state)


class PullRequestGateway:
    """Finds, marks ready and links pull requests for a workspace branch."""

    def __init__(
        self,
        executor: CommandExecutor,
        identity_cache: RepositoryIdentityCache,
        *,
        gh_binary: str = "gh",
        view_timeout_seconds: float = PR_VIEW_TIMEOUT_SECONDS,
    ) -> None:
        self.executor = executor
        self.identity_cache = identity_cache
        self.gh_binary = gh_binary
        self.view_timeout_seconds = view_timeout_seconds

    async def find_pull_request(self, workspace_id: str) -> PullRequestData | None:
        """Return the pull request for the current branch, or None."""
        workspace = await self.identity_cache.workspace(workspace_id)
        identity = await self.identity_cache.resolve(workspace_id)
        if identity is None or not identity.is_complete:
            return None

        for attempt, branch_ref in _attempts_with_refs(identity):
            result = await self._gh(
                workspace,
                ("pr", "view", "--repo", attempt.repo_ref, branch_ref, "--json", PR_VIEW_FIELDS),
                timeout_seconds=self.view_timeout_seconds,
            )
            if not result.succeeded or not result.stdout.strip():
                continue

            pull_request = parse_pull_request_view(result.stdout)
            if pull_request is None:
                logger.warning(
                    "Malformed gh pr view output, trying next remote",
                    extra={"workspace_id": workspace_id, "repo": attempt.repo_ref},
                )
                continue
            return pull_request

        return None

    async def mark_ready(self, workspace_id: str) -> MarkReadyData | None:
        """Mark the branch's draft PR ready for review.

        Returns the repository where it succeeded, or None once every remote
        has been tried.
        """
        workspace = await self.identity_cache.workspace(workspace_id)
        identity = await self.identity_cache.resolve(workspace_id)
        if identity is None or not identity.is_complete:
            return None

        for attempt, branch_ref in _attempts_with_refs(identity):
            result = await self._gh(
                workspace,
                ("pr", "ready", "--repo", attempt.repo_ref, branch_ref),
                timeout_seconds=PR_READY_TIMEOUT_SECONDS,
                op=OperationType.WRITE,
            )
            if result.succeeded:
                logger.info(
                    "Marked pull request ready",
                    extra={"workspace_id": workspace_id, "repo": attempt.repo_ref},
                )
                return MarkReadyData(repo=attempt.repo_ref)

        logger.info(
            "Could not mark pull request ready on any remote",
            extra={"workspace_id": workspace_id},
        )
        return None

    async def commit_github_url(self, workspace_id: str, commit_hash: str) -> CommitUrlData | None:
        """Static GitHub URL for a commit in the preferred repository."""
        cleaned = commit_hash.strip()
        if not _COMMIT_HASH.match(cleaned):
            msg = "Commit hash is required"
            raise ValidationError(msg, context={"field": "commit_hash", "value": commit_hash})

        attempts = remote_attempts_for(await self.identity_cache.resolve(workspace_id))
        if not attempts:
            return None
        return CommitUrlData(url=f"https://github.com/{attempts[0].repo_ref}/commit/{cleaned}")

    async def _gh(
        self,
        workspace: Workspace,
        args: tuple[str, ...],
        *,
        timeout_seconds: float,
        op: OperationType = OperationType.READ,
    ) -> CommandResult:
        return await self.executor.run(
            CommandSpec(
                working_directory=workspace.working_directory or ".",
                argv=(self.gh_binary, *args),
                timeout_seconds=timeout_seconds,
                workspace_id=workspace.workspace_id,
                op=op,
                meta={"source": "pull_requests"},
            )
        )


def _attempts_with_refs(identity: RepoIdentity | None) -> list[tuple[RemoteAttempt, str]]:
    if identity is None:
        return []
    owner = origin_owner(identity)
    return [
        (attempt, branch_ref_for(attempt, identity.current_branch, owner))
        for attempt in remote_attempts_for(identity)
    ]
