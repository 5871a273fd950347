"""
Ahead/behind commit counts for a workspace.

Two questions are answered here:

- How far is HEAD behind the base branch on the remote that owns it
  (upstream in a fork, otherwise origin)?
- How far has HEAD drifted from the branch the pull request is built from?
  That is the branch's push destination, which in fork workflows is usually
  not the tracking remote.

Both follow the same progression: pick a remote, fetch (failure tolerated,
stale refs are acceptable), verify the remote ref, then count. Whenever a
ref cannot be confirmed or counted the answer is zero, never an error.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from worksync.models.git import BehindBaseData, SyncCounts
from worksync.services.command_executor import CommandExecutor, CommandResult, CommandSpec
from worksync.services.identity_cache import RepositoryIdentityCache
from worksync.services.remote_resolver import RemoteLabel
from worksync.services.session_store import Workspace

logger = logging.getLogger(__name__)

DEFAULT_BASE_BRANCH = "main"
FETCH_TIMEOUT_SECONDS = 60.0
COUNT_TIMEOUT_SECONDS = 15.0


class SyncState(str, Enum):
    """Terminal states of a sync computation."""

    COUNTED = "counted"
    ZERO_FALLBACK = "zero_fallback"


class RemoteSource(str, Enum):
    """Where the push destination of a branch came from."""

    PUSH_REMOTE = "pushRemote"
    TRACKING_REMOTE = "remote"
    DEFAULT = "default"


def parse_count(result: CommandResult) -> int:
    """Parse ``rev-list --count`` output; failures and garbage count as zero."""
    if not result.succeeded:
        return 0
    try:
        return max(int(result.stdout.strip()), 0)
    except ValueError:
        return 0


class SyncStatusCalculator:
    """Computes ahead/behind counts. Results are never cached."""

    def __init__(
        self,
        executor: CommandExecutor,
        identity_cache: RepositoryIdentityCache,
        *,
        git_binary: str = "git",
    ) -> None:
        self.executor = executor
        self.identity_cache = identity_cache
        self.git_binary = git_binary

    async def commits_behind_base(
        self, workspace_id: str, base_branch: str | None = None
    ) -> BehindBaseData:
        """Count commits on ``<remote>/<base>`` that HEAD does not contain."""
        workspace = await self.identity_cache.workspace(workspace_id)
        base = base_branch or workspace.base_branch or DEFAULT_BASE_BRANCH

        identity = await self.identity_cache.resolve(workspace_id)
        remote = RemoteLabel.UPSTREAM if identity is not None and identity.is_fork else RemoteLabel.ORIGIN

        await self._fetch(workspace, remote.value, base)
        result = await self._git(
            workspace,
            ("rev-list", f"HEAD..{remote.value}/{base}", "--count"),
            timeout_seconds=COUNT_TIMEOUT_SECONDS,
        )
        behind = parse_count(result)

        logger.debug(
            "Computed commits behind base",
            extra={
                "workspace_id": workspace_id,
                "remote": remote.value,
                "base_branch": base,
                "behind": behind,
                "state": (SyncState.COUNTED if result.succeeded else SyncState.ZERO_FALLBACK).value,
            },
        )
        return BehindBaseData(behind=behind, base_branch=base)

    async def pull_request_remote_commits(self, workspace_id: str) -> SyncCounts:
        """Ahead/behind against the branch on its push destination."""
        workspace = await self.identity_cache.workspace(workspace_id)
        branch = await self.identity_cache.current_branch(workspace_id)
        if not branch:
            return SyncCounts(ahead=0, behind=0, branch=None)

        remote, source = await self._push_destination(workspace, branch)
        remote_ref = await self._fetch_and_verify(workspace, remote, branch)

        if (
            remote_ref is None
            and source == RemoteSource.TRACKING_REMOTE
            and remote != RemoteLabel.ORIGIN.value
        ):
            logger.debug(
                "Remote branch missing on tracking remote, retrying origin",
                extra={"workspace_id": workspace_id, "remote": remote, "branch": branch},
            )
            remote_ref = await self._fetch_and_verify(workspace, RemoteLabel.ORIGIN.value, branch)

        if remote_ref is None:
            logger.debug(
                "No remote branch to compare against",
                extra={
                    "workspace_id": workspace_id,
                    "branch": branch,
                    "state": SyncState.ZERO_FALLBACK.value,
                },
            )
            return SyncCounts(ahead=0, behind=0, branch=branch)

        ahead_result, behind_result = await asyncio.gather(
            self._git(
                workspace,
                ("rev-list", f"{remote_ref}..HEAD", "--count"),
                timeout_seconds=COUNT_TIMEOUT_SECONDS,
            ),
            self._git(
                workspace,
                ("rev-list", f"HEAD..{remote_ref}", "--count"),
                timeout_seconds=COUNT_TIMEOUT_SECONDS,
            ),
        )
        counts = SyncCounts(
            ahead=parse_count(ahead_result),
            behind=parse_count(behind_result),
            branch=branch,
        )
        logger.debug(
            "Computed pull request remote commits",
            extra={
                "workspace_id": workspace_id,
                "remote_ref": remote_ref,
                "ahead": counts.ahead,
                "behind": counts.behind,
                "state": SyncState.COUNTED.value,
            },
        )
        return counts

    async def _push_destination(self, workspace: Workspace, branch: str) -> tuple[str, RemoteSource]:
        push_remote = await self._config_value(workspace, f"branch.{branch}.pushRemote")
        if push_remote:
            return push_remote, RemoteSource.PUSH_REMOTE

        tracking_remote = await self._config_value(workspace, f"branch.{branch}.remote")
        # "." tracks a local branch, which has no remote ref to compare with
        if tracking_remote and tracking_remote != ".":
            return tracking_remote, RemoteSource.TRACKING_REMOTE

        return RemoteLabel.ORIGIN.value, RemoteSource.DEFAULT

    async def _config_value(self, workspace: Workspace, key: str) -> str | None:
        result = await self._git(workspace, ("config", key), timeout_seconds=COUNT_TIMEOUT_SECONDS)
        if not result.succeeded:
            return None
        return result.stdout.strip() or None

    async def _fetch(self, workspace: Workspace, remote: str, branch: str) -> None:
        result = await self._git(
            workspace,
            ("fetch", remote, branch),
            timeout_seconds=FETCH_TIMEOUT_SECONDS,
        )
        if not result.succeeded:
            logger.debug(
                "Fetch failed, using local refs",
                extra={
                    "workspace_id": workspace.workspace_id,
                    "remote": remote,
                    "branch": branch,
                    "exit_code": result.exit_code,
                },
            )

    async def _fetch_and_verify(self, workspace: Workspace, remote: str, branch: str) -> str | None:
        await self._fetch(workspace, remote, branch)
        verify = await self._git(
            workspace,
            ("show-ref", "--verify", "--quiet", f"refs/remotes/{remote}/{branch}"),
            timeout_seconds=COUNT_TIMEOUT_SECONDS,
        )
        return f"{remote}/{branch}" if verify.succeeded else None

    async def _git(
        self, workspace: Workspace, args: tuple[str, ...], *, timeout_seconds: float
    ) -> CommandResult:
        return await self.executor.run(
            CommandSpec(
                working_directory=workspace.working_directory or ".",
                argv=(self.git_binary, *args),
                timeout_seconds=timeout_seconds,
                workspace_id=workspace.workspace_id,
                meta={"source": "sync_status"},
            )
        )
