"""Per-workspace cache of branch and GitHub repository identity.

A complete cached record (branch and owner/repo both present) is returned
without running any command. Anything less triggers a probe of the current
branch and the origin/upstream remotes, and a complete result is written
back as a single record.

Concurrent misses for the same workspace may both probe and both write; the
probe is idempotent so the last write wins without leaving mixed state.
"""

from __future__ import annotations

import asyncio
import logging

from worksync.exceptions import WorkspaceNotFoundError
from worksync.services.command_executor import CommandExecutor, CommandResult, CommandSpec
from worksync.services.remote_resolver import RepoIdentity, identity_from_remotes
from worksync.services.session_store import SessionStore, Workspace

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 15.0


class RepositoryIdentityCache:
    """Resolves and caches :class:`RepoIdentity` per workspace."""

    def __init__(
        self,
        executor: CommandExecutor,
        store: SessionStore,
        *,
        git_binary: str = "git",
        timeout_seconds: float = PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self.executor = executor
        self.store = store
        self.git_binary = git_binary
        self.timeout_seconds = timeout_seconds

    async def workspace(self, workspace_id: str) -> Workspace:
        """Look up a workspace that has a working directory, or raise."""
        workspace = await self.store.get_workspace(workspace_id)
        if workspace is None or workspace.working_directory is None:
            msg = "Session worktree not found"
            raise WorkspaceNotFoundError(msg, context={"workspace_id": workspace_id})
        return workspace

    async def resolve(self, workspace_id: str) -> RepoIdentity | None:
        """Return the workspace identity, probing and caching on a miss.

        None means no repository information is available (not a git
        repository, git unavailable); it is not an error.
        """
        workspace = await self.workspace(workspace_id)

        cached = await self.store.get_cached_identity(workspace_id)
        if cached is not None and cached.is_complete:
            return cached

        identity = await self.probe(workspace)
        if identity is None:
            return None

        if identity.is_complete:
            await self.store.set_cached_identity(workspace_id, identity)
            logger.info(
                "Cached repository identity",
                extra={
                    "workspace_id": workspace_id,
                    "branch": identity.current_branch,
                    "owner_repo": identity.owner_repo,
                    "is_fork": identity.is_fork,
                },
            )
        return identity

    async def invalidate(self, workspace_id: str) -> None:
        """Drop the cached record so the next resolve probes again."""
        await self.workspace(workspace_id)
        await self.store.set_cached_identity(workspace_id, None)
        logger.info("Invalidated repository identity", extra={"workspace_id": workspace_id})

    async def probe(self, workspace: Workspace) -> RepoIdentity | None:
        """Read branch and remotes from git without touching the cache."""
        branch_result = await self._git(workspace, "branch", "--show-current")
        if not branch_result.succeeded:
            logger.info(
                "Branch probe failed",
                extra={
                    "workspace_id": workspace.workspace_id,
                    "exit_code": branch_result.exit_code,
                    "error": branch_result.error,
                },
            )
            return None

        origin_result, upstream_result = await asyncio.gather(
            self._git(workspace, "remote", "get-url", "origin"),
            self._git(workspace, "remote", "get-url", "upstream"),
        )

        return identity_from_remotes(
            branch_result.stdout.strip(),
            _url_or_none(origin_result),
            _url_or_none(upstream_result),
        )

    async def current_branch(self, workspace_id: str) -> str | None:
        """Current branch, from the cache when present; None for detached HEAD."""
        workspace = await self.workspace(workspace_id)
        cached = await self.store.get_cached_identity(workspace_id)
        if cached is not None and cached.current_branch:
            return cached.current_branch

        result = await self._git(workspace, "branch", "--show-current")
        if not result.succeeded:
            return None
        return result.stdout.strip() or None

    async def _git(self, workspace: Workspace, *args: str) -> CommandResult:
        if workspace.working_directory is None:
            msg = "Session worktree not found"
            raise WorkspaceNotFoundError(msg, context={"workspace_id": workspace.workspace_id})
        return await self.executor.run(
            CommandSpec(
                working_directory=workspace.working_directory,
                argv=(self.git_binary, *args),
                timeout_seconds=self.timeout_seconds,
                workspace_id=workspace.workspace_id,
                meta={"source": "identity_cache"},
            )
        )


def _url_or_none(result: CommandResult) -> str | None:
    if not result.succeeded:
        return None
    return result.stdout.strip() or None
