"""
Workspace git/GitHub operations as ``{success, data, error}`` envelopes.

This is the boundary the HTTP layer (and any other UI) talks to. Every
operation takes a workspace id, delegates to the engine services and turns
any exception into ``success=False`` with a message; nothing raises past
this layer.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TypeVar

from worksync.exceptions import WorksyncError
from worksync.models.git import (
    BehindBaseData,
    BranchData,
    CIStatusData,
    CommitUrlData,
    FileContentData,
    MarkReadyData,
    OperationResult,
    PullRequestData,
    RepoIdentityData,
    SyncCounts,
)
from worksync.services.ci_status import CIStatusService
from worksync.services.file_content import FileContentReader, FileRef
from worksync.services.identity_cache import RepositoryIdentityCache
from worksync.services.pull_requests import PullRequestGateway
from worksync.services.sync_status import SyncStatusCalculator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GitWorkflowService:
    """Facade over the identity cache, PR gateway, sync and CI services."""

    def __init__(
        self,
        identity_cache: RepositoryIdentityCache,
        pull_requests: PullRequestGateway,
        sync_status: SyncStatusCalculator,
        ci_service: CIStatusService,
        file_reader: FileContentReader,
    ) -> None:
        self.identity_cache = identity_cache
        self.pull_requests = pull_requests
        self.sync_status = sync_status
        self.ci_service = ci_service
        self.file_reader = file_reader

    async def _envelope(
        self, operation: str, workspace_id: str, call: Awaitable[T | None]
    ) -> OperationResult[T]:
        try:
            data = await call
        except WorksyncError as e:
            logger.warning(
                f"{operation} failed",
                extra={
                    "operation": operation,
                    "workspace_id": workspace_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            return OperationResult(success=False, error=str(e))
        except Exception as e:
            logger.exception(
                f"Unexpected error in {operation}",
                extra={
                    "operation": operation,
                    "workspace_id": workspace_id,
                    "error_type": type(e).__name__,
                },
            )
            return OperationResult(success=False, error=str(e) or type(e).__name__)
        return OperationResult(success=True, data=data)

    async def resolve_repo_identity(self, workspace_id: str) -> OperationResult[RepoIdentityData]:
        async def _resolve() -> RepoIdentityData | None:
            identity = await self.identity_cache.resolve(workspace_id)
            if identity is None:
                return None
            return RepoIdentityData(
                current_branch=identity.current_branch,
                owner_repo=identity.owner_repo,
                is_fork=identity.is_fork,
                origin_owner_repo=identity.origin_owner_repo,
            )

        return await self._envelope("resolve_repo_identity", workspace_id, _resolve())

    async def current_branch(self, workspace_id: str) -> OperationResult[BranchData]:
        async def _branch() -> BranchData:
            return BranchData(current_branch=await self.identity_cache.current_branch(workspace_id))

        return await self._envelope("current_branch", workspace_id, _branch())

    async def invalidate_repo_identity(self, workspace_id: str) -> OperationResult[None]:
        return await self._envelope(
            "invalidate_repo_identity", workspace_id, self.identity_cache.invalidate(workspace_id)
        )

    async def find_pull_request(self, workspace_id: str) -> OperationResult[PullRequestData]:
        return await self._envelope(
            "find_pull_request", workspace_id, self.pull_requests.find_pull_request(workspace_id)
        )

    async def mark_pull_request_ready(self, workspace_id: str) -> OperationResult[MarkReadyData]:
        """Mark the draft PR ready; failure only after every remote was tried."""
        result = await self._envelope(
            "mark_pull_request_ready", workspace_id, self.pull_requests.mark_ready(workspace_id)
        )
        if result.success and result.data is None:
            return OperationResult(success=False, error="Failed to mark pull request ready")
        return result

    async def commit_github_url(
        self, workspace_id: str, commit_hash: str
    ) -> OperationResult[CommitUrlData]:
        return await self._envelope(
            "commit_github_url",
            workspace_id,
            self.pull_requests.commit_github_url(workspace_id, commit_hash),
        )

    async def commits_behind_base(
        self, workspace_id: str, base_branch: str | None = None
    ) -> OperationResult[BehindBaseData]:
        return await self._envelope(
            "commits_behind_base",
            workspace_id,
            self.sync_status.commits_behind_base(workspace_id, base_branch),
        )

    async def pull_request_remote_commits(self, workspace_id: str) -> OperationResult[SyncCounts]:
        return await self._envelope(
            "pull_request_remote_commits",
            workspace_id,
            self.sync_status.pull_request_remote_commits(workspace_id),
        )

    async def ci_status(self, workspace_id: str) -> OperationResult[CIStatusData]:
        return await self._envelope(
            "ci_status", workspace_id, self.ci_service.get_ci_status(workspace_id)
        )

    async def file_content(
        self,
        workspace_id: str,
        file_path: str,
        ref: FileRef = FileRef.HEAD,
        max_bytes: int | None = None,
    ) -> OperationResult[FileContentData]:
        return await self._envelope(
            "file_content",
            workspace_id,
            self.file_reader.read(workspace_id, file_path, ref, max_bytes),
        )
