"""Workspace git/GitHub API endpoints.

Git endpoints always answer 200 with a ``{success, data, error}`` envelope;
only authentication and request validation use HTTP error codes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, status

from worksync.dependencies import get_git_workflow, get_session_store, get_timeline, verify_token
from worksync.exceptions import SessionStoreError
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
from worksync.models.workspace import TimelineResponse, WorkspaceRequest, WorkspaceResponse
from worksync.services.file_content import FileRef
from worksync.services.git_workflow import GitWorkflowService
from worksync.services.session_store import SessionStore
from worksync.services.timeline import TimelineRecorder
from worksync.utils.error_handling import format_exception_for_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/workspaces", dependencies=[Depends(verify_token)])


@router.put("/{workspace_id}", response_model=WorkspaceResponse)
async def register_workspace(
    workspace_id: str,
    request: WorkspaceRequest,
    store: SessionStore = Depends(get_session_store),
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> WorkspaceResponse:
    """
    Register a workspace or update its working directory and base branch.

    Any cached repository identity is dropped so the next lookup probes the
    new directory.
    """
    working_directory = Path(request.working_directory)
    if not working_directory.is_absolute():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="working_directory must be an absolute path",
        )

    try:
        workspace = await store.upsert_workspace(
            workspace_id, working_directory, request.base_branch
        )
    except SessionStoreError as e:
        logger.exception("Failed to register workspace", extra={"workspace_id": workspace_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=format_exception_for_response(e),
        ) from e

    await git_workflow.invalidate_repo_identity(workspace_id)

    return WorkspaceResponse(
        workspace_id=workspace.workspace_id,
        working_directory=str(workspace.working_directory) if workspace.working_directory else None,
        base_branch=workspace.base_branch,
    )


@router.get("/{workspace_id}/identity", response_model=OperationResult[RepoIdentityData])
async def get_identity(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[RepoIdentityData]:
    """Branch, owner/repo and fork relationship, from cache when complete."""
    return await git_workflow.resolve_repo_identity(workspace_id)


@router.delete("/{workspace_id}/identity", response_model=OperationResult[None])
async def invalidate_identity(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[None]:
    """Forget the cached identity, e.g. after switching branches."""
    return await git_workflow.invalidate_repo_identity(workspace_id)


@router.get("/{workspace_id}/branch", response_model=OperationResult[BranchData])
async def get_branch(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[BranchData]:
    return await git_workflow.current_branch(workspace_id)


@router.get("/{workspace_id}/pull-request", response_model=OperationResult[PullRequestData])
async def get_pull_request(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[PullRequestData]:
    """Pull request for the current branch; data is null when there is none."""
    return await git_workflow.find_pull_request(workspace_id)


@router.post("/{workspace_id}/pull-request/ready", response_model=OperationResult[MarkReadyData])
async def mark_pull_request_ready(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[MarkReadyData]:
    return await git_workflow.mark_pull_request_ready(workspace_id)


@router.get("/{workspace_id}/commits/{commit_hash}/url", response_model=OperationResult[CommitUrlData])
async def get_commit_url(
    workspace_id: str,
    commit_hash: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[CommitUrlData]:
    return await git_workflow.commit_github_url(workspace_id, commit_hash)


@router.get("/{workspace_id}/sync/behind-base", response_model=OperationResult[BehindBaseData])
async def get_commits_behind_base(
    workspace_id: str,
    base_branch: str | None = Query(None, min_length=1),
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[BehindBaseData]:
    """Commits on the base branch that HEAD does not contain."""
    return await git_workflow.commits_behind_base(workspace_id, base_branch)


@router.get("/{workspace_id}/sync/pull-request", response_model=OperationResult[SyncCounts])
async def get_pull_request_remote_commits(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[SyncCounts]:
    """Ahead/behind counts against the branch's push destination."""
    return await git_workflow.pull_request_remote_commits(workspace_id)


@router.get("/{workspace_id}/ci-status", response_model=OperationResult[CIStatusData])
async def get_ci_status(
    workspace_id: str,
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[CIStatusData]:
    return await git_workflow.ci_status(workspace_id)


@router.get("/{workspace_id}/file", response_model=OperationResult[FileContentData])
async def get_file_content(
    workspace_id: str,
    path: str = Query(..., min_length=1),
    ref: FileRef = Query(FileRef.HEAD),
    max_bytes: int | None = Query(None, gt=0),
    git_workflow: GitWorkflowService = Depends(get_git_workflow),
) -> OperationResult[FileContentData]:
    """File content at HEAD, in the index or in the worktree."""
    return await git_workflow.file_content(workspace_id, path, ref, max_bytes)


@router.get("/{workspace_id}/timeline", response_model=TimelineResponse)
async def get_timeline_events(
    workspace_id: str,
    after: int | None = Query(None, ge=-1),
    timeline: TimelineRecorder = Depends(get_timeline),
) -> TimelineResponse:
    """Recorded command events, oldest first. Poll with ``after=next_cursor``."""
    return TimelineResponse(**await timeline.get_events(workspace_id, after_event_id=after))
