"""Models for the worksync service."""

from worksync.models.git import (
    BehindBaseData,
    BranchData,
    CheckRun,
    CIStatusData,
    CommitUrlData,
    FileContentData,
    MarkReadyData,
    OperationResult,
    PullRequestData,
    RepoIdentityData,
    SyncCounts,
)
from worksync.models.health import HealthCheckResponse, HealthStatus, ServiceHealth
from worksync.models.workspace import (
    TimelineEventResponse,
    TimelineResponse,
    WorkspaceRequest,
    WorkspaceResponse,
)

__all__ = [
    "BehindBaseData",
    "BranchData",
    "CIStatusData",
    "CheckRun",
    "CommitUrlData",
    "FileContentData",
    "HealthCheckResponse",
    "HealthStatus",
    "MarkReadyData",
    "OperationResult",
    "PullRequestData",
    "RepoIdentityData",
    "ServiceHealth",
    "SyncCounts",
    "TimelineEventResponse",
    "TimelineResponse",
    "WorkspaceRequest",
    "WorkspaceResponse",
]
