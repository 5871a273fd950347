"""Response models for workspace git/GitHub operations.

Fields are snake_case in Python and serialize as camelCase for the UI.
"""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

PullRequestState = Literal["open", "draft", "merged"]
CheckStatus = Literal["queued", "in_progress", "completed"]
CheckConclusion = Literal[
    "success",
    "failure",
    "neutral",
    "cancelled",
    "skipped",
    "timed_out",
    "action_required",
]
RollupState = Literal["failure", "in_progress", "pending", "success", "neutral"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class OperationResult(CamelModel, Generic[T]):
    """Envelope returned by every workspace operation."""

    success: bool = Field(description="Whether the operation completed")
    data: T | None = Field(default=None, description="Operation payload (null means no data)")
    error: str | None = Field(default=None, description="Error message when success is false")


class RepoIdentityData(CamelModel):
    current_branch: str = Field(description="Checked-out branch (empty for detached HEAD)")
    owner_repo: str | None = Field(description="Repository operations target (upstream in a fork)")
    is_fork: bool = Field(description="Whether origin is a fork of upstream")
    origin_owner_repo: str | None = Field(description="owner/repo of origin")


class BranchData(CamelModel):
    current_branch: str | None = Field(description="Checked-out branch, null when detached")


class PullRequestData(CamelModel):
    number: int = Field(description="Pull request number")
    url: str = Field(description="Pull request URL")
    state: PullRequestState = Field(description="open, draft or merged")


class CommitUrlData(CamelModel):
    url: str = Field(description="GitHub commit URL")


class BehindBaseData(CamelModel):
    behind: int = Field(ge=0, description="Commits on the base branch missing from HEAD")
    base_branch: str = Field(description="Base branch compared against")


class SyncCounts(CamelModel):
    ahead: int = Field(ge=0, description="Local commits not on the pushed branch")
    behind: int = Field(ge=0, description="Pushed commits not in HEAD")
    branch: str | None = Field(description="Current branch, null when detached")


class CheckRun(CamelModel):
    id: int = Field(description="Index of the check in gh output")
    name: str = Field(description="Check name")
    status: CheckStatus
    conclusion: CheckConclusion | None
    started_at: str | None = None
    completed_at: str | None = None
    details_url: str | None = None


class CIStatusData(CamelModel):
    rollup_state: RollupState
    checks: list[CheckRun]
    total_count: int
    success_count: int
    failure_count: int
    pending_count: int


class FileContentData(CamelModel):
    content: str


class MarkReadyData(CamelModel):
    repo: str = Field(description="Repository where the PR was marked ready")
