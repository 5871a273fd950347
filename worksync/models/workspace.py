"""Request/response models for workspace registration and the timeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class WorkspaceRequest(BaseModel):
    """Register or update a workspace."""

    working_directory: str = Field(..., min_length=1, description="Absolute path of the worktree")
    base_branch: str | None = Field(None, description="Branch the workspace was created from")


class WorkspaceResponse(BaseModel):
    workspace_id: str
    working_directory: str | None
    base_branch: str | None


class TimelineEventResponse(BaseModel):
    event_id: int
    recorded_at: datetime
    kind: str
    status: str
    command: str
    cwd: str
    duration_ms: int | None = None
    exit_code: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TimelineResponse(BaseModel):
    """A page of recorded command events for a workspace."""

    events: list[TimelineEventResponse]
    next_cursor: int = Field(-1, description="Pass as `after` to fetch newer events")
    dropped_before: int = Field(0, description="Events older than this id were evicted")
