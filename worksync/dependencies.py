from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from worksync.config import get_settings
from worksync.services.container import get_container

if TYPE_CHECKING:
    from worksync.services.git_workflow import GitWorkflowService
    from worksync.services.health import HealthCheckService
    from worksync.services.session_store import SessionStore
    from worksync.services.timeline import TimelineRecorder

security = HTTPBearer()


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    """Verify the bearer token matches the configured auth token."""
    expected = get_settings().auth_token
    if not expected or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
        )


async def get_git_workflow() -> GitWorkflowService:
    """Get the git workflow facade via dependency injection."""
    return get_container().git_workflow


async def get_session_store() -> SessionStore:
    """Get the session store via dependency injection."""
    return get_container().store


async def get_timeline() -> TimelineRecorder:
    """Get the timeline recorder via dependency injection."""
    return get_container().timeline


async def get_health_service() -> HealthCheckService:
    """Get health check service via dependency injection."""
    return get_container().health_service
