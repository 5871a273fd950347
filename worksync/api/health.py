"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from worksync.dependencies import get_health_service
from worksync.models.health import HealthCheckResponse
from worksync.services.health import HealthCheckService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health(
    health_service: HealthCheckService = Depends(get_health_service),
) -> HealthCheckResponse:
    """
    Liveness check with git/gh availability.

    Always returns 200 while the process is serving. No authentication required.
    """
    return await health_service.check_health()


@router.get("/health/ready", response_model=HealthCheckResponse)
async def health_ready(
    response: Response,
    health_service: HealthCheckService = Depends(get_health_service),
) -> HealthCheckResponse:
    """
    Readiness check.

    Returns 503 when a required dependency (git, session store) is unusable.
    """
    health_check = await health_service.check_health()

    if not health_check.is_ready():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_check
