"""Health check service."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from worksync.models.health import HealthCheckResponse, HealthStatus, ServiceHealth
from worksync.services.command_executor import CommandSpec

if TYPE_CHECKING:
    from worksync.services.command_executor import CommandExecutor
    from worksync.services.session_store import SessionStore

logger = logging.getLogger(__name__)

VERSION_TIMEOUT_SECONDS = 5.0


class HealthCheckService:
    """Reports whether git, gh and the session store are usable."""

    def __init__(
        self,
        executor: CommandExecutor,
        store: SessionStore,
        *,
        git_binary: str = "git",
        gh_binary: str = "gh",
        version: str = "unknown",
    ) -> None:
        self.executor = executor
        self.store = store
        self.git_binary = git_binary
        self.gh_binary = gh_binary
        self.version = version

    async def check_binary(self, name: str, binary: str, missing_status: HealthStatus) -> ServiceHealth:
        """
        Run ``<binary> --version``.

        git is required for every operation, so a missing git is unhealthy;
        gh only backs PR and CI lookups, so a missing gh is degraded.
        """
        result = await self.executor.run(
            CommandSpec(
                working_directory=".",
                argv=(binary, "--version"),
                timeout_seconds=VERSION_TIMEOUT_SECONDS,
            )
        )
        if not result.succeeded:
            return ServiceHealth(
                name=name,
                status=missing_status,
                message=result.error or result.stderr.strip() or f"{binary} unavailable",
                response_time_ms=result.duration_ms,
            )

        first_line = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        return ServiceHealth(
            name=name,
            status=HealthStatus.HEALTHY,
            message=f"{binary} available",
            response_time_ms=result.duration_ms,
            details={"version": first_line},
        )

    async def check_store_health(self) -> ServiceHealth:
        try:
            await self.store.get_workspace("__health_check__")
        except Exception as e:
            logger.exception("Session store health check failed")
            return ServiceHealth(
                name="session_store",
                status=HealthStatus.UNHEALTHY,
                message=f"Session store check failed: {e}",
            )
        return ServiceHealth(
            name="session_store",
            status=HealthStatus.HEALTHY,
            message="Session store readable",
        )

    async def check_health(self) -> HealthCheckResponse:
        """Check every dependency in parallel and derive the overall status."""
        services = list(
            await asyncio.gather(
                self.check_binary("git", self.git_binary, HealthStatus.UNHEALTHY),
                self.check_binary("gh", self.gh_binary, HealthStatus.DEGRADED),
                self.check_store_health(),
            )
        )

        if any(s.status == HealthStatus.UNHEALTHY for s in services):
            overall_status = HealthStatus.UNHEALTHY
        elif any(s.status == HealthStatus.DEGRADED for s in services):
            overall_status = HealthStatus.DEGRADED
        else:
            overall_status = HealthStatus.HEALTHY

        return HealthCheckResponse(status=overall_status, version=self.version, services=services)
