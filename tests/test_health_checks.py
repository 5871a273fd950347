"""Tests for the health check service."""

from __future__ import annotations

import pytest

from conftest import failed, ok
from worksync.models.health import HealthStatus
from worksync.services.health import HealthCheckService


class BrokenStore:
    async def get_workspace(self, workspace_id: str):
        raise OSError("sessions file unreadable")


@pytest.fixture
def health_service(fake_executor, store) -> HealthCheckService:
    return HealthCheckService(fake_executor, store, version="1.2.3")


@pytest.mark.asyncio
async def test_all_healthy(fake_executor, health_service) -> None:
    fake_executor.script("git", "--version", result=ok("git version 2.45.0\n"))
    fake_executor.script("gh", "--version", result=ok("gh version 2.50.0 (2024-05-29)\nhttps://github.com/cli/cli\n"))

    response = await health_service.check_health()

    assert response.status == HealthStatus.HEALTHY
    assert response.version == "1.2.3"
    assert response.is_ready()
    gh = next(s for s in response.services if s.name == "gh")
    assert gh.details == {"version": "gh version 2.50.0 (2024-05-29)"}


@pytest.mark.asyncio
async def test_missing_gh_is_degraded(fake_executor, health_service) -> None:
    fake_executor.script("git", "--version", result=ok("git version 2.45.0\n"))
    fake_executor.script("gh", "--version", result=failed(127, "gh: command not found"))

    response = await health_service.check_health()

    assert response.status == HealthStatus.DEGRADED
    assert response.is_ready()
    gh = next(s for s in response.services if s.name == "gh")
    assert gh.message == "gh: command not found"


@pytest.mark.asyncio
async def test_missing_git_is_unhealthy(fake_executor, health_service) -> None:
    fake_executor.script("gh", "--version", result=ok("gh version 2.50.0\n"))

    response = await health_service.check_health()

    assert response.status == HealthStatus.UNHEALTHY
    assert not response.is_ready()


@pytest.mark.asyncio
async def test_version_probe_uses_short_timeout(fake_executor, health_service) -> None:
    await health_service.check_binary("git", "git", HealthStatus.UNHEALTHY)

    spec = fake_executor.calls[0]
    assert spec.argv == ("git", "--version")
    assert spec.timeout_seconds == 5.0
    assert spec.workspace_id is None


@pytest.mark.asyncio
async def test_broken_store_is_unhealthy(fake_executor) -> None:
    fake_executor.script("git", "--version", result=ok("git version 2.45.0\n"))
    fake_executor.script("gh", "--version", result=ok("gh version 2.50.0\n"))
    service = HealthCheckService(fake_executor, BrokenStore())  # type: ignore[arg-type]

    response = await service.check_health()

    store_health = next(s for s in response.services if s.name == "session_store")
    assert store_health.status == HealthStatus.UNHEALTHY
    assert "sessions file unreadable" in (store_health.message or "")
    assert response.status == HealthStatus.UNHEALTHY
