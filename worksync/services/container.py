"""
Service dependency container.

Centralizes service creation and access without module-level globals in the
API modules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from worksync.services.ci_status import CIStatusService
from worksync.services.command_executor import CommandExecutor
from worksync.services.file_content import FileContentReader
from worksync.services.git_workflow import GitWorkflowService
from worksync.services.health import HealthCheckService
from worksync.services.identity_cache import RepositoryIdentityCache
from worksync.services.pull_requests import PullRequestGateway
from worksync.services.sync_status import SyncStatusCalculator
from worksync.services.timeline import TimelineRecorder

if TYPE_CHECKING:
    from worksync.config import Settings
    from worksync.services.session_store import SessionStore


class ServiceContainer:
    """Container for all application services.

    Services are injected via FastAPI's Depends() mechanism.
    """

    def __init__(
        self,
        store: SessionStore,
        timeline: TimelineRecorder,
        executor: CommandExecutor,
        git_workflow: GitWorkflowService,
        health_service: HealthCheckService,
    ) -> None:
        self.store = store
        self.timeline = timeline
        self.executor = executor
        self.git_workflow = git_workflow
        self.health_service = health_service


def build_container(
    settings: Settings,
    store: SessionStore,
    *,
    executor: CommandExecutor | None = None,
    timeline: TimelineRecorder | None = None,
    version: str = "unknown",
) -> ServiceContainer:
    """Wire the engine services from settings.

    ``executor`` and ``timeline`` may be supplied to substitute fakes.
    """
    timeline = timeline or TimelineRecorder(
        max_events_per_workspace=settings.timeline_max_events_per_workspace
    )
    executor = executor or CommandExecutor(
        timeline,
        max_output_chars=settings.timeline_max_output_chars,
        default_timeout_seconds=settings.command_timeout_seconds,
    )

    identity_cache = RepositoryIdentityCache(executor, store, git_binary=settings.git_binary)
    git_workflow = GitWorkflowService(
        identity_cache=identity_cache,
        pull_requests=PullRequestGateway(
            executor,
            identity_cache,
            gh_binary=settings.gh_binary,
            view_timeout_seconds=settings.gh_timeout_seconds,
        ),
        sync_status=SyncStatusCalculator(executor, identity_cache, git_binary=settings.git_binary),
        ci_service=CIStatusService(
            executor,
            identity_cache,
            gh_binary=settings.gh_binary,
            timeout_seconds=settings.gh_timeout_seconds,
        ),
        file_reader=FileContentReader(executor, identity_cache, git_binary=settings.git_binary),
    )
    health_service = HealthCheckService(
        executor,
        store,
        git_binary=settings.git_binary,
        gh_binary=settings.gh_binary,
        version=version,
    )
    return ServiceContainer(
        store=store,
        timeline=timeline,
        executor=executor,
        git_workflow=git_workflow,
        health_service=health_service,
    )


_container: ServiceContainer | None = None


def init_container(container: ServiceContainer) -> None:
    """Install the container (called once in the FastAPI lifespan)."""
    global _container
    _container = container


def get_container() -> ServiceContainer:
    """Get service container (use via FastAPI Depends).

    Raises:
        RuntimeError: If container not initialized (lifespan not running)
    """
    if _container is None:
        msg = "Service container not initialized - application lifespan may not be running"
        raise RuntimeError(msg)
    return _container


def reset_container() -> None:
    """Drop the installed container (lifespan shutdown and tests)."""
    global _container
    _container = None
