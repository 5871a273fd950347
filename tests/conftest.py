import os
import tempfile
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set up minimal test environment BEFORE any imports from worksync
# This must happen before pytest collects tests
_tmp_dir = tempfile.TemporaryDirectory(prefix="pytest_config_")
_config_file = Path(_tmp_dir.name) / "config.yaml"
_config_file.write_text(
    f"""
auth:
  token: test-token-123

storage:
  sessions_file: {_tmp_dir.name}/sessions.json

logging:
  level: DEBUG
  json: false
"""
)
os.environ["CONFIG_PATH"] = str(_config_file)

from worksync.services.command_executor import CommandResult, CommandSpec  # noqa: E402
from worksync.services.identity_cache import RepositoryIdentityCache  # noqa: E402
from worksync.services.remote_resolver import RepoIdentity  # noqa: E402
from worksync.services.session_store import InMemorySessionStore  # noqa: E402

WORKSPACE_ID = "ws-1"


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(stdout=stdout, stderr="", exit_code=0, duration_ms=1)


def failed(exit_code: int = 1, stderr: str = "") -> CommandResult:
    return CommandResult(
        stdout="",
        stderr=stderr,
        exit_code=exit_code,
        duration_ms=1,
        error=stderr or f"Exit code {exit_code}",
    )


class FakeCommandExecutor:
    """Replays scripted results by exact argv and records every spec it is given.

    Unscripted commands fail with exit code 1. A scripted argv with several
    results returns them in order and then keeps returning the last one.
    """

    def __init__(self) -> None:
        self.calls: list[CommandSpec] = []
        self._scripted: dict[tuple[str, ...], list[CommandResult]] = {}

    def script(self, *argv: str, result: CommandResult) -> None:
        self._scripted.setdefault(tuple(argv), []).append(result)

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        queue = self._scripted.get(spec.argv)
        if not queue:
            return failed(1, f"unscripted: {' '.join(spec.argv)}")
        return queue.pop(0) if len(queue) > 1 else queue[0]

    @property
    def argvs(self) -> list[tuple[str, ...]]:
        return [spec.argv for spec in self.calls]


@pytest.fixture
def fake_executor() -> FakeCommandExecutor:
    return FakeCommandExecutor()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
async def workspace(store, tmp_path):
    """A registered workspace whose directory exists."""
    return await store.upsert_workspace(WORKSPACE_ID, tmp_path)


@pytest.fixture
def identity_cache(fake_executor, store) -> RepositoryIdentityCache:
    return RepositoryIdentityCache(fake_executor, store)


@pytest.fixture
def seed_identity(store):
    """Write a cached identity directly, skipping the probe."""

    async def _seed(
        branch: str = "feature",
        owner_repo: str = "acme/widgets",
        is_fork: bool = False,
        origin_owner_repo: str | None = None,
    ) -> RepoIdentity:
        identity = RepoIdentity(
            current_branch=branch,
            owner_repo=owner_repo,
            is_fork=is_fork,
            origin_owner_repo=origin_owner_repo or owner_repo,
        )
        await store.set_cached_identity(WORKSPACE_ID, identity)
        return identity

    return _seed


@pytest.fixture
def test_app():
    """Create a test FastAPI app without the lifespan that opens the sessions file."""
    from worksync.api import health, workspaces
    from worksync.middleware.request_id import RequestIDMiddleware

    app = FastAPI(title="worksync test")
    app.add_middleware(RequestIDMiddleware)
    app.include_router(workspaces.router, tags=["workspaces"])
    app.include_router(health.router)
    return app


@pytest.fixture
def client(test_app, fake_executor, store):
    """Test client with the engine wired to the fake executor and in-memory store."""
    from worksync.config import get_settings
    from worksync.services.container import build_container, init_container, reset_container

    container = build_container(get_settings(), store, executor=fake_executor, version="test-version")
    init_container(container)

    with TestClient(test_app) as c:
        c.container = container
        yield c

    reset_container()


@pytest.fixture
def auth_headers():
    """Valid authorization headers."""
    return {"Authorization": "Bearer test-token-123"}
