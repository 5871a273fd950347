import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from worksync.api import health, workspaces
from worksync.config import get_settings
from worksync.exceptions import ConfigurationError
from worksync.logging_config import configure_json_logging
from worksync.middleware.request_id import RequestIDMiddleware
from worksync.services.container import build_container, init_container, reset_container
from worksync.services.session_store import JsonFileSessionStore
from worksync.version import get_version

settings = get_settings()

# Configure structured JSON logging
configure_json_logging(log_level=settings.log_level, use_json=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup and shutdown."""
    current = get_settings()
    if not current.auth_token:
        msg = "auth.token must be set in config.yaml (or WORKSYNC_AUTH_TOKEN) to serve the API"
        raise ConfigurationError(msg)

    logger.info("Starting worksync server...")

    store = JsonFileSessionStore(current.sessions_file)
    init_container(build_container(current, store, version=get_version()))

    logger.info(
        "worksync server ready",
        extra={
            "sessions_file": str(current.sessions_file),
            "git_binary": current.git_binary,
            "gh_binary": current.gh_binary,
        },
    )

    yield

    logger.info("worksync server shutting down")
    reset_container()


app = FastAPI(
    title="worksync",
    description="Git/GitHub workflow synchronization for agent workspaces",
    version=get_version(),
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)

app.include_router(workspaces.router, tags=["workspaces"])
app.include_router(health.router)
