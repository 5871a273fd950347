"""Workspace and repository-identity storage.

The engine reads workspaces (working directory, base branch) and reads and
writes the cached repository identity through this interface. Identity is
always written as a whole record so a reader never sees a branch without
its owner/repo.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from worksync.exceptions import SessionStoreError
from worksync.services.remote_resolver import RepoIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    workspace_id: str
    working_directory: Path | None
    base_branch: str | None = None


class SessionStore(ABC):
    """Abstract store for workspaces and their cached identity."""

    @abstractmethod
    async def get_workspace(self, workspace_id: str) -> Workspace | None: ...

    @abstractmethod
    async def upsert_workspace(
        self, workspace_id: str, working_directory: Path, base_branch: str | None = None
    ) -> Workspace: ...

    @abstractmethod
    async def get_cached_identity(self, workspace_id: str) -> RepoIdentity | None: ...

    @abstractmethod
    async def set_cached_identity(self, workspace_id: str, identity: RepoIdentity | None) -> None:
        """Replace the cached identity in one write; None clears it."""


class WorkspaceRecord(BaseModel):
    """Persisted workspace row, including the identity cache columns."""

    working_directory: str | None = None
    base_branch: str | None = None
    current_branch: str | None = None
    owner_repo: str | None = None
    is_fork: bool = False
    origin_owner_repo: str | None = None

    def to_workspace(self, workspace_id: str) -> Workspace:
        return Workspace(
            workspace_id=workspace_id,
            working_directory=Path(self.working_directory) if self.working_directory else None,
            base_branch=self.base_branch,
        )

    def to_identity(self) -> RepoIdentity | None:
        if self.current_branch is None and self.owner_repo is None:
            return None
        return RepoIdentity(
            current_branch=self.current_branch or "",
            owner_repo=self.owner_repo,
            is_fork=self.is_fork,
            origin_owner_repo=self.origin_owner_repo,
        )

    def with_identity(self, identity: RepoIdentity | None) -> WorkspaceRecord:
        if identity is None:
            return self.model_copy(
                update={
                    "current_branch": None,
                    "owner_repo": None,
                    "is_fork": False,
                    "origin_owner_repo": None,
                }
            )
        return self.model_copy(
            update={
                "current_branch": identity.current_branch,
                "owner_repo": identity.owner_repo,
                "is_fork": identity.is_fork,
                "origin_owner_repo": identity.origin_owner_repo,
            }
        )


class SessionsFile(BaseModel):
    workspaces: dict[str, WorkspaceRecord] = Field(default_factory=dict)


class InMemorySessionStore(SessionStore):
    """Store kept in process memory. Used for embedding and in tests."""

    def __init__(self) -> None:
        self._records: dict[str, WorkspaceRecord] = {}
        self.identity_writes = 0

    async def get_workspace(self, workspace_id: str) -> Workspace | None:
        record = self._records.get(workspace_id)
        return record.to_workspace(workspace_id) if record else None

    async def upsert_workspace(
        self, workspace_id: str, working_directory: Path, base_branch: str | None = None
    ) -> Workspace:
        record = self._records.get(workspace_id, WorkspaceRecord())
        record = record.model_copy(
            update={"working_directory": str(working_directory), "base_branch": base_branch}
        )
        self._records[workspace_id] = record
        return record.to_workspace(workspace_id)

    async def get_cached_identity(self, workspace_id: str) -> RepoIdentity | None:
        record = self._records.get(workspace_id)
        return record.to_identity() if record else None

    async def set_cached_identity(self, workspace_id: str, identity: RepoIdentity | None) -> None:
        record = self._records.get(workspace_id, WorkspaceRecord())
        self._records[workspace_id] = record.with_identity(identity)
        self.identity_writes += 1


class JsonFileSessionStore(SessionStore):
    """Store backed by a JSON file, rewritten atomically on every change."""

    def __init__(self, sessions_file: Path) -> None:
        self.sessions_file = sessions_file
        self._lock = asyncio.Lock()

    def _load(self) -> SessionsFile:
        if not self.sessions_file.exists():
            return SessionsFile()

        try:
            with self.sessions_file.open("r") as f:
                data = json.load(f)
            return SessionsFile(**data)
        except (json.JSONDecodeError, OSError, TypeError, PydanticValidationError) as e:
            context = {
                "error": str(e),
                "error_type": type(e).__name__,
                "path": str(self.sessions_file),
            }
            logger.error("Failed to load sessions file", extra=context)
            msg = f"Failed to load sessions file: {e}"
            raise SessionStoreError(msg, context=context) from e

    def _save(self, store: SessionsFile) -> None:
        temp_file = self.sessions_file.with_suffix(".json.tmp")

        try:
            self.sessions_file.parent.mkdir(parents=True, exist_ok=True)
            with temp_file.open("w") as f:
                json.dump(store.model_dump(), f, indent=2)
                f.flush()

            temp_file.replace(self.sessions_file)
            self.sessions_file.chmod(0o600)
            logger.debug(
                "Sessions file saved",
                extra={"path": str(self.sessions_file), "workspace_count": len(store.workspaces)},
            )
        except OSError as e:
            context = {
                "error": str(e),
                "error_type": type(e).__name__,
                "path": str(self.sessions_file),
            }
            logger.error("Failed to save sessions file", extra=context)
            if temp_file.exists():
                temp_file.unlink()
            msg = f"Failed to save sessions file: {e}"
            raise SessionStoreError(msg, context=context) from e

    async def get_workspace(self, workspace_id: str) -> Workspace | None:
        async with self._lock:
            record = self._load().workspaces.get(workspace_id)
        return record.to_workspace(workspace_id) if record else None

    async def upsert_workspace(
        self, workspace_id: str, working_directory: Path, base_branch: str | None = None
    ) -> Workspace:
        async with self._lock:
            store = self._load()
            record = store.workspaces.get(workspace_id, WorkspaceRecord())
            record = record.model_copy(
                update={"working_directory": str(working_directory), "base_branch": base_branch}
            )
            store.workspaces[workspace_id] = record
            self._save(store)

        logger.info(
            "Workspace registered",
            extra={"workspace_id": workspace_id, "working_directory": str(working_directory)},
        )
        return record.to_workspace(workspace_id)

    async def get_cached_identity(self, workspace_id: str) -> RepoIdentity | None:
        async with self._lock:
            record = self._load().workspaces.get(workspace_id)
        return record.to_identity() if record else None

    async def set_cached_identity(self, workspace_id: str, identity: RepoIdentity | None) -> None:
        async with self._lock:
            store = self._load()
            record = store.workspaces.get(workspace_id, WorkspaceRecord())
            store.workspaces[workspace_id] = record.with_identity(identity)
            self._save(store)
