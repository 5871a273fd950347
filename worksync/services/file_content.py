"""Read a file from a workspace at HEAD, in the index, or in the worktree."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from worksync.exceptions import ValidationError, WorksyncError
from worksync.models.git import FileContentData
from worksync.services.command_executor import CommandExecutor, CommandSpec
from worksync.services.identity_cache import RepositoryIdentityCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 1024 * 1024
SHOW_TIMEOUT_SECONDS = 15.0


class FileRef(str, Enum):
    HEAD = "HEAD"
    INDEX = "INDEX"
    WORKTREE = "WORKTREE"


def validate_relative_path(file_path: str, root: Path) -> Path:
    """Resolve ``file_path`` under ``root``, rejecting anything that escapes it."""
    cleaned = file_path.strip() if isinstance(file_path, str) else ""
    if not cleaned:
        msg = "File path is required"
        raise ValidationError(msg, context={"path": file_path})

    if "\x00" in cleaned:
        msg = "Path contains null bytes"
        raise ValidationError(msg, context={"path": file_path})

    relative = Path(cleaned)
    if relative.is_absolute() or ".." in relative.parts:
        msg = "Invalid path"
        raise ValidationError(msg, context={"path": file_path, "reason": "outside_workspace"})

    root_resolved = root.resolve()
    resolved = (root_resolved / relative).resolve()
    if not resolved.is_relative_to(root_resolved):
        msg = "Invalid path"
        raise ValidationError(msg, context={"path": file_path, "reason": "outside_workspace"})
    return resolved


class FileContentReader:
    def __init__(
        self,
        executor: CommandExecutor,
        identity_cache: RepositoryIdentityCache,
        *,
        git_binary: str = "git",
    ) -> None:
        self.executor = executor
        self.identity_cache = identity_cache
        self.git_binary = git_binary

    async def read(
        self,
        workspace_id: str,
        file_path: str,
        ref: FileRef = FileRef.HEAD,
        max_bytes: int | None = None,
    ) -> FileContentData:
        """Return file content, raising when it cannot be read or is too large."""
        workspace = await self.identity_cache.workspace(workspace_id)
        root = workspace.working_directory
        limit = max_bytes if max_bytes and max_bytes > 0 else DEFAULT_MAX_BYTES
        absolute = validate_relative_path(file_path, root)
        relative = absolute.relative_to(root.resolve()).as_posix()

        if ref == FileRef.WORKTREE:
            try:
                data = await asyncio.to_thread(absolute.read_bytes)
            except OSError as e:
                msg = f"Failed to read file content: {e.strerror or e}"
                raise WorksyncError(msg, context={"path": relative}) from e
            _check_size(len(data), limit)
            return FileContentData(content=data.decode("utf-8", errors="replace"))

        target = f":{relative}" if ref == FileRef.INDEX else f"HEAD:{relative}"
        result = await self.executor.run(
            CommandSpec(
                working_directory=root,
                argv=(self.git_binary, "show", "--format=", target),
                timeout_seconds=SHOW_TIMEOUT_SECONDS,
                workspace_id=workspace_id,
                record_timeline=False,
                meta={"source": "file_content", "ref": ref.value, "path": relative},
            )
        )
        if not result.succeeded:
            msg = result.stderr.strip() or "Failed to read file content"
            raise WorksyncError(msg, context={"path": relative, "ref": ref.value})

        _check_size(len(result.stdout.encode("utf-8")), limit)
        return FileContentData(content=result.stdout)


def _check_size(size: int, limit: int) -> None:
    if size > limit:
        msg = f"File too large ({size} bytes)"
        raise ValidationError(msg, context={"size": size, "max_bytes": limit})
