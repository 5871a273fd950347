"""
Custom exception classes with context for worksync.

All exceptions inherit from WorksyncError and support attaching contextual
information for better debugging and logging.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from worksync.services.command_executor import CommandResult


class WorksyncError(Exception):
    """
    Base exception for worksync.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary with additional context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, object] | None = None):
        """
        Initialize exception with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dictionary with contextual information
                    (operation name, workspace id, argv, exit code, etc.)
        """
        super().__init__(message)
        self.context = context or {}


class CommandError(WorksyncError):
    """
    External command finished with a non-zero exit code.

    Only raised when the caller explicitly asked for it
    (``CommandSpec.throw_on_non_zero``). The completed result travels with the
    exception so callers can still inspect stdout/stderr.

    Example:
        raise CommandError(
            "fatal: not a git repository",
            result=result,
            context={"argv": ["git", "status"], "exit_code": 128},
        )
    """

    def __init__(
        self,
        message: str,
        result: CommandResult,
        context: dict[str, object] | None = None,
    ):
        super().__init__(message, context=context)
        self.result = result


class SessionStoreError(WorksyncError):
    """
    Session store read or write failed.

    Raised when the backing store for workspaces and cached repository
    identity is unreachable or corrupt.

    Example:
        raise SessionStoreError(
            "Failed to save sessions file",
            context={"path": "/data/sessions.json", "error": "Permission denied"}
        )
    """


class WorkspaceNotFoundError(WorksyncError):
    """
    Workspace is unknown or has no working directory.

    Example:
        raise WorkspaceNotFoundError(
            "Session worktree not found",
            context={"workspace_id": "ws-123"}
        )
    """


class ConfigurationError(WorksyncError):
    """
    Configuration error.

    Raised when configuration loading, validation, or parsing fails.

    Example:
        raise ConfigurationError(
            "Missing required configuration key",
            context={
                "key": "auth.token",
                "config_file": "/app/config.yaml"
            }
        )
    """


class ValidationError(WorksyncError):
    """
    Input validation failed.

    Example:
        raise ValidationError(
            "Invalid file ref",
            context={
                "field": "ref",
                "value": "BRANCH",
                "allowed_values": ["HEAD", "INDEX", "WORKTREE"]
            }
        )
    """
