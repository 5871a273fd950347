"""
Run a single external command with a timeout and capture its output.

The executor knows nothing about git or gh. It spawns the process, buffers
stdout/stderr as bytes, kills the process when the timeout expires and
classifies the outcome. Non-zero exits can be reclassified as success by a
substring policy for operations where git reports failure for conditions the
caller considers benign.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shlex
import signal
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from worksync.exceptions import CommandError
from worksync.services.timeline import TimelineEvent, TimelineSink, TimelineStatus
from worksync.utils.redaction import redact_sensitive_data, truncate_output
from worksync.utils.request_context import get_request_id
from worksync.utils.shell_path import get_shell_path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0
TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 1
DRAIN_TIMEOUT_SECONDS = 2.0
_READ_CHUNK_BYTES = 65536

_SIMPLE_TOKEN = re.compile(r"^[A-Za-z0-9_./:@%+=,-]+$")


class CommandKind(str, Enum):
    """Timeline category of a command."""

    GIT = "git.command"
    WORKTREE = "worktree.command"


class OperationType(str, Enum):
    """Whether a command only reads repository state or mutates it."""

    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class CommandSpec:
    """Everything needed to run one command. Built fresh for every call."""

    working_directory: Path | str
    argv: tuple[str, ...]
    timeout_seconds: float | None = None
    success_override_substrings: frozenset[str] = frozenset()
    throw_on_non_zero: bool = False
    workspace_id: str | None = None
    kind: CommandKind = CommandKind.GIT
    op: OperationType = OperationType.READ
    record_timeline: bool | None = None
    encoding: str = "utf-8"
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.argv:
            msg = "CommandSpec requires a non-empty argv"
            raise ValueError(msg)
        object.__setattr__(self, "argv", tuple(self.argv))
        object.__setattr__(
            self, "success_override_substrings", frozenset(self.success_override_substrings)
        )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            object.__setattr__(self, "timeout_seconds", None)

    @property
    def should_record(self) -> bool:
        """Only workspace-scoped commands are recorded; writes by default, reads on request."""
        if not self.workspace_id:
            return False
        if self.record_timeline is not None:
            return self.record_timeline
        return self.op == OperationType.WRITE


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one completed, killed or unspawnable process."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int
    was_treated_as_success: bool = False
    original_exit_code: int | None = None
    timed_out: bool = False
    error: str | None = None
    command_display: str = ""
    command_copy: str = ""
    operation_id: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


SuccessPolicy = Callable[[Iterable[str], str, str], bool]


def treat_as_success_if_output_includes(substrings: Iterable[str], stdout: str, stderr: str) -> bool:
    """Return True when any substring appears in stdout or stderr."""
    return any(snippet in stderr or snippet in stdout for snippet in substrings if snippet)


def format_command_for_display(argv: Iterable[str]) -> str:
    """Readable command line: simple tokens stay bare, anything else is quoted."""
    return " ".join(t if _SIMPLE_TOKEN.match(t) else shlex.quote(t) for t in argv)


def format_command_for_copy(argv: Iterable[str]) -> str:
    """Command line safe to paste into a POSIX shell."""
    return " ".join(shlex.quote(t) for t in argv)


class CommandExecutor:
    """
    Spawns external commands for the git/gh engine.

    ``run`` never raises for command failures unless the ``CommandSpec`` sets
    ``throw_on_non_zero``; timeouts and spawn errors come back as failed
    results and are not retried here.
    """

    def __init__(
        self,
        timeline: TimelineSink | None = None,
        *,
        shell_path: str | None = None,
        success_policy: SuccessPolicy = treat_as_success_if_output_includes,
        max_output_chars: int = 4000,
        default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.timeline = timeline
        self.shell_path = shell_path or get_shell_path()
        self.success_policy = success_policy
        self.max_output_chars = max_output_chars
        self.default_timeout_seconds = default_timeout_seconds

    def _build_env(self) -> dict[str, str]:
        return {
            **os.environ,
            "PATH": self.shell_path,
            "NO_COLOR": "1",
            "FORCE_COLOR": "0",
            "GIT_TERMINAL_PROMPT": "0",
        }

    async def run(self, spec: CommandSpec) -> CommandResult:
        """Run the command described by ``spec`` and classify its outcome."""
        command_display = format_command_for_display(spec.argv)
        command_copy = format_command_for_copy(spec.argv)
        operation_id = uuid4().hex
        started = time.monotonic()
        timeout_seconds = spec.timeout_seconds or self.default_timeout_seconds
        meta: dict[str, Any] = {
            **spec.meta,
            "operation_id": operation_id,
            "argv": list(spec.argv),
            "op": spec.op.value,
            "command_copy": command_copy,
            "correlation_id": get_request_id(),
        }
        if spec.success_override_substrings:
            meta["success_override_substrings"] = sorted(spec.success_override_substrings)

        if spec.should_record:
            await self._emit(spec, TimelineStatus.STARTED, command_display, meta)

        logger.debug(
            "Running command",
            extra={
                "command": command_display,
                "cwd": str(spec.working_directory),
                "workspace_id": spec.workspace_id,
                "operation_id": operation_id,
            },
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=str(spec.working_directory),
                env=self._build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            logger.warning(
                "Command failed to start",
                extra={"command": command_display, "error": str(e), "error_type": type(e).__name__},
            )
            result = CommandResult(
                stdout="",
                stderr="",
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                duration_ms=_elapsed_ms(started),
                error=str(e),
                command_display=command_display,
                command_copy=command_copy,
                operation_id=operation_id,
            )
            return await self._finalize(spec, result, meta)

        stdout_buffer = bytearray()
        stderr_buffer = bytearray()
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout_buffer)),
            asyncio.create_task(_drain(process.stderr, stderr_buffer)),
        ]

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
        except TimeoutError:
            timed_out = True
            _kill(process)
            await process.wait()
        await _finish_readers(readers)

        stdout = bytes(stdout_buffer).decode(spec.encoding, errors="replace")
        stderr = bytes(stderr_buffer).decode("utf-8", errors="replace")
        duration_ms = _elapsed_ms(started)

        if timed_out:
            logger.warning(
                "Command timed out",
                extra={
                    "command": command_display,
                    "timeout_seconds": timeout_seconds,
                    "operation_id": operation_id,
                },
            )
            result = CommandResult(
                stdout=stdout,
                stderr=stderr,
                exit_code=TIMEOUT_EXIT_CODE,
                duration_ms=duration_ms,
                timed_out=True,
                error=f"Command timed out after {timeout_seconds:g}s",
                command_display=command_display,
                command_copy=command_copy,
                operation_id=operation_id,
            )
            return await self._finalize(spec, result, meta)

        exit_code = process.returncode if process.returncode is not None else 0
        if exit_code == 0:
            result = CommandResult(
                stdout=stdout,
                stderr=stderr,
                exit_code=0,
                duration_ms=duration_ms,
                command_display=command_display,
                command_copy=command_copy,
                operation_id=operation_id,
            )
        elif self.success_policy(spec.success_override_substrings, stdout, stderr):
            result = CommandResult(
                stdout=stdout,
                stderr=stderr,
                exit_code=0,
                duration_ms=duration_ms,
                was_treated_as_success=True,
                original_exit_code=exit_code,
                command_display=command_display,
                command_copy=command_copy,
                operation_id=operation_id,
            )
        else:
            result = CommandResult(
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                duration_ms=duration_ms,
                error=stderr or stdout or f"Exit code {exit_code}",
                command_display=command_display,
                command_copy=command_copy,
                operation_id=operation_id,
            )
        return await self._finalize(spec, result, meta)

    async def _finalize(
        self, spec: CommandSpec, result: CommandResult, meta: dict[str, Any]
    ) -> CommandResult:
        status = TimelineStatus.FINISHED if result.succeeded else TimelineStatus.FAILED

        if spec.should_record:
            await self._emit(
                spec,
                status,
                result.command_display,
                {
                    **meta,
                    "stdout": self._clean_output(result.stdout),
                    "stderr": self._clean_output(result.stderr),
                    "error": self._clean_output(result.error) if result.error else None,
                    "treated_as_success": result.was_treated_as_success,
                    "original_exit_code": result.original_exit_code,
                    "timed_out": result.timed_out,
                },
                duration_ms=result.duration_ms,
                exit_code=result.exit_code,
            )

        logger.debug(
            "Command completed",
            extra={
                "command": result.command_display,
                "exit_code": result.exit_code,
                "duration_ms": result.duration_ms,
                "treated_as_success": result.was_treated_as_success,
                "operation_id": result.operation_id,
            },
        )

        if status == TimelineStatus.FAILED and spec.throw_on_non_zero:
            raise CommandError(
                result.error or f"Command failed: {result.command_display}",
                result=result,
                context={
                    "argv": list(spec.argv),
                    "cwd": str(spec.working_directory),
                    "exit_code": result.exit_code,
                    "timed_out": result.timed_out,
                },
            )
        return result

    def _clean_output(self, text: str) -> str:
        return truncate_output(redact_sensitive_data(text), self.max_output_chars)

    async def _emit(
        self,
        spec: CommandSpec,
        status: TimelineStatus,
        command_display: str,
        meta: dict[str, Any],
        *,
        duration_ms: int | None = None,
        exit_code: int | None = None,
    ) -> None:
        if self.timeline is None or not spec.workspace_id:
            return
        event = TimelineEvent(
            workspace_id=spec.workspace_id,
            kind=spec.kind.value,
            status=status,
            command=command_display,
            cwd=str(spec.working_directory),
            duration_ms=duration_ms,
            exit_code=exit_code,
            metadata=meta,
        )
        try:
            await self.timeline.record(event)
        except Exception as e:
            logger.warning(
                "Failed to record timeline event",
                extra={
                    "workspace_id": spec.workspace_id,
                    "status": status.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _kill(process: asyncio.subprocess.Process) -> None:
    """Hard-kill the child and anything it spawned in its session."""
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def _drain(stream: asyncio.StreamReader | None, buffer: bytearray) -> None:
    """Append everything read from ``stream`` to ``buffer`` until EOF."""
    if stream is None:
        return
    while chunk := await stream.read(_READ_CHUNK_BYTES):
        buffer.extend(chunk)


async def _finish_readers(readers: list[asyncio.Task[None]]) -> None:
    """Wait for the pipe readers, giving up on pipes still held open by escaped children.

    Buffers keep whatever was read before a reader is cancelled.
    """
    _, pending = await asyncio.wait(readers, timeout=DRAIN_TIMEOUT_SECONDS)
    for task in pending:
        task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)
