"""CI check status for the pull request of a workspace branch.

``gh pr checks`` reports one ``state`` per check. It is normalized into a
``(status, conclusion)`` pair and the set of checks is reduced to a single
rollup state. Normalization and rollup are pure; only :class:`CIStatusService`
runs commands.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from worksync.models.git import (
    CheckConclusion,
    CheckRun,
    CheckStatus,
    CIStatusData,
    RollupState,
)
from worksync.services.command_executor import CommandExecutor, CommandSpec
from worksync.services.identity_cache import RepositoryIdentityCache
from worksync.services.remote_resolver import branch_ref_for, origin_owner, remote_attempts_for

logger = logging.getLogger(__name__)

CHECKS_TIMEOUT_SECONDS = 8.0
CHECKS_FIELDS = "name,state,startedAt,completedAt,link"

STATE_MAP: dict[str, tuple[CheckStatus, CheckConclusion | None]] = {
    "PENDING": ("queued", None),
    "QUEUED": ("queued", None),
    "WAITING": ("queued", None),
    "IN_PROGRESS": ("in_progress", None),
    "SUCCESS": ("completed", "success"),
    "FAILURE": ("completed", "failure"),
    "ERROR": ("completed", "failure"),
    "CANCELLED": ("completed", "cancelled"),
    "SKIPPED": ("completed", "skipped"),
    "NEUTRAL": ("completed", "neutral"),
    "TIMED_OUT": ("completed", "timed_out"),
    "ACTION_REQUIRED": ("completed", "action_required"),
}

SUCCESSFUL_CONCLUSIONS = frozenset({"success", "neutral", "skipped"})
PENDING_STATUSES = frozenset({"queued", "in_progress"})


def parse_gh_check_state(state: Any) -> tuple[CheckStatus, CheckConclusion | None]:
    """Map a gh check state onto ``(status, conclusion)``.

    Unknown states are reported as completed with no conclusion.
    """
    if not isinstance(state, str):
        return "completed", None
    return STATE_MAP.get(state.upper(), ("completed", None))


def compute_rollup(checks: list[CheckRun]) -> RollupState | None:
    """Reduce checks to one state: failure > in_progress > pending > success > neutral.

    Returns None for an empty list; no checks is not a success.
    """
    if not checks:
        return None
    if any(check.conclusion == "failure" for check in checks):
        return "failure"
    if any(check.status == "in_progress" for check in checks):
        return "in_progress"
    if any(check.status == "queued" for check in checks):
        return "pending"
    if all(check.conclusion in SUCCESSFUL_CONCLUSIONS for check in checks):
        return "success"
    return "neutral"


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_checks_output(stdout: str) -> CIStatusData | None:
    """Build the CI payload from ``gh pr checks --json`` output.

    Malformed JSON, a non-array payload and an empty array all yield None.
    """
    try:
        raw = json.loads(stdout)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, list) or not raw:
        return None

    checks: list[CheckRun] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        status, conclusion = parse_gh_check_state(item.get("state"))
        checks.append(
            CheckRun(
                id=index,
                name=str(item.get("name") or ""),
                status=status,
                conclusion=conclusion,
                started_at=_optional_str(item.get("startedAt")),
                completed_at=_optional_str(item.get("completedAt")),
                details_url=_optional_str(item.get("link")),
            )
        )

    rollup = compute_rollup(checks)
    if rollup is None:
        return None

    return CIStatusData(
        rollup_state=rollup,
        checks=checks,
        total_count=len(checks),
        success_count=sum(1 for c in checks if c.conclusion in SUCCESSFUL_CONCLUSIONS),
        failure_count=sum(1 for c in checks if c.conclusion == "failure"),
        pending_count=sum(1 for c in checks if c.status in PENDING_STATUSES),
    )


class CIStatusService:
    """Fetches CI checks for the workspace branch's pull request."""

    def __init__(
        self,
        executor: CommandExecutor,
        identity_cache: RepositoryIdentityCache,
        *,
        gh_binary: str = "gh",
        timeout_seconds: float = CHECKS_TIMEOUT_SECONDS,
    ) -> None:
        self.executor = executor
        self.identity_cache = identity_cache
        self.gh_binary = gh_binary
        self.timeout_seconds = timeout_seconds

    async def get_ci_status(self, workspace_id: str) -> CIStatusData | None:
        """CI status of the branch's PR on the first remote that reports checks.

        gh exits non-zero while checks fail or are pending but still prints
        the JSON array, so output is parsed whenever there is any.
        """
        workspace = await self.identity_cache.workspace(workspace_id)
        identity = await self.identity_cache.resolve(workspace_id)
        if identity is None or not identity.is_complete:
            return None

        owner = origin_owner(identity)
        for attempt in remote_attempts_for(identity):
            branch_ref = branch_ref_for(attempt, identity.current_branch, owner)
            result = await self.executor.run(
                CommandSpec(
                    working_directory=workspace.working_directory or ".",
                    argv=(
                        self.gh_binary,
                        "pr",
                        "checks",
                        branch_ref,
                        "--repo",
                        attempt.repo_ref,
                        "--json",
                        CHECKS_FIELDS,
                    ),
                    timeout_seconds=self.timeout_seconds,
                    workspace_id=workspace_id,
                    meta={"source": "ci_status"},
                )
            )
            if not result.stdout.strip():
                continue

            status = parse_checks_output(result.stdout)
            if status is None:
                logger.debug(
                    "No usable CI checks from remote",
                    extra={
                        "workspace_id": workspace_id,
                        "repo": attempt.repo_ref,
                        "exit_code": result.exit_code,
                    },
                )
                continue
            return status

        return None
