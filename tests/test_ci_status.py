"""Tests for CI check normalization, rollup and the gh pr checks fetch."""

from __future__ import annotations

import json

import pytest

from conftest import WORKSPACE_ID, failed, ok
from worksync.models.git import CheckRun
from worksync.services.command_executor import CommandResult
from worksync.services.ci_status import (
    CIStatusService,
    compute_rollup,
    parse_checks_output,
    parse_gh_check_state,
)

CHECKS_FIELDS = "name,state,startedAt,completedAt,link"


def check(name: str, state: str, **extra: object) -> dict[str, object]:
    return {"name": name, "state": state, "startedAt": None, "completedAt": None, "link": None, **extra}


def run(status: str, conclusion: str | None, index: int = 0) -> CheckRun:
    return CheckRun(id=index, name=f"check-{index}", status=status, conclusion=conclusion)


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        ("PENDING", ("queued", None)),
        ("QUEUED", ("queued", None)),
        ("WAITING", ("queued", None)),
        ("IN_PROGRESS", ("in_progress", None)),
        ("SUCCESS", ("completed", "success")),
        ("FAILURE", ("completed", "failure")),
        ("ERROR", ("completed", "failure")),
        ("CANCELLED", ("completed", "cancelled")),
        ("SKIPPED", ("completed", "skipped")),
        ("NEUTRAL", ("completed", "neutral")),
        ("TIMED_OUT", ("completed", "timed_out")),
        ("ACTION_REQUIRED", ("completed", "action_required")),
        ("STALE", ("completed", None)),
        ("", ("completed", None)),
        (None, ("completed", None)),
    ],
)
def test_parse_gh_check_state(state, expected) -> None:
    assert parse_gh_check_state(state) == expected


def test_rollup_failure_beats_in_progress() -> None:
    checks = [run("completed", "success", 0), run("completed", "failure", 1), run("in_progress", None, 2)]

    assert compute_rollup(checks) == "failure"


def test_rollup_in_progress_beats_pending() -> None:
    checks = [run("queued", None, 0), run("in_progress", None, 1)]

    assert compute_rollup(checks) == "in_progress"


def test_rollup_pending_when_only_queued_remain() -> None:
    checks = [run("completed", "success", 0), run("queued", None, 1)]

    assert compute_rollup(checks) == "pending"


def test_rollup_skipped_and_neutral_count_as_success() -> None:
    checks = [run("completed", "success", 0), run("completed", "skipped", 1), run("completed", "neutral", 2)]

    assert compute_rollup(checks) == "success"


def test_rollup_cancelled_is_neutral() -> None:
    checks = [run("completed", "success", 0), run("completed", "cancelled", 1)]

    assert compute_rollup(checks) == "neutral"


def test_rollup_empty_is_none() -> None:
    assert compute_rollup([]) is None


def test_success_and_failure_scenario() -> None:
    status = parse_checks_output(json.dumps([check("build", "SUCCESS"), check("test", "FAILURE")]))

    assert status is not None
    assert status.rollup_state == "failure"
    assert status.success_count == 1
    assert status.failure_count == 1
    assert status.pending_count == 0
    assert status.total_count == 2


def test_checks_payload_fields() -> None:
    stdout = json.dumps(
        [
            check(
                "build",
                "SUCCESS",
                startedAt="2026-01-14T05:00:00Z",
                completedAt="2026-01-14T05:10:00Z",
                link="https://github.com/acme/widgets/actions/runs/1",
            ),
            check("lint", "IN_PROGRESS", startedAt="2026-01-14T05:00:00Z"),
        ]
    )

    status = parse_checks_output(stdout)

    assert status is not None
    assert status.model_dump(by_alias=True) == {
        "rollupState": "in_progress",
        "checks": [
            {
                "id": 0,
                "name": "build",
                "status": "completed",
                "conclusion": "success",
                "startedAt": "2026-01-14T05:00:00Z",
                "completedAt": "2026-01-14T05:10:00Z",
                "detailsUrl": "https://github.com/acme/widgets/actions/runs/1",
            },
            {
                "id": 1,
                "name": "lint",
                "status": "in_progress",
                "conclusion": None,
                "startedAt": "2026-01-14T05:00:00Z",
                "completedAt": None,
                "detailsUrl": None,
            },
        ],
        "totalCount": 2,
        "successCount": 1,
        "failureCount": 0,
        "pendingCount": 1,
    }


@pytest.mark.parametrize("stdout", ["[]", "not valid json", '{"name": "build"}'])
def test_no_ci_data(stdout: str) -> None:
    assert parse_checks_output(stdout) is None


@pytest.fixture
def service(fake_executor, identity_cache) -> CIStatusService:
    return CIStatusService(fake_executor, identity_cache)


@pytest.mark.asyncio
async def test_fetches_checks_with_repo_flag(fake_executor, service, workspace, seed_identity) -> None:
    await seed_identity()
    fake_executor.script(
        "gh", "pr", "checks", "feature", "--repo", "acme/widgets", "--json", CHECKS_FIELDS,
        result=ok(json.dumps([check("build", "SUCCESS")])),
    )

    status = await service.get_ci_status(WORKSPACE_ID)

    assert status is not None
    assert status.rollup_state == "success"


@pytest.mark.asyncio
async def test_failing_checks_exit_non_zero_but_still_parse(
    fake_executor, service, workspace, seed_identity
) -> None:
    await seed_identity()
    fake_executor.script(
        "gh", "pr", "checks", "feature", "--repo", "acme/widgets", "--json", CHECKS_FIELDS,
        result=CommandResult(
            stdout=json.dumps([check("build", "FAILURE")]), stderr="", exit_code=1, duration_ms=1
        ),
    )

    status = await service.get_ci_status(WORKSPACE_ID)

    assert status is not None
    assert status.rollup_state == "failure"


@pytest.mark.asyncio
async def test_fork_checks_upstream_first(fake_executor, service, workspace, seed_identity) -> None:
    await seed_identity(is_fork=True, origin_owner_repo="alice/widgets")
    fake_executor.script(
        "gh", "pr", "checks", "feature", "--repo", "alice/widgets", "--json", CHECKS_FIELDS,
        result=ok(json.dumps([check("build", "PENDING")])),
    )

    status = await service.get_ci_status(WORKSPACE_ID)

    assert status is not None
    assert status.rollup_state == "pending"
    assert fake_executor.argvs[0][3:6] == ("alice:feature", "--repo", "acme/widgets")


@pytest.mark.asyncio
async def test_no_pull_request_is_none(fake_executor, service, workspace, seed_identity) -> None:
    await seed_identity()
    fake_executor.script(
        "gh", "pr", "checks", "feature", "--repo", "acme/widgets", "--json", CHECKS_FIELDS,
        result=failed(1, "no pull requests found for branch \"feature\""),
    )

    assert await service.get_ci_status(WORKSPACE_ID) is None


@pytest.mark.asyncio
async def test_detached_head_skips_gh(fake_executor, service, workspace) -> None:
    fake_executor.script("git", "branch", "--show-current", result=ok(""))
    fake_executor.script("git", "remote", "get-url", "origin", result=ok("git@github.com:acme/widgets.git"))

    assert await service.get_ci_status(WORKSPACE_ID) is None
    assert not any(argv[0] == "gh" for argv in fake_executor.argvs)
