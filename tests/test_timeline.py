"""Tests for the bounded per-workspace timeline."""

from __future__ import annotations

import pytest

from worksync.services.timeline import TimelineEvent, TimelineRecorder, TimelineStatus


def event(workspace_id: str = "ws", command: str = "git fetch") -> TimelineEvent:
    return TimelineEvent(
        workspace_id=workspace_id,
        kind="git.command",
        status=TimelineStatus.FINISHED,
        command=command,
        cwd="/tmp/ws",
        duration_ms=5,
        exit_code=0,
    )


@pytest.mark.asyncio
async def test_unknown_workspace_is_empty() -> None:
    recorder = TimelineRecorder()

    assert await recorder.get_events("ws") == {"events": [], "next_cursor": -1, "dropped_before": 0}


@pytest.mark.asyncio
async def test_events_are_returned_in_order_with_cursor() -> None:
    recorder = TimelineRecorder()
    for i in range(3):
        await recorder.record(event(command=f"git cmd-{i}"))

    page = await recorder.get_events("ws")

    assert [e["command"] for e in page["events"]] == ["git cmd-0", "git cmd-1", "git cmd-2"]
    assert page["next_cursor"] == 2

    newer = await recorder.get_events("ws", after_event_id=0)
    assert [e["event_id"] for e in newer["events"]] == [1, 2]


@pytest.mark.asyncio
async def test_buffer_evicts_oldest_events() -> None:
    recorder = TimelineRecorder(max_events_per_workspace=2)
    for i in range(5):
        await recorder.record(event(command=f"git cmd-{i}"))

    page = await recorder.get_events("ws")

    assert [e["event_id"] for e in page["events"]] == [3, 4]
    assert page["dropped_before"] == 3


@pytest.mark.asyncio
async def test_workspaces_are_isolated() -> None:
    recorder = TimelineRecorder()
    await recorder.record(event("a"))
    await recorder.record(event("b"))
    await recorder.clear("a")

    assert (await recorder.get_events("a"))["events"] == []
    assert len((await recorder.get_events("b"))["events"]) == 1
