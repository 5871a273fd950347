"""
Timeline of recorded git/gh commands per workspace.

Stores audit events in memory with bounded per-workspace buffers so the UI
can poll what ran against a workspace (started, finished, failed). Recording
is best-effort: a failing sink must never fail the command that produced
the event.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimelineStatus(str, Enum):
    """Lifecycle status of a recorded command."""

    STARTED = "started"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass(frozen=True)
class TimelineEvent:
    """Single audit event emitted by the command executor."""

    workspace_id: str
    kind: str
    status: TimelineStatus
    command: str
    cwd: str
    duration_ms: int | None = None
    exit_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class TimelineSink(Protocol):
    """Anything that accepts timeline events."""

    async def record(self, event: TimelineEvent) -> None: ...


@dataclass
class StoredEvent:
    event_id: int
    recorded_at: datetime
    event: TimelineEvent


@dataclass
class WorkspaceTimeline:
    events: deque[StoredEvent]
    next_event_id: int = 0
    dropped_before: int = 0


class TimelineRecorder:
    """
    In-memory timeline sink with bounded buffers.

    Old events are evicted when a workspace buffer is full (FIFO policy).
    """

    def __init__(self, max_events_per_workspace: int = 200) -> None:
        self.max_events_per_workspace = max_events_per_workspace
        self._timelines: dict[str, WorkspaceTimeline] = {}
        self._lock = asyncio.Lock()

    async def record(self, event: TimelineEvent) -> None:
        """Append an event to its workspace buffer."""
        async with self._lock:
            timeline = self._timelines.get(event.workspace_id)
            if timeline is None:
                timeline = WorkspaceTimeline(events=deque(maxlen=self.max_events_per_workspace))
                self._timelines[event.workspace_id] = timeline

            event_id = timeline.next_event_id
            timeline.next_event_id += 1

            if len(timeline.events) == timeline.events.maxlen:
                timeline.dropped_before = timeline.events[0].event_id + 1

            timeline.events.append(
                StoredEvent(event_id=event_id, recorded_at=datetime.now(UTC), event=event)
            )

        logger.debug(
            "Recorded timeline event",
            extra={
                "workspace_id": event.workspace_id,
                "event_id": event_id,
                "status": event.status.value,
                "command": event.command,
            },
        )

    async def get_events(
        self, workspace_id: str, after_event_id: int | None = None
    ) -> dict[str, Any]:
        """
        Get recorded events for a workspace.

        Args:
            workspace_id: Workspace identifier
            after_event_id: Return only events after this ID (for polling)

        Returns:
            Dictionary with events, next cursor and eviction marker
        """
        async with self._lock:
            timeline = self._timelines.get(workspace_id)
            if timeline is None:
                return {"events": [], "next_cursor": -1, "dropped_before": 0}

            events = list(timeline.events)
            if after_event_id is not None:
                events = [e for e in events if e.event_id > after_event_id]

            next_cursor = timeline.next_event_id - 1 if timeline.next_event_id > 0 else -1

            return {
                "events": [
                    {
                        "event_id": stored.event_id,
                        "recorded_at": stored.recorded_at.isoformat(),
                        "kind": stored.event.kind,
                        "status": stored.event.status.value,
                        "command": stored.event.command,
                        "cwd": stored.event.cwd,
                        "duration_ms": stored.event.duration_ms,
                        "exit_code": stored.event.exit_code,
                        "metadata": stored.event.metadata,
                    }
                    for stored in events
                ],
                "next_cursor": next_cursor,
                "dropped_before": timeline.dropped_before,
            }

    async def clear(self, workspace_id: str) -> None:
        """Forget every event recorded for a workspace."""
        async with self._lock:
            self._timelines.pop(workspace_id, None)
