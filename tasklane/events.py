"""Event system: append-only progress log with streaming support."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from tasklane.models import Event

logger = logging.getLogger(__name__)

TASK_STATUS_CHANGED = "task.status.changed"
TASK_STEP_COMPLETED = "task.step.completed"
TASK_COMPLETED = "task.completed"
TASK_FAILED = "task.failed"


class EventBus:
    """Append-only event log with per-subscriber queues.

    A subscriber may filter on one task id; unfiltered subscribers see all
    events. Slow subscribers lose events once their queue is full.
    """

    def __init__(self, log_file: Path | None = None, max_queue: int = 1000):
        self._log_file = log_file
        self._max_queue = max_queue
        self._subscribers: list[tuple[asyncio.Queue, str | None]] = []
        self._history: list[Event] = []

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: Event):
        """Record an event and notify subscribers."""
        self._history.append(event)
        self._persist(event)
        self._notify(event)
        logger.debug(f"Event: {event.type} [{event.task_id}] {event.data}")

    def emit_simple(self, type: str, task_id: str, **data):
        self.emit(Event(type=type, task_id=task_id, data={"task_id": task_id, **data}))

    def recent(self, limit: int = 50, offset: int = 0, task_id: str | None = None) -> list[Event]:
        """Get recent events (paginated), optionally for one task."""
        history = self._history if task_id is None else [e for e in self._history if e.task_id == task_id]
        start = max(0, len(history) - offset - limit)
        end = max(0, len(history) - offset)
        return history[start:end]

    def subscribe(self, task_id: str | None = None) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers.append((q, task_id))
        return q

    def unsubscribe(self, q: asyncio.Queue):
        self._subscribers = [(sq, tid) for sq, tid in self._subscribers if sq is not q]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _persist(self, event: Event):
        if self._log_file:
            with open(self._log_file, "a") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")

    def _notify(self, event: Event):
        for q, task_id in self._subscribers:
            if task_id is not None and task_id != event.task_id:
                continue
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full, dropping {event.type} for task {event.task_id}")
