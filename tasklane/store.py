"""Task persistence contract and an in-memory implementation."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from tasklane.errors import TaskNotFoundError
from tasklane.models import LogLevel, Task, TaskLog

logger = logging.getLogger(__name__)


class TaskStore(ABC):
    """What the orchestrator needs from storage."""

    @abstractmethod
    async def get(self, task_id: str) -> Task | None: ...

    @abstractmethod
    async def save(self, task: Task) -> Task: ...

    @abstractmethod
    async def list_by_chat(self, chat_id: str) -> list[Task]: ...

    @abstractmethod
    async def delete(self, task_id: str) -> None: ...

    @abstractmethod
    async def add_log(self, log: TaskLog) -> None: ...

    @abstractmethod
    async def get_logs(self, task_id: str) -> list[TaskLog]: ...

    async def get_or_raise(self, task_id: str) -> Task:
        task = await self.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def log(self, task_id: str, level: LogLevel, message: str, step: int | None = None, **metadata):
        await self.add_log(TaskLog(task_id=task_id, level=level, message=message, step=step, metadata=metadata or None))


class InMemoryTaskStore(TaskStore):
    """Process-local store. Tasks are kept by reference; callers save after mutating."""

    def __init__(self):
        self._tasks: dict[str, Task] = {}
        self._logs: dict[str, list[TaskLog]] = {}
        self._lock = asyncio.Lock()

    async def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    async def save(self, task: Task) -> Task:
        async with self._lock:
            task.updated_at = time.time()
            self._tasks[task.id] = task
        return task

    async def list_by_chat(self, chat_id: str) -> list[Task]:
        tasks = [t for t in self._tasks.values() if t.chat_id == chat_id]
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    async def delete(self, task_id: str) -> None:
        async with self._lock:
            self._tasks.pop(task_id, None)
            self._logs.pop(task_id, None)

    async def add_log(self, log: TaskLog) -> None:
        self._logs.setdefault(log.task_id, []).append(log)
        logger.debug(f"[{log.task_id}] {log.level.value}: {log.message}")

    async def get_logs(self, task_id: str) -> list[TaskLog]:
        return list(self._logs.get(task_id, []))

    def __len__(self) -> int:
        return len(self._tasks)
