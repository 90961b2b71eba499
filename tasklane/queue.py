"""In-process task queue and the worker pool that drains it."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from tasklane import config
from tasklane.models import TaskJob

logger = logging.getLogger(__name__)

JobHandler = Callable[[TaskJob], Awaitable[None]]


class TaskQueue:
    """Named FIFO of jobs. Delivery is at-most-once within the process."""

    def __init__(self, name: str = config.TASK_QUEUE_NAME):
        self.name = name
        self._queue: asyncio.Queue[TaskJob] = asyncio.Queue()
        self.enqueued_total = 0

    async def enqueue(self, job: TaskJob) -> str:
        await self._queue.put(job)
        self.enqueued_total += 1
        logger.info(f"Enqueued {job.type.value} job {job.id} for task {job.task_id} on queue '{self.name}'")
        return job.id

    async def get(self) -> TaskJob:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        await self._queue.join()

    def pending(self) -> int:
        return self._queue.qsize()


class QueueWorker:
    """Runs up to ``concurrency`` jobs at once from one queue.

    A failing handler is logged and the job dropped; the worker keeps going.
    """

    def __init__(self, queue: TaskQueue, handler: JobHandler, concurrency: int = config.WORKER_CONCURRENCY):
        self.queue = queue
        self._handler = handler
        self.concurrency = max(1, concurrency)
        self._running_tasks: dict[int, asyncio.Task] = {}
        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return bool(self._running_tasks)

    def start(self):
        if self._running_tasks:
            return
        for slot in range(self.concurrency):
            self._running_tasks[slot] = asyncio.create_task(self._run_slot(slot))
        logger.info(f"Started {self.concurrency} workers on queue '{self.queue.name}'")

    async def _run_slot(self, slot: int):
        while True:
            job = await self.queue.get()
            try:
                logger.info(f"Worker {slot} processing job {job.id} (task {job.task_id})")
                await self._handler(job)
                self.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.error(f"Job {job.id} for task {job.task_id} failed: {e}", exc_info=True)
            finally:
                self.queue.task_done()

    async def join(self):
        """Wait until every enqueued job has been handled."""
        await self.queue.join()

    async def stop(self):
        tasks = list(self._running_tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._running_tasks.clear()
        logger.info(f"Stopped workers on queue '{self.queue.name}'")
