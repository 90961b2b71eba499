"""Task orchestrator: ties plans, the executor and task lifecycle together."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from tasklane.errors import PlanValidationError, TasklaneError
from tasklane.events import (
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_STATUS_CHANGED,
    TASK_STEP_COMPLETED,
    EventBus,
)
from tasklane.models import (
    ExecutionContext,
    LogLevel,
    PlanExecutionResult,
    StepExecutionResult,
    Task,
    TaskJob,
    TaskLog,
    TaskPriority,
)
from tasklane.plan.schema import IntentClassification, Plan, Step
from tasklane.plan.validator import PlanValidator
from tasklane.state_machine import TaskStateMachine, TaskStatus
from tasklane.store import TaskStore

if TYPE_CHECKING:
    from tasklane.executor import ToolExecutor
    from tasklane.plan.generator import PlanGenerator
    from tasklane.queue import TaskQueue

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


class TaskOrchestrator:
    """Owns every task status change.

    All transitions go through the state machine; the executor flow never
    moves a task that has left RUNNING (paused or cancelled meanwhile) into a
    terminal state.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: ToolExecutor,
        event_bus: EventBus,
        queue: TaskQueue | None = None,
        state_machine: TaskStateMachine | None = None,
        validator: PlanValidator | None = None,
        generator: PlanGenerator | None = None,
    ):
        self.store = store
        self.executor = executor
        self.event_bus = event_bus
        self.queue = queue
        self.state_machine = state_machine or TaskStateMachine()
        self.validator = validator or PlanValidator()
        self.generator = generator
        # task id -> number of the latest execution run; older runs stop at the next step
        self._runs: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_task(
        self,
        chat_id: str,
        user_id: str,
        intent_text: str,
        plan: Plan | None = None,
        classification: IntentClassification | None = None,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        auto_start: bool = True,
    ) -> Task:
        """Validate a plan, persist it as a PENDING task, and optionally start it."""
        if plan is None:
            if classification is None or self.generator is None:
                raise TasklaneError("A plan, or a classification plus a plan generator, is required")
            plan = await self.generator.generate(classification)

        validation = self.validator.validate(plan)
        if not validation.valid:
            raise PlanValidationError(validation)

        title = await self._make_title(intent_text)
        task = Task(
            chat_id=chat_id,
            user_id=user_id,
            intent_text=intent_text,
            plan=plan,
            title=title,
            priority=TaskPriority(priority),
            total_steps=len(plan.steps),
        )
        await self.store.save(task)
        await self._log(task.id, LogLevel.INFO, f"Task created: {title}", total_steps=task.total_steps)
        for warning in validation.warnings:
            await self._log(task.id, LogLevel.WARN, warning)
        logger.info(f"Created task {task.id} ({len(plan.steps)} steps) in chat {chat_id}")

        if auto_start:
            task = await self.start_task(task.id)
        return task

    async def _make_title(self, intent_text: str) -> str:
        if self.generator is not None:
            return await self.generator.generate_title(intent_text)
        return intent_text.strip()[:MAX_TITLE_LENGTH]

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------

    async def start_task(self, task_id: str) -> Task:
        task = await self._transition(task_id, TaskStatus.RUNNING)
        await self._enqueue(task)
        await self._log(task_id, LogLevel.INFO, "Task execution started")
        logger.info(f"Task {task_id} started")
        return task

    async def pause_task(self, task_id: str) -> Task:
        task = await self._transition(task_id, TaskStatus.PAUSED)
        await self._log(task_id, LogLevel.INFO, "Task paused by user")
        return task

    async def resume_task(self, task_id: str) -> Task:
        """Back to RUNNING and re-enqueued. The plan re-runs from the first step."""
        task = await self._transition(task_id, TaskStatus.RUNNING)
        await self._enqueue(task, resume=True)
        await self._log(task_id, LogLevel.INFO, "Task resumed")
        return task

    async def cancel_task(self, task_id: str) -> Task:
        task = await self._transition(task_id, TaskStatus.CANCELLED)
        await self._log(task_id, LogLevel.WARN, "Task cancelled by user")
        return task

    async def complete_task(self, task_id: str, result: dict[str, Any]) -> Task:
        task = await self._transition(task_id, TaskStatus.SUCCEEDED, result=result)
        await self._log(task_id, LogLevel.INFO, "Task completed successfully")
        self.event_bus.emit_simple(TASK_COMPLETED, task_id, result=result)
        logger.info(f"Task {task_id} completed")
        return task

    async def fail_task(self, task_id: str, error: str, error_details: dict[str, Any] | None = None) -> Task:
        task = await self._transition(task_id, TaskStatus.FAILED, error=error, error_details=error_details)
        await self._log(task_id, LogLevel.ERROR, f"Task failed: {error}", error=error, details=error_details)
        self.event_bus.emit_simple(TASK_FAILED, task_id, error=error)
        logger.error(f"Task {task_id} failed: {error}")
        return task

    async def _transition(self, task_id: str, target: TaskStatus, **updates: Any) -> Task:
        task = await self.store.get_or_raise(task_id)
        self.state_machine.ensure_transition(task.status, target)

        previous = task.status
        task.status = target
        now = time.time()
        if target == TaskStatus.RUNNING and task.started_at is None:
            task.started_at = now
        if self.state_machine.is_terminal(target):
            task.completed_at = now
            # an in-flight run sees the missing entry as superseded and stops
            self._runs.pop(task_id, None)
        for key, value in updates.items():
            setattr(task, key, value)
        await self.store.save(task)

        self.event_bus.emit_simple(
            TASK_STATUS_CHANGED,
            task_id,
            status=target.value,
            previous_status=previous.value,
            current_step=task.current_step,
            total_steps=task.total_steps,
        )
        return task

    async def _enqueue(self, task: Task, resume: bool = False):
        if self.queue is None:
            logger.debug(f"No queue configured, task {task.id} must be executed directly")
            return
        payload: dict[str, Any] = {"plan": task.plan.model_dump(mode="json")}
        if resume:
            payload["resume"] = True
        await self.queue.enqueue(TaskJob(task_id=task.id, user_id=task.user_id, payload=payload))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def handle_job(self, job: TaskJob):
        """Queue worker entry point."""
        await self.execute_task(job.task_id)

    async def execute_task(self, task_id: str) -> PlanExecutionResult | None:
        """Run a RUNNING task's plan and record the outcome.

        Returns None when the task was not RUNNING and nothing was executed.
        """
        task = await self.store.get_or_raise(task_id)
        if task.status != TaskStatus.RUNNING:
            logger.info(f"Skipping task {task_id}: status is {task.status.value}, not RUNNING")
            await self._log(task_id, LogLevel.DEBUG, f"Execution skipped while {task.status.value}")
            return None

        run = self._runs.get(task_id, 0) + 1
        self._runs[task_id] = run
        logger.info(f"Executing task {task_id} (run {run})")
        context = ExecutionContext(
            user_id=task.user_id,
            task_id=task.id,
            user_profile={},
            dry_run=False,
        )

        async def on_step_completed(index: int, step: Step, step_result: StepExecutionResult):
            await self._record_step(task_id, index, step, step_result)

        async def should_continue() -> bool:
            if self._runs.get(task_id) != run:
                return False
            current = await self.store.get(task_id)
            return current is not None and current.status == TaskStatus.RUNNING

        try:
            result = await self.executor.execute_plan(
                task.plan,
                context,
                on_step_completed=on_step_completed,
                should_continue=should_continue,
            )
        except Exception as e:
            logger.error(f"Task execution error for {task_id}: {e}", exc_info=True)
            if self._runs.get(task_id) == run:
                await self._finish_if_running(task_id, None, str(e) or "Unknown error")
            return None

        if self._runs.get(task_id) != run:
            logger.info(f"Run {run} of task {task_id} is no longer current, not finalizing")
            return result
        await self._finish_if_running(task_id, result)
        return result

    async def _record_step(self, task_id: str, index: int, step: Step, step_result: StepExecutionResult):
        task = await self.store.get_or_raise(task_id)
        task.current_step = index + 1
        await self.store.save(task)

        level = LogLevel.INFO if step_result.success else LogLevel.ERROR
        message = f"Step {step_result.step_id} ({step.tool_name}) {'succeeded' if step_result.success else 'failed'}"
        error = step_result.result.error
        if error:
            message += f": {error.message}"
        await self._log(
            task_id,
            level,
            message,
            step=index + 1,
            execution_time_ms=step_result.execution_time_ms,
            error=error.to_dict() if error else None,
        )
        self.event_bus.emit_simple(
            TASK_STEP_COMPLETED,
            task_id,
            step_index=index,
            step_id=step_result.step_id,
            tool_name=step_result.tool_name,
            success=step_result.success,
            current_step=index + 1,
            total_steps=task.total_steps,
        )

    async def _finish_if_running(self, task_id: str, result: PlanExecutionResult | None, error: str | None = None):
        task = await self.store.get_or_raise(task_id)
        if task.status != TaskStatus.RUNNING:
            logger.info(f"Task {task_id} left RUNNING during execution ({task.status.value}), not finalizing")
            return

        if result is None:
            await self.fail_task(task_id, error or "Unknown error")
        elif result.halted:
            # paused and resumed between steps; the resume job re-runs the plan
            logger.info(f"Task {task_id} halted; a resumed run will pick it up")
        elif result.success:
            await self.complete_task(task_id, result.to_dict())
        else:
            failed = result.first_failure()
            details = (
                failed.result.error.to_dict() if failed and failed.result.error
                else result.error.to_dict() if result.error else None
            )
            if failed is not None and details is not None:
                details = {**details, "step_id": failed.step_id}
            await self.fail_task(task_id, result.failure_message(), error_details=details)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        return await self.store.get_or_raise(task_id)

    async def list_tasks(self, chat_id: str) -> list[Task]:
        return await self.store.list_by_chat(chat_id)

    async def get_logs(self, task_id: str) -> list[TaskLog]:
        await self.store.get_or_raise(task_id)
        return await self.store.get_logs(task_id)

    async def _log(self, task_id: str, level: LogLevel, message: str, step: int | None = None, **metadata: Any):
        await self.store.log(task_id, level, message, step=step, **metadata)
