"""Core runtime data structures for tasklane."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from tasklane.errors import ToolErrorCode, default_retryable, utc_now_iso
from tasklane.state_machine import TaskStatus

if TYPE_CHECKING:
    from tasklane.plan.schema import Plan


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------


@dataclass
class ToolError:
    code: ToolErrorCode
    message: str
    details: dict[str, Any] | None = None
    retryable: bool = False
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ToolError:
        return cls(
            code=ToolErrorCode(data["code"]),
            message=data.get("message", ""),
            details=data.get("details"),
            retryable=bool(data.get("retryable", False)),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


def create_tool_error(
    code: ToolErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
    retryable: bool | None = None,
) -> ToolError:
    """Build a ToolError; retryability defaults to the code's default."""
    if retryable is None:
        retryable = default_retryable(code)
    return ToolError(code=code, message=message, details=details, retryable=retryable)


@dataclass
class ToolExecutionMetadata:
    execution_time_ms: int
    tool_name: str
    step_id: str | None = None
    retries: int = 0
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp,
            "tool_name": self.tool_name,
            "step_id": self.step_id,
            "retries": self.retries,
        }


@dataclass
class ToolResult:
    success: bool
    data: Any = None
    error: ToolError | None = None
    metadata: ToolExecutionMetadata | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


def success_result(data: Any, tool_name: str, execution_time_ms: int = 0, step_id: str | None = None) -> ToolResult:
    return ToolResult(
        success=True,
        data=data,
        error=None,
        metadata=ToolExecutionMetadata(execution_time_ms=execution_time_ms, tool_name=tool_name, step_id=step_id),
    )


def error_result(error: ToolError, tool_name: str, execution_time_ms: int = 0, step_id: str | None = None) -> ToolResult:
    return ToolResult(
        success=False,
        data=None,
        error=error,
        metadata=ToolExecutionMetadata(execution_time_ms=execution_time_ms, tool_name=tool_name, step_id=step_id),
    )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass
class ExecutionContext:
    """Per-run bag of identity, options and accumulated step results.

    Only the flow executing the plan writes to previous_step_results.
    """

    user_id: str
    task_id: str | None = None
    step_id: str | None = None
    user_profile: dict[str, Any] | None = None
    dry_run: bool = False
    timeout_ms: int | None = None
    max_retries: int | None = None
    retry_count: int = 0
    previous_step_results: dict[str, ToolResult] = field(default_factory=dict)

    def derive(self, **changes: Any) -> ExecutionContext:
        """Copy with overrides. The results map is shared, not copied."""
        return replace(self, **changes)


@dataclass(frozen=True)
class StepExecutionResult:
    step_id: str
    tool_name: str
    success: bool
    result: ToolResult
    execution_time_ms: int
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "tool_name": self.tool_name,
            "success": self.success,
            "result": self.result.to_dict(),
            "execution_time_ms": self.execution_time_ms,
            "timestamp": self.timestamp,
        }


@dataclass
class PlanExecutionResult:
    success: bool
    completed_steps: int
    total_steps: int
    results: list[StepExecutionResult] = field(default_factory=list)
    error: ToolError | None = None
    execution_time_ms: int = 0
    halted: bool = False
    timestamp: str = field(default_factory=utc_now_iso)

    def first_failure(self) -> StepExecutionResult | None:
        return next((r for r in self.results if not r.success), None)

    def failure_message(self) -> str:
        """Message of the first failing step, else the plan-level error."""
        failed = self.first_failure()
        if failed and failed.result.error:
            return failed.result.error.message
        if self.error:
            return self.error.message
        return "Execution failed"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "results": [r.to_dict() for r in self.results],
            "error": self.error.to_dict() if self.error else None,
            "execution_time_ms": self.execution_time_ms,
            "halted": self.halted,
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass
class Task:
    """The persisted unit of work tracking one plan's lifecycle."""

    chat_id: str
    user_id: str
    intent_text: str
    plan: Plan
    id: str = field(default_factory=generate_id)
    title: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    current_step: int = 0
    total_steps: int = 0
    result: dict[str, Any] | None = None
    error: str | None = None
    error_details: dict[str, Any] | None = None
    started_at: float | None = None
    completed_at: float | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "user_id": self.user_id,
            "intent_text": self.intent_text,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "plan": self.plan.model_dump(mode="json"),
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "result": self.result,
            "error": self.error,
            "error_details": self.error_details,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class TaskLog:
    task_id: str
    level: LogLevel
    message: str
    step: int | None = None
    metadata: dict[str, Any] | None = None
    ts: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "level": self.level.value,
            "message": self.message,
            "step": self.step,
            "metadata": self.metadata,
            "ts": self.ts,
        }


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class Event:
    type: str
    task_id: str
    ts: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "task_id": self.task_id, "ts": self.ts, "data": self.data}


# ---------------------------------------------------------------------------
# Queue jobs
# ---------------------------------------------------------------------------


class TaskJobType(str, Enum):
    EXECUTE_TASK = "execute_task"


@dataclass
class TaskJob:
    task_id: str
    user_id: str
    type: TaskJobType = TaskJobType.EXECUTE_TASK
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"job_{uuid.uuid4().hex[:8]}")
    enqueued_at: float = field(default_factory=time.time)
