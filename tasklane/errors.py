"""Error taxonomy: tool error codes, their retryability and severity, plus exceptions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tasklane.models import ToolError
    from tasklane.plan.validator import PlanValidationResult


class ToolErrorCode(str, Enum):
    """Closed set of failure codes a tool result can carry."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    RATE_LIMIT = "RATE_LIMIT"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INVALID_PARAMS = "INVALID_PARAMS"
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    BROWSER_ERROR = "BROWSER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


RETRYABLE_CODES = frozenset({
    ToolErrorCode.TIMEOUT,
    ToolErrorCode.NETWORK_ERROR,
    ToolErrorCode.RATE_LIMIT,
    ToolErrorCode.EXTERNAL_API_ERROR,
})

_SEVERITY = {
    ToolErrorCode.VALIDATION_ERROR: ErrorSeverity.LOW,
    ToolErrorCode.INVALID_PARAMS: ErrorSeverity.LOW,
    ToolErrorCode.NETWORK_ERROR: ErrorSeverity.MEDIUM,
    ToolErrorCode.TIMEOUT: ErrorSeverity.MEDIUM,
    ToolErrorCode.RATE_LIMIT: ErrorSeverity.MEDIUM,
    ToolErrorCode.AUTH_REQUIRED: ErrorSeverity.HIGH,
    ToolErrorCode.RESOURCE_NOT_FOUND: ErrorSeverity.HIGH,
    ToolErrorCode.EXECUTION_ERROR: ErrorSeverity.CRITICAL,
    ToolErrorCode.EXTERNAL_API_ERROR: ErrorSeverity.CRITICAL,
    ToolErrorCode.BROWSER_ERROR: ErrorSeverity.CRITICAL,
    ToolErrorCode.UNKNOWN_ERROR: ErrorSeverity.CRITICAL,
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_retryable_error(error: ToolError) -> bool:
    """An error is retried if it says so itself or its code is transient."""
    return error.retryable or error.code in RETRYABLE_CODES


def default_retryable(code: ToolErrorCode) -> bool:
    return code in RETRYABLE_CODES


def get_error_severity(code: ToolErrorCode) -> ErrorSeverity:
    """Advisory severity for observability. Not used in control flow."""
    return _SEVERITY.get(code, ErrorSeverity.MEDIUM)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TasklaneError(Exception):
    """Base class for all tasklane errors."""


class TaskNotFoundError(TasklaneError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTransitionError(TasklaneError):
    """Raised when a task status change is not allowed from its current state."""

    def __init__(self, current: Any, target: Any, valid_next: list[Any], message: str):
        super().__init__(message)
        self.current = current
        self.target = target
        self.valid_next = valid_next


class PlanValidationError(TasklaneError):
    """Raised when a plan with blocking validation errors is submitted."""

    def __init__(self, result: PlanValidationResult):
        first = result.errors[0].message if result.errors else "invalid plan"
        super().__init__(f"Plan validation failed: {first}")
        self.result = result


class PlanParseError(TasklaneError):
    """Raised when model output cannot be turned into a plan."""


class HandlerNotFoundError(TasklaneError):
    def __init__(self, tool_name: str):
        super().__init__(f"No handler registered for tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(TasklaneError):
    """Raised inside a handler to fail with an explicit error code.

    BaseToolHandler turns this into a ToolResult carrying the same code, so
    handlers never need to rely on message-based classification.
    """

    def __init__(
        self,
        code: ToolErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details
        self.retryable = default_retryable(code) if retryable is None else retryable
