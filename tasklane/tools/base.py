"""Tool handler contract and the base class most handlers extend."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable

import httpx
from pydantic import BaseModel, ValidationError

from tasklane.errors import ToolErrorCode, ToolExecutionError, default_retryable
from tasklane.models import ToolResult, create_tool_error, error_result, success_result
from tasklane.tools.definitions import TOOL_DEFINITIONS, ToolDefinition

if TYPE_CHECKING:
    from tasklane.models import ExecutionContext

logger = logging.getLogger(__name__)


class ToolHandler(ABC):
    """Uniform interface every tool implements.

    Handlers may also define ``validate(params)`` (raise on malformed params)
    and ``supports_context(context) -> bool`` (auth gating). The executor
    treats both as optional.
    """

    name: str

    @abstractmethod
    def execute(self, params: dict[str, Any], context: ExecutionContext) -> ToolResult | Awaitable[ToolResult]:
        """Run the tool. May be sync or async."""


class BaseToolHandler(ToolHandler):
    """Wraps execute_impl with validation, dry-run, timing, and error mapping."""

    name: str = ""

    def __init__(self, definition: ToolDefinition | None = None):
        self.definition = definition or TOOL_DEFINITIONS.get(self.name)
        if definition is not None and not self.name:
            self.name = definition.name
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    async def execute(self, params: dict[str, Any], context: ExecutionContext) -> ToolResult:
        start = time.monotonic()
        try:
            self.logger.info(
                f"Executing {self.name} for user {context.user_id}"
                + (f" (step: {context.step_id})" if context.step_id else "")
            )
            validated = self.validate(params)

            if context.dry_run:
                self.logger.info("Dry run - skipping actual execution")
                return success_result({"dry_run": True, "params": params}, self.name, 0, context.step_id)

            outcome = await self.execute_impl(validated, context)
            elapsed = _elapsed_ms(start)
            if not isinstance(outcome, ToolResult):
                outcome = success_result(outcome, self.name, elapsed, context.step_id)
            self.logger.info(f"{self.name} completed in {elapsed}ms - success: {outcome.success}")
            return outcome
        except Exception as e:
            elapsed = _elapsed_ms(start)
            code = self.classify_error(e)
            retryable = e.retryable if isinstance(e, ToolExecutionError) else default_retryable(code)
            details = e.details if isinstance(e, ToolExecutionError) and e.details else {"exception": type(e).__name__}
            self.logger.error(f"{self.name} failed after {elapsed}ms: {e}")
            return error_result(
                create_tool_error(code, str(e) or "Tool execution failed", details, retryable),
                self.name,
                elapsed,
                context.step_id,
            )

    def validate(self, params: dict[str, Any]) -> BaseModel | dict[str, Any]:
        """Check params against the catalog schema; raise INVALID_PARAMS on failure."""
        if self.definition is None:
            return params
        try:
            return self.definition.parameter_schema.model_validate(params)
        except ValidationError as e:
            messages = ", ".join(err["msg"] for err in e.errors())
            raise ToolExecutionError(
                ToolErrorCode.INVALID_PARAMS,
                f"Invalid parameters: {messages}",
                {"errors": e.errors(include_url=False, include_context=False)},
                retryable=False,
            ) from e

    def supports_context(self, context: ExecutionContext) -> bool:
        if self.definition and self.definition.requires_auth and not context.user_id:
            return False
        return True

    def classify_error(self, error: Exception) -> ToolErrorCode:
        """Map an exception to an error code.

        Structured signals first; message sniffing only as a last resort.
        """
        if isinstance(error, ToolExecutionError):
            return error.code
        if isinstance(error, ValidationError):
            return ToolErrorCode.VALIDATION_ERROR
        if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
            return ToolErrorCode.TIMEOUT
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            if status == 429:
                return ToolErrorCode.RATE_LIMIT
            if status in (401, 403):
                return ToolErrorCode.AUTH_REQUIRED
            if status == 404:
                return ToolErrorCode.RESOURCE_NOT_FOUND
            return ToolErrorCode.EXTERNAL_API_ERROR
        if isinstance(error, (httpx.TransportError, ConnectionError)):
            return ToolErrorCode.NETWORK_ERROR

        message = str(error).lower()
        if "timeout" in message or "timed out" in message:
            return ToolErrorCode.TIMEOUT
        if "auth" in message or "unauthorized" in message:
            return ToolErrorCode.AUTH_REQUIRED
        if "rate limit" in message:
            return ToolErrorCode.RATE_LIMIT
        if "not found" in message:
            return ToolErrorCode.RESOURCE_NOT_FOUND
        return ToolErrorCode.EXECUTION_ERROR

    @abstractmethod
    async def execute_impl(self, params: Any, context: ExecutionContext) -> ToolResult | Any:
        """Tool logic. Return a ToolResult, or plain data to be wrapped as success."""


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
