"""Step and plan execution: retries, timeouts, dependency gating."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable

from tasklane import config
from tasklane.errors import ToolErrorCode, get_error_severity, is_retryable_error
from tasklane.models import (
    ExecutionContext,
    PlanExecutionResult,
    StepExecutionResult,
    ToolError,
    ToolResult,
    create_tool_error,
    error_result,
    success_result,
)
from tasklane.plan.schema import Plan, Step
from tasklane.tools.base import ToolHandler
from tasklane.tools.registry import HandlerRegistry

logger = logging.getLogger(__name__)

StepCallback = Callable[[int, Step, StepExecutionResult], Awaitable[None] | None]
ContinueCheck = Callable[[], Awaitable[bool] | bool]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ToolExecutor:
    """Runs single tool calls and whole plans against a handler registry.

    One plan runs as one sequential flow; separate plans may share an
    executor concurrently because all per-run state lives in the context.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        default_timeout_ms: int = config.DEFAULT_TOOL_TIMEOUT_MS,
        default_max_retries: int = config.DEFAULT_MAX_RETRIES,
        backoff_base_ms: int = config.BACKOFF_BASE_MS,
        backoff_cap_ms: int = config.BACKOFF_CAP_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.default_timeout_ms = default_timeout_ms
        self.default_max_retries = default_max_retries
        self.backoff_base_ms = backoff_base_ms
        self.backoff_cap_ms = backoff_cap_ms
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Single tool
    # ------------------------------------------------------------------

    def backoff_delay_ms(self, attempt: int) -> int:
        """Delay before the retry that follows ``attempt`` (0-based)."""
        return min(self.backoff_base_ms * 2 ** attempt, self.backoff_cap_ms)

    def is_retryable_error(self, error: ToolError) -> bool:
        return is_retryable_error(error)

    async def execute_tool(self, tool_name: str, params: dict[str, Any], context: ExecutionContext) -> ToolResult:
        """Run one tool with timeout and retry policy. Never raises."""
        start = time.monotonic()

        handler = self.registry.get_handler(tool_name)
        if handler is None:
            logger.error(f"No handler found for tool: {tool_name}")
            return error_result(
                create_tool_error(
                    ToolErrorCode.EXECUTION_ERROR,
                    f"No handler registered for tool: {tool_name}",
                    {"tool_name": tool_name},
                    retryable=False,
                ),
                tool_name,
                _elapsed_ms(start),
                context.step_id,
            )

        supports_context = getattr(handler, "supports_context", None)
        if supports_context is not None and not supports_context(context):
            logger.warning(f"Handler {tool_name} does not support given context")
            return error_result(
                create_tool_error(
                    ToolErrorCode.AUTH_REQUIRED,
                    f"Tool {tool_name} requires authentication or different context",
                    {"tool_name": tool_name},
                    retryable=False,
                ),
                tool_name,
                _elapsed_ms(start),
                context.step_id,
            )

        max_retries = context.max_retries if context.max_retries is not None else self.default_max_retries
        timeout_ms = context.timeout_ms or self.default_timeout_ms
        result: ToolResult | None = None

        for attempt in range(max_retries + 1):
            attempt_context = context.derive(retry_count=attempt)
            logger.debug(f"Executing {tool_name} (attempt {attempt + 1}/{max_retries + 1})")

            try:
                outcome = await self._execute_with_timeout(handler, params, attempt_context, timeout_ms)
                # plain data counts as success
                result = (
                    outcome if isinstance(outcome, ToolResult)
                    else success_result(outcome, tool_name, _elapsed_ms(start), context.step_id)
                )
            except Exception as e:
                logger.error(f"Unexpected error during {tool_name} execution: {e}", exc_info=True)
                return error_result(
                    create_tool_error(
                        ToolErrorCode.UNKNOWN_ERROR,
                        str(e) or "Unexpected error",
                        {"exception": type(e).__name__},
                        retryable=False,
                    ),
                    tool_name,
                    _elapsed_ms(start),
                    context.step_id,
                )

            if result.success or result.error is None:
                if attempt > 0:
                    logger.info(f"{tool_name} succeeded after {attempt} retries")
                    if result.metadata is not None:
                        result.metadata.retries = attempt
                return result

            if not self.is_retryable_error(result.error):
                logger.warning(
                    f"{tool_name} failed with non-retryable {result.error.code.value} "
                    f"(severity: {get_error_severity(result.error.code).value}): {result.error.message}"
                )
                return result

            if attempt < max_retries:
                delay_ms = self.backoff_delay_ms(attempt)
                logger.debug(f"Waiting {delay_ms}ms before retry")
                await self._sleep(delay_ms / 1000)

        logger.error(
            f"{tool_name} failed after {max_retries + 1} attempts with {result.error.code.value} "
            f"(severity: {get_error_severity(result.error.code).value})"
        )
        if result.metadata is not None:
            result.metadata.retries = max_retries
        return result

    async def _execute_with_timeout(
        self,
        handler: ToolHandler,
        params: dict[str, Any],
        context: ExecutionContext,
        timeout_ms: int,
    ) -> ToolResult | Any:
        """Race the handler against a timer. Only a timer win is a TIMEOUT."""
        call = asyncio.ensure_future(_maybe_await(handler.execute(params, context)))
        try:
            done, _ = await asyncio.wait({call}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            call.cancel()
            raise
        if call in done:
            return call.result()

        call.cancel()
        logger.warning(f"{handler.name} timed out after {timeout_ms}ms")
        return error_result(
            create_tool_error(
                ToolErrorCode.TIMEOUT,
                f"Tool execution timed out after {timeout_ms}ms",
                {"timeout_ms": timeout_ms},
            ),
            handler.name,
            timeout_ms,
            context.step_id,
        )

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def execute_plan(
        self,
        plan: Plan,
        context: ExecutionContext,
        on_step_completed: StepCallback | None = None,
        should_continue: ContinueCheck | None = None,
    ) -> PlanExecutionResult:
        """Walk the plan's steps in list order.

        A failed required step stops the walk; a failed optional one does not.
        ``should_continue`` is consulted before every step and a False answer
        halts the walk without marking it failed by a step.
        """
        start = time.monotonic()
        results: list[StepExecutionResult] = []
        step_results = context.previous_step_results
        total = len(plan.steps)
        halted = False

        logger.info(f"Executing plan with {total} steps for intent: {plan.intent_type.value}")

        try:
            for index, step in enumerate(plan.steps):
                step_id = step.id or f"step_{index + 1}"

                if should_continue is not None and not await _maybe_await(should_continue()):
                    logger.info(f"Plan halted before step {step_id}")
                    halted = True
                    break

                step_start = time.monotonic()
                logger.info(f"Executing step {index + 1}/{total}: {step.tool_name} ({step_id})")

                unmet = self._check_dependencies(step, step_results)
                if unmet:
                    logger.error(f"Step {step_id} dependencies not satisfied: {unmet}")
                    result = error_result(
                        create_tool_error(
                            ToolErrorCode.EXECUTION_ERROR,
                            f"Dependency check failed: {unmet}",
                            {"step": step_id, "dependencies": list(step.depends_on)},
                            retryable=False,
                        ),
                        step.tool_name,
                        _elapsed_ms(step_start),
                        step_id,
                    )
                else:
                    step_context = context.derive(
                        step_id=step_id,
                        max_retries=self._step_max_retries(step, context),
                    )
                    result = await self.execute_tool(step.tool_name, step.params, step_context)
                    step_results[step_id] = result

                step_result = StepExecutionResult(
                    step_id=step_id,
                    tool_name=step.tool_name,
                    success=result.success,
                    result=result,
                    execution_time_ms=_elapsed_ms(step_start),
                )
                results.append(step_result)
                logger.info(
                    f"Step {step_id} {'succeeded' if result.success else 'failed'} "
                    f"in {step_result.execution_time_ms}ms"
                )

                if on_step_completed is not None:
                    await _maybe_await(on_step_completed(index, step, step_result))

                if not result.success and not step.optional:
                    logger.warning(f"Stopping plan execution due to failed required step: {step_id}")
                    break

            completed = sum(1 for r in results if r.success)
            elapsed = _elapsed_ms(start)
            logger.info(f"Plan execution completed: {completed}/{total} steps succeeded in {elapsed}ms")
            return PlanExecutionResult(
                success=completed == total,
                completed_steps=completed,
                total_steps=total,
                results=results,
                execution_time_ms=elapsed,
                halted=halted,
            )
        except Exception as e:
            logger.error(f"Plan execution failed with error: {e}", exc_info=True)
            return PlanExecutionResult(
                success=False,
                completed_steps=sum(1 for r in results if r.success),
                total_steps=total,
                results=results,
                error=create_tool_error(
                    ToolErrorCode.EXECUTION_ERROR,
                    str(e) or "Plan execution failed",
                    {"exception": type(e).__name__},
                    retryable=False,
                ),
                execution_time_ms=_elapsed_ms(start),
                halted=halted,
            )

    def _step_max_retries(self, step: Step, context: ExecutionContext) -> int:
        if context.max_retries is not None:
            return context.max_retries
        return step.max_retries if step.retryable else 0

    @staticmethod
    def _check_dependencies(step: Step, results: dict[str, ToolResult]) -> str | None:
        """Return why the step's dependencies are unmet, or None."""
        for dep_id in step.depends_on:
            dep = results.get(dep_id)
            if dep is None:
                return f'Dependency step "{dep_id}" has not been executed'
            if not dep.success:
                return f'Dependency step "{dep_id}" failed'
        return None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def available_tools(self) -> list[str]:
        return self.registry.names()

    def is_tool_available(self, tool_name: str) -> bool:
        return self.registry.has_handler(tool_name)
