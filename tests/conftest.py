"""Shared fakes for tasklane tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from tasklane.errors import ToolErrorCode
from tasklane.events import EventBus
from tasklane.executor import ToolExecutor
from tasklane.models import ExecutionContext, ToolResult, create_tool_error, error_result, success_result
from tasklane.orchestrator import TaskOrchestrator
from tasklane.plan.schema import Plan
from tasklane.store import InMemoryTaskStore
from tasklane.tools.base import ToolHandler
from tasklane.tools.registry import HandlerRegistry


class ScriptedHandler(ToolHandler):
    """Async handler that returns queued outcomes, then repeats the last one.

    An outcome is a ToolResult, an exception to raise, or plain data.
    """

    def __init__(self, name: str, *outcomes: Any, delay: float = 0):
        self.name = name
        self.outcomes = list(outcomes) or [{"ok": True}]
        self.delay = delay
        self.calls: list[tuple[dict, ExecutionContext]] = []

    async def execute(self, params, context):
        self.calls.append((params, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(len(self.calls) - 1, len(self.outcomes) - 1)]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, ToolResult):
            return outcome
        return success_result(outcome, self.name, 1, context.step_id)


class SyncHandler(ToolHandler):
    def __init__(self, name: str, data: Any = "done"):
        self.name = name
        self.data = data
        self.calls = 0

    def execute(self, params, context):
        self.calls += 1
        return success_result(self.data, self.name, 0, context.step_id)


def failure(code: ToolErrorCode, message: str = "boom", retryable: bool | None = None, tool: str = "t") -> ToolResult:
    return error_result(create_tool_error(code, message, retryable=retryable), tool)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


def make_plan(*steps: dict, intent: str = "browser_action") -> Plan:
    return Plan.model_validate({"intent": intent, "steps": list(steps)})


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def executor(registry, sleep):
    return ToolExecutor(registry, sleep=sleep)


@pytest.fixture
def context():
    return ExecutionContext(user_id="user-1", task_id="task-1")


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def orchestrator(store, executor, event_bus):
    return TaskOrchestrator(store=store, executor=executor, event_bus=event_bus)
