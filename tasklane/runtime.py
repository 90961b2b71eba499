"""Runtime: builds and owns one process's set of collaborating components."""

from __future__ import annotations

import logging

from tasklane import config
from tasklane.events import EventBus
from tasklane.executor import ToolExecutor
from tasklane.orchestrator import TaskOrchestrator
from tasklane.plan.generator import PlanGenerator
from tasklane.plan.validator import PlanValidator
from tasklane.providers.base import CompletionProvider
from tasklane.providers.factory import create_provider, parse_model_string
from tasklane.queue import QueueWorker, TaskQueue
from tasklane.store import InMemoryTaskStore, TaskStore
from tasklane.tools.registry import HandlerRegistry
from tasklane.tools.setup import create_default_registry

logger = logging.getLogger(__name__)


def default_provider() -> CompletionProvider | None:
    provider_name, _ = parse_model_string(config.PLANNER_MODEL)
    key = config.ANTHROPIC_API_KEY if provider_name == "anthropic" else config.OPENAI_API_KEY
    if not key:
        logger.warning(f"No API key for planner model {config.PLANNER_MODEL}, LLM planning disabled")
        return None
    return create_provider(config.PLANNER_MODEL)


class Runtime:
    """Registry, executor, store, queue, workers and orchestrator, wired together."""

    def __init__(
        self,
        registry: HandlerRegistry | None = None,
        store: TaskStore | None = None,
        event_bus: EventBus | None = None,
        provider: CompletionProvider | None = None,
        executor: ToolExecutor | None = None,
        concurrency: int = config.WORKER_CONCURRENCY,
        use_default_provider: bool = True,
    ):
        self.registry = registry or create_default_registry()
        self.store = store or InMemoryTaskStore()
        self.event_bus = event_bus or EventBus(log_file=config.EVENT_LOG_FILE)
        self.executor = executor or ToolExecutor(self.registry)
        self.validator = PlanValidator()
        if provider is None and use_default_provider:
            provider = default_provider()
        self.generator = PlanGenerator(provider=provider, validator=self.validator)
        self.queue = TaskQueue()
        self.orchestrator = TaskOrchestrator(
            store=self.store,
            executor=self.executor,
            event_bus=self.event_bus,
            queue=self.queue,
            validator=self.validator,
            generator=self.generator,
        )
        self.worker = QueueWorker(self.queue, self.orchestrator.handle_job, concurrency)

    async def start(self):
        self.worker.start()
        logger.info(f"Runtime started with {len(self.registry)} tool handlers")

    async def stop(self):
        await self.worker.stop()
