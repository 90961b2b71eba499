"""Handler registry: maps tool names to their handlers."""

from __future__ import annotations

import logging
from typing import Iterable

from tasklane.errors import HandlerNotFoundError
from tasklane.tools.base import ToolHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Write-once-then-read-many table from tool name to handler.

    Populate it at startup, before any job is processed. Registering while
    jobs are running is not safe against in-flight lookups.
    """

    def __init__(self):
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, handler: ToolHandler):
        """Register a handler under its name, overwriting any previous one."""
        if handler.name in self._handlers:
            logger.warning(f"Handler for tool {handler.name} already registered, overwriting")
        self._handlers[handler.name] = handler
        logger.debug(f"Registered handler for tool: {handler.name}")

    def register_all(self, handlers: Iterable[ToolHandler]):
        count = 0
        for handler in handlers:
            self.register(handler)
            count += 1
        logger.info(f"Registered {count} tool handlers")

    def get_handler(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def get_handler_or_raise(self, name: str) -> ToolHandler:
        handler = self._handlers.get(name)
        if handler is None:
            raise HandlerNotFoundError(name)
        return handler

    def has_handler(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> list[str]:
        return list(self._handlers.keys())

    def handlers(self) -> list[ToolHandler]:
        return list(self._handlers.values())

    def clear(self):
        """Drop all handlers (tests only)."""
        self._handlers.clear()
        logger.warning("All handlers cleared from registry")

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers
