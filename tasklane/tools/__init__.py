"""Tool catalog, handler contract and registry."""

from tasklane.tools.base import BaseToolHandler, ToolHandler
from tasklane.tools.definitions import TOOL_DEFINITIONS, ToolDefinition, ToolName
from tasklane.tools.registry import HandlerRegistry
from tasklane.tools.setup import create_default_registry

__all__ = [
    "BaseToolHandler",
    "HandlerRegistry",
    "TOOL_DEFINITIONS",
    "ToolDefinition",
    "ToolHandler",
    "ToolName",
    "create_default_registry",
]
