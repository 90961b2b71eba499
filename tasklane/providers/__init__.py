"""Completion providers: model-agnostic LLM interface for plan generation."""

from tasklane.providers.base import Completion, CompletionProvider, FunctionCall, FunctionDef
from tasklane.providers.factory import create_provider

__all__ = ["Completion", "CompletionProvider", "FunctionCall", "FunctionDef", "create_provider"]
