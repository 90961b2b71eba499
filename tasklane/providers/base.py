"""Completion provider interface: the LLM capability plan generation consumes."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FunctionDef:
    """A structured-call schema offered to the model."""
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class FunctionCall:
    name: str
    arguments: str  # raw JSON text as returned by the model

    def parsed_arguments(self) -> dict[str, Any]:
        return json.loads(self.arguments)


@dataclass
class Completion:
    text: str | None = None
    function_call: FunctionCall | None = None
    usage: dict[str, int] = field(default_factory=dict)
    raw: Any = None


class CompletionProvider(ABC):
    """One chat-completion call: role-tagged messages in, text or a function call out."""

    model: str

    @abstractmethod
    async def complete(
        self,
        messages: list[dict],
        functions: list[FunctionDef] | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout_ms: int | None = None,
    ) -> Completion:
        """Call the model. Raises the SDK's own errors on failure."""
