"""Anthropic (Claude) provider."""

from __future__ import annotations

import json
import logging
from typing import Any

import anthropic

from tasklane.config import ANTHROPIC_API_KEY
from tasklane.providers.base import Completion, CompletionProvider, FunctionCall, FunctionDef

logger = logging.getLogger(__name__)


class AnthropicProvider(CompletionProvider):
    def __init__(self, model: str = "claude-sonnet-4-5-20250929", client: Any = None):
        self.model = model
        self.client = client or anthropic.AsyncAnthropic(api_key=ANTHROPIC_API_KEY)

    def format_functions(self, functions: list[FunctionDef]) -> list[dict]:
        return [
            {"name": f.name, "description": f.description, "input_schema": f.parameters}
            for f in functions
        ]

    async def complete(
        self,
        messages: list[dict],
        functions: list[FunctionDef] | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout_ms: int | None = None,
    ) -> Completion:
        system = "\n\n".join(str(m.get("content", "")) for m in messages if m.get("role") == "system")
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": m.get("role", "user"), "content": str(m.get("content", ""))}
                for m in messages
                if m.get("role") != "system"
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system
        if functions:
            kwargs["tools"] = self.format_functions(functions)
        if timeout_ms:
            kwargs["timeout"] = timeout_ms / 1000

        try:
            raw = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise

        return self._parse_response(raw)

    def _parse_response(self, raw: Any) -> Completion:
        text_parts = []
        call = None
        for block in raw.content:
            if block.type == "tool_use" and call is None:
                call = FunctionCall(name=block.name, arguments=json.dumps(block.input))
            elif block.type == "text":
                text_parts.append(block.text)
        return Completion(
            text="\n".join(text_parts) if text_parts else None,
            function_call=call,
            usage={"input_tokens": raw.usage.input_tokens, "output_tokens": raw.usage.output_tokens},
            raw=raw,
        )
