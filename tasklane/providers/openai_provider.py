"""OpenAI chat-completions provider."""

from __future__ import annotations

import logging
from typing import Any

import openai

from tasklane.config import OPENAI_API_KEY
from tasklane.providers.base import Completion, CompletionProvider, FunctionCall, FunctionDef

logger = logging.getLogger(__name__)


class OpenAIProvider(CompletionProvider):
    def __init__(self, model: str = "gpt-4o-mini", client: Any = None):
        self.model = model
        self.client = client or openai.AsyncOpenAI(api_key=OPENAI_API_KEY)

    def format_functions(self, functions: list[FunctionDef]) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": f.name,
                    "description": f.description,
                    "parameters": f.parameters,
                },
            }
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
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.get("role", "user"), "content": str(m.get("content", ""))} for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if functions:
            kwargs["tools"] = self.format_functions(functions)
            kwargs["tool_choice"] = "auto"
        if timeout_ms:
            kwargs["timeout"] = timeout_ms / 1000

        logger.debug(f"Calling {self.model}: {len(messages)} messages, {len(functions or [])} functions")
        try:
            raw = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise

        return self._parse_response(raw)

    def _parse_response(self, raw: Any) -> Completion:
        msg = raw.choices[0].message
        call = None
        if msg.tool_calls:
            tc = msg.tool_calls[0]
            call = FunctionCall(name=tc.function.name, arguments=tc.function.arguments)
        usage = {}
        if raw.usage:
            usage = {"input_tokens": raw.usage.prompt_tokens, "output_tokens": raw.usage.completion_tokens}
        return Completion(text=msg.content, function_call=call, usage=usage, raw=raw)
