"""Test completion providers with stubbed SDK clients."""

import json
from types import SimpleNamespace

import pytest

from tasklane.plan.prompts import GENERATE_PLAN_FUNCTION
from tasklane.providers.anthropic_provider import AnthropicProvider
from tasklane.providers.factory import create_provider, parse_model_string
from tasklane.providers.openai_provider import OpenAIProvider


class StubCreate:
    def __init__(self, response):
        self.response = response
        self.kwargs = None

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        return self.response


MESSAGES = [
    {"role": "system", "content": "You plan."},
    {"role": "user", "content": "Plan something"},
]


@pytest.mark.parametrize("model,expected", [
    ("anthropic/claude-sonnet-4-5", ("anthropic", "claude-sonnet-4-5")),
    ("OpenAI/gpt-4o-mini", ("openai", "gpt-4o-mini")),
    ("claude-3-haiku", ("anthropic", "claude-3-haiku")),
    ("gpt-4o", ("openai", "gpt-4o")),
    ("some-model", ("openai", "some-model")),
])
def test_parse_model_string(model, expected):
    assert parse_model_string(model) == expected


def test_unknown_provider():
    with pytest.raises(ValueError):
        create_provider("mistral/large")


@pytest.mark.asyncio
async def test_openai_function_call():
    tool_call = SimpleNamespace(function=SimpleNamespace(name="generate_plan", arguments='{"intent": "calculate"}'))
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=None, tool_calls=[tool_call]))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5),
    )
    create = StubCreate(response)
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    provider = OpenAIProvider(model="gpt-4o-mini", client=client)

    completion = await provider.complete(MESSAGES, functions=[GENERATE_PLAN_FUNCTION], timeout_ms=5000)

    assert completion.function_call.parsed_arguments() == {"intent": "calculate"}
    assert completion.usage == {"input_tokens": 12, "output_tokens": 5}
    assert create.kwargs["tool_choice"] == "auto"
    assert create.kwargs["tools"][0]["function"]["name"] == "generate_plan"
    assert create.kwargs["timeout"] == 5.0
    assert create.kwargs["messages"][0]["role"] == "system"


@pytest.mark.asyncio
async def test_openai_text_only():
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Hello", tool_calls=None))],
        usage=None,
    )
    create = StubCreate(response)
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    completion = await OpenAIProvider(client=client).complete(MESSAGES)

    assert completion.text == "Hello"
    assert completion.function_call is None
    assert completion.usage == {}
    assert "tools" not in create.kwargs


@pytest.mark.asyncio
async def test_anthropic_tool_use():
    response = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Here is the plan"),
            SimpleNamespace(type="tool_use", name="generate_plan", input={"intent": "calculate", "steps": []}),
        ],
        usage=SimpleNamespace(input_tokens=20, output_tokens=8),
    )
    create = StubCreate(response)
    client = SimpleNamespace(messages=SimpleNamespace(create=create))
    provider = AnthropicProvider(model="claude-sonnet-4-5", client=client)

    completion = await provider.complete(MESSAGES, functions=[GENERATE_PLAN_FUNCTION])

    assert completion.text == "Here is the plan"
    assert json.loads(completion.function_call.arguments) == {"intent": "calculate", "steps": []}
    assert completion.usage == {"input_tokens": 20, "output_tokens": 8}
    assert create.kwargs["system"] == "You plan."
    assert [m["role"] for m in create.kwargs["messages"]] == ["user"]
    assert create.kwargs["tools"][0]["input_schema"]["required"] == ["intent", "steps"]
    assert "timeout" not in create.kwargs
