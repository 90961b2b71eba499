"""Test plan generation: templates, LLM output parsing, fallbacks, titles."""

import json
from datetime import date

import pytest

from tasklane.errors import PlanParseError
from tasklane.plan.generator import PlanGenerator, extract_json, plan_from_completion
from tasklane.plan.prompts import GENERATE_PLAN_FUNCTION, create_plan_generator_messages, render_tool_catalog
from tasklane.plan.schema import IntentClassification, IntentType
from tasklane.plan.templates import fallback_plan, template_plan
from tasklane.plan.validator import validate_plan
from tasklane.providers.base import Completion, CompletionProvider, FunctionCall


class FakeProvider(CompletionProvider):
    model = "fake"

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, messages, functions=None, temperature=0.1, max_tokens=2000, timeout_ms=None):
        self.calls.append({"messages": messages, "functions": functions, "max_tokens": max_tokens})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


SEARCH_PLAN = {
    "intent": "flight_search",
    "steps": [
        {"id": "step_1", "tool": "search_flights", "params": {"from": "BOM", "to": "DEL", "date": "2025-12-25"}},
        {"id": "step_2", "tool": "validate_results", "params": {"step_id": "step_1", "min_results": 1},
         "depends_on": ["step_1"]},
    ],
    "metadata": {"complexity": "simple"},
}


def _classification(intent, **params):
    return IntentClassification(intent_type=intent, params=params)


def _call(plan):
    return Completion(function_call=FunctionCall(name="generate_plan", arguments=json.dumps(plan)), usage={"input_tokens": 10})


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def test_extract_json_plain_and_fenced():
    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('Here you go:\n```json\n{"a": 2}\n```\nEnjoy') == {"a": 2}
    assert extract_json("```\n[1, 2]\n```") == [1, 2]
    with pytest.raises(PlanParseError):
        extract_json("not json at all")


def test_plan_from_completion_prefers_function_call():
    completion = Completion(text='{"intent": "unknown", "steps": []}', function_call=_call(SEARCH_PLAN).function_call)
    plan = plan_from_completion(completion)
    assert plan.intent_type == IntentType.FLIGHT_SEARCH
    assert len(plan.steps) == 2


def test_plan_from_completion_errors():
    with pytest.raises(PlanParseError):
        plan_from_completion(Completion())
    with pytest.raises(PlanParseError):
        plan_from_completion(Completion(text="[1, 2]"))
    with pytest.raises(PlanParseError):
        plan_from_completion(Completion(text='{"intent": "teleport", "steps": []}'))
    with pytest.raises(PlanParseError):
        plan_from_completion(Completion(function_call=FunctionCall(name="generate_plan", arguments="{oops")))


# ---------------------------------------------------------------------------
# Templates & fallbacks
# ---------------------------------------------------------------------------


def test_weather_template():
    plan = template_plan(_classification("get_weather", location="Paris"))
    assert [s.tool_name for s in plan.steps] == ["get_weather"]
    assert plan.steps[0].params == {"location": "Paris", "units": "celsius"}
    assert validate_plan(plan).valid


def test_no_template_for_complex_intents():
    assert template_plan(_classification("flight_search")) is None


@pytest.mark.parametrize("intent,tools", [
    ("flight_search", ["search_flights", "validate_results"]),
    ("book_flight", ["book_flight", "take_screenshot"]),
    ("apply_job", ["apply_job", "take_screenshot"]),
    ("fill_form", ["fill_form", "check_completion"]),
    ("post_social", ["post_social", "take_screenshot"]),
    ("browser_action", ["browser_action", "take_screenshot"]),
])
def test_fallback_shapes(intent, tools):
    plan = fallback_plan(_classification(intent))
    assert [s.tool_name for s in plan.steps] == tools
    assert plan.steps[1].depends_on == ["step_1"]


def test_fallback_reads_camel_case_params():
    plan = fallback_plan(_classification("apply_job", jobUrl="https://jobs.example.com/1", company="Acme"))
    assert plan.steps[0].params["job_url"] == "https://jobs.example.com/1"
    assert plan.steps[0].params["company"] == "Acme"
    assert validate_plan(plan).valid


def test_prompt_messages_include_catalog_and_context():
    messages = create_plan_generator_messages(
        IntentType.FLIGHT_SEARCH, {"from": "BOM"}, {"home_city": "Mumbai"}, current_date=date(2025, 1, 2)
    )
    assert messages[0]["role"] == "system"
    assert "**search_flights**" in messages[0]["content"]
    assert "Current date: 2025-01-02" in messages[1]["content"]
    assert "Home city" in messages[1]["content"]
    assert "from, to, date" in render_tool_catalog()


# ---------------------------------------------------------------------------
# PlanGenerator
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_intent_gives_empty_plan():
    provider = FakeProvider()
    plan = await PlanGenerator(provider=provider).generate(_classification("unknown"))
    assert plan.steps == []
    assert provider.calls == []


@pytest.mark.asyncio
async def test_template_skips_llm():
    provider = FakeProvider()
    plan = await PlanGenerator(provider=provider).generate(_classification("calculate", expression="2+2"))
    assert plan.steps[0].params == {"expression": "2+2"}
    assert provider.calls == []


@pytest.mark.asyncio
async def test_no_provider_uses_fallback():
    plan = await PlanGenerator().generate(_classification("fill_form", url="https://forms.example.com"))
    assert [s.tool_name for s in plan.steps] == ["fill_form", "check_completion"]


@pytest.mark.asyncio
async def test_llm_plan_from_function_call():
    provider = FakeProvider(_call(SEARCH_PLAN))
    plan = await PlanGenerator(provider=provider).generate(_classification("flight_search", **{"from": "BOM"}))

    assert plan.steps[0].params["from"] == "BOM"
    assert provider.calls[0]["functions"] == [GENERATE_PLAN_FUNCTION]


@pytest.mark.asyncio
async def test_llm_plan_from_fenced_text():
    provider = FakeProvider(Completion(text=f"```json\n{json.dumps(SEARCH_PLAN)}\n```"))
    plan = await PlanGenerator(provider=provider).generate(_classification("flight_search"))
    assert [s.id for s in plan.steps] == ["step_1", "step_2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    Completion(text="I cannot do that"),
    RuntimeError("provider down"),
    _call({"intent": "flight_search", "steps": [{"id": "step_1", "tool": "teleport", "params": {}}]}),
])
async def test_bad_llm_output_falls_back(response):
    plan = await PlanGenerator(provider=FakeProvider(response)).generate(
        _classification("flight_search", **{"from": "BOM", "to": "DEL"})
    )
    assert [s.tool_name for s in plan.steps] == ["search_flights", "validate_results"]
    assert plan.steps[0].params["from"] == "BOM"


@pytest.mark.asyncio
async def test_generate_title():
    generator = PlanGenerator(provider=FakeProvider(Completion(text='"Book Mumbai flight"')))
    assert await generator.generate_title("please book me a flight to Mumbai") == "Book Mumbai flight"


@pytest.mark.asyncio
async def test_generate_title_falls_back_to_intent_text():
    long_text = "x" * 150
    assert await PlanGenerator().generate_title(long_text) == "x" * 100

    failing = PlanGenerator(provider=FakeProvider(RuntimeError("down"), Completion(text="  ")))
    assert await failing.generate_title("check the weather") == "check the weather"
    assert await failing.generate_title("check the weather") == "check the weather"
