"""Test the tool catalog, registry, BaseToolHandler and built-in handlers."""

import httpx
import pytest

from tasklane.errors import HandlerNotFoundError, ToolErrorCode, ToolExecutionError
from tasklane.models import ExecutionContext, success_result
from tasklane.tools.base import BaseToolHandler
from tasklane.tools.definitions import ALL_TOOLS, TOOL_DEFINITIONS, ToolName, get_definition
from tasklane.tools.handlers import (
    CalculateHandler,
    CheckCompletionHandler,
    GetWeatherHandler,
    ValidateResultsHandler,
    VerifyBookingHandler,
    evaluate_expression,
)
from tasklane.tools.registry import HandlerRegistry
from tasklane.tools.setup import create_default_registry

from conftest import ScriptedHandler, failure


def _ctx(**results):
    return ExecutionContext(user_id="user-1", previous_step_results=dict(results))


# ---------------------------------------------------------------------------
# Catalog & registry
# ---------------------------------------------------------------------------


def test_catalog_covers_every_tool_name():
    assert len(ALL_TOOLS) == 19
    assert set(TOOL_DEFINITIONS) == {t.value for t in ToolName}
    assert get_definition("book_flight").requires_auth
    assert get_definition("teleport") is None


def test_definition_to_dict_has_json_schema():
    d = get_definition("get_weather").to_dict()
    assert d["category"] == "utility"
    assert "location" in d["parameters"]["properties"]
    assert "location" in d["parameters"]["required"]


def test_registry_register_and_lookup():
    registry = HandlerRegistry()
    a = ScriptedHandler("a")
    registry.register(a)
    assert registry.get_handler("a") is a
    assert "a" in registry
    assert registry.get_handler("b") is None
    with pytest.raises(HandlerNotFoundError):
        registry.get_handler_or_raise("b")


def test_registry_overwrites_same_name():
    registry = HandlerRegistry()
    first, second = ScriptedHandler("a"), ScriptedHandler("a")
    registry.register_all([first, second])
    assert len(registry) == 1
    assert registry.get_handler("a") is second

    registry.clear()
    assert registry.names() == []


def test_default_registry_has_builtin_handlers():
    registry = create_default_registry()
    assert sorted(registry.names()) == sorted([
        "get_weather", "calculate", "validate_results", "check_completion", "verify_booking",
    ])


# ---------------------------------------------------------------------------
# BaseToolHandler
# ---------------------------------------------------------------------------


class RaisingHandler(BaseToolHandler):
    name = ToolName.NAVIGATE_TO.value

    def __init__(self, error):
        super().__init__()
        self.error = error

    async def execute_impl(self, params, context):
        raise self.error


@pytest.mark.asyncio
async def test_invalid_params_are_rejected_before_execution():
    result = await CalculateHandler().execute({}, _ctx())
    assert not result.success
    assert result.error.code == ToolErrorCode.INVALID_PARAMS
    assert not result.error.retryable


@pytest.mark.asyncio
async def test_dry_run_skips_execution():
    handler = RaisingHandler(RuntimeError("should not run"))
    ctx = ExecutionContext(user_id="u", dry_run=True, step_id="s1")
    result = await handler.execute({"url": "https://example.com"}, ctx)
    assert result.success
    assert result.data == {"dry_run": True, "params": {"url": "https://example.com"}}
    assert result.metadata.step_id == "s1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,code,retryable",
    [
        (ToolExecutionError(ToolErrorCode.BROWSER_ERROR, "crashed"), ToolErrorCode.BROWSER_ERROR, False),
        (httpx.ConnectError("refused"), ToolErrorCode.NETWORK_ERROR, True),
        (httpx.ReadTimeout("slow"), ToolErrorCode.TIMEOUT, True),
        (RuntimeError("Element not found on page"), ToolErrorCode.RESOURCE_NOT_FOUND, False),
        (RuntimeError("something odd"), ToolErrorCode.EXECUTION_ERROR, False),
    ],
)
async def test_exceptions_are_classified(error, code, retryable):
    result = await RaisingHandler(error).execute({"url": "https://example.com"}, _ctx())
    assert not result.success
    assert result.error.code == code
    assert result.error.retryable is retryable


@pytest.mark.parametrize("status,code", [
    (429, ToolErrorCode.RATE_LIMIT),
    (401, ToolErrorCode.AUTH_REQUIRED),
    (404, ToolErrorCode.RESOURCE_NOT_FOUND),
    (502, ToolErrorCode.EXTERNAL_API_ERROR),
])
def test_http_status_classification(status, code):
    request = httpx.Request("GET", "https://api.example.com")
    response = httpx.Response(status, request=request)
    error = httpx.HTTPStatusError("bad status", request=request, response=response)
    assert RaisingHandler(error).classify_error(error) == code


def test_auth_tools_need_a_user():
    class Booker(RaisingHandler):
        name = ToolName.BOOK_FLIGHT.value

    handler = Booker(RuntimeError())
    assert handler.supports_context(ExecutionContext(user_id="u"))
    assert not handler.supports_context(ExecutionContext(user_id=""))


# ---------------------------------------------------------------------------
# Utility handlers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("expr,expected", [
    ("10 * 5 + 3", 53),
    ("2 ^ 10", 1024),
    ("-(4 - 6) / 4", 0.5),
    ("7 // 2 + 7 % 2", 4),
])
def test_evaluate_expression(expr, expected):
    assert evaluate_expression(expr) == expected


@pytest.mark.parametrize("expr", ["__import__('os')", "a + 1", "2 ** 1000", "1 +"])
def test_evaluate_expression_rejects(expr):
    with pytest.raises(ValueError):
        evaluate_expression(expr)


@pytest.mark.asyncio
async def test_calculate_handler():
    result = await CalculateHandler().execute({"expression": "3 * (2 + 1)"}, _ctx())
    assert result.success
    assert result.data == {"expression": "3 * (2 + 1)", "result": 9}

    result = await CalculateHandler().execute({"expression": "1 / 0"}, _ctx())
    assert result.error.code == ToolErrorCode.VALIDATION_ERROR


def _weather_transport(places):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "geocoding-api.open-meteo.com":
            return httpx.Response(200, json={"results": places})
        assert request.url.params["temperature_unit"] == "celsius"
        return httpx.Response(200, json={"current": {
            "temperature_2m": 18.5, "relative_humidity_2m": 60, "wind_speed_10m": 12, "weather_code": 2,
        }})
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_weather_handler():
    places = [{"name": "Oslo", "latitude": 59.9, "longitude": 10.7}]
    async with httpx.AsyncClient(transport=_weather_transport(places)) as client:
        result = await GetWeatherHandler(client=client).execute({"location": "Oslo"}, _ctx())

    assert result.success
    assert result.data["temperature"] == 18.5
    assert result.data["condition"] == "Partly cloudy"
    assert result.data["units"] == "°C"


@pytest.mark.asyncio
async def test_weather_unknown_location():
    async with httpx.AsyncClient(transport=_weather_transport([])) as client:
        result = await GetWeatherHandler(client=client).execute({"location": "Atlantis"}, _ctx())

    assert result.error.code == ToolErrorCode.RESOURCE_NOT_FOUND
    assert "Atlantis" in result.error.message


# ---------------------------------------------------------------------------
# Verification handlers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_validate_results_passes():
    ctx = _ctx(step_1=success_result({"flights": [1, 2]}, "search_flights"))
    result = await ValidateResultsHandler().execute({"step_id": "step_1", "min_results": 2}, ctx)
    assert result.success
    assert result.data["valid"]
    assert [c["type"] for c in result.data["checks"]] == ["step_success", "min_results"]


@pytest.mark.asyncio
async def test_validate_results_too_few():
    ctx = _ctx(step_1=success_result([], "search_jobs"))
    result = await ValidateResultsHandler().execute({"step_id": "step_1", "min_results": 1}, ctx)
    assert not result.success
    assert result.error.code == ToolErrorCode.VALIDATION_ERROR
    assert "does not meet minimum" in result.error.message

    relaxed = await ValidateResultsHandler().execute({"step_id": "step_1", "min_results": 1, "required": False}, ctx)
    assert relaxed.success
    assert relaxed.data["valid"] is False


@pytest.mark.asyncio
async def test_validate_results_defaults_to_last_step():
    ctx = _ctx(a=success_result(1, "x"), b=failure(ToolErrorCode.TIMEOUT, "late"))
    result = await ValidateResultsHandler().execute({"required": False}, ctx)
    assert result.data["step_id"] == "b"
    assert not result.data["valid"]

    empty = await ValidateResultsHandler().execute({}, _ctx())
    assert empty.data["checks"][0]["type"] == "general"


@pytest.mark.asyncio
async def test_validate_results_unknown_step():
    result = await ValidateResultsHandler().execute({"step_id": "ghost"}, _ctx())
    assert result.error.code == ToolErrorCode.RESOURCE_NOT_FOUND


@pytest.mark.asyncio
async def test_check_completion():
    ok = _ctx(step_1=success_result({}, "fill_form"))
    result = await CheckCompletionHandler().execute({"expected_outcome": "Form submitted"}, ok)
    assert result.success
    assert result.data["checked_steps"] == ["step_1"]

    bad = _ctx(step_1=failure(ToolErrorCode.BROWSER_ERROR))
    result = await CheckCompletionHandler().execute({"expected_outcome": "Form submitted", "step_id": "step_1"}, bad)
    assert result.error.code == ToolErrorCode.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_verify_booking():
    ctx = _ctx(step_1=success_result({"confirmation_number": "ABC123", "pnr": ""}, "book_flight"))

    ok = await VerifyBookingHandler().execute(
        {"booking_type": "flight", "confirmation_required": ["confirmation_number"]}, ctx
    )
    assert ok.success
    assert ok.data["confirmation"] == {"confirmation_number": "ABC123"}

    missing = await VerifyBookingHandler().execute(
        {"booking_type": "flight", "confirmation_required": ["confirmation_number", "pnr"]}, ctx
    )
    assert missing.error.code == ToolErrorCode.VALIDATION_ERROR
    assert "missing pnr" in missing.error.message


@pytest.mark.asyncio
async def test_verify_booking_without_steps():
    result = await VerifyBookingHandler().execute({"booking_type": "hotel"}, _ctx())
    assert result.error.code == ToolErrorCode.RESOURCE_NOT_FOUND
