"""Built-in tool handlers: utility and verification tools.

Booking, form, social and browser tools live with their integrations and are
registered alongside these at startup.
"""

from __future__ import annotations

import ast
import operator
from typing import TYPE_CHECKING, Any

import httpx

from tasklane.errors import ToolErrorCode, ToolExecutionError
from tasklane.tools.base import BaseToolHandler
from tasklane.tools.definitions import (
    CalculateParams,
    CheckCompletionParams,
    GetWeatherParams,
    ToolName,
    ValidateResultsParams,
    VerifyBookingParams,
)

if TYPE_CHECKING:
    from tasklane.models import ExecutionContext, ToolResult

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather interpretation codes (subset)
_WEATHER_CODES = {
    0: "Clear", 1: "Mainly clear", 2: "Partly cloudy", 3: "Overcast",
    45: "Fog", 48: "Fog", 51: "Drizzle", 53: "Drizzle", 55: "Drizzle",
    61: "Rain", 63: "Rain", 65: "Heavy rain", 71: "Snow", 73: "Snow",
    75: "Heavy snow", 80: "Rain showers", 81: "Rain showers", 82: "Rain showers",
    95: "Thunderstorm", 96: "Thunderstorm", 99: "Thunderstorm",
}


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------


class GetWeatherHandler(BaseToolHandler):
    """Current weather from Open-Meteo (no API key needed)."""

    name = ToolName.GET_WEATHER.value

    def __init__(self, client: httpx.AsyncClient | None = None):
        super().__init__()
        self._client = client

    async def execute_impl(self, params: GetWeatherParams, context: ExecutionContext) -> dict:
        if self._client is not None:
            return await self._fetch(self._client, params)
        async with httpx.AsyncClient(timeout=10.0) as client:
            return await self._fetch(client, params)

    async def _fetch(self, client: httpx.AsyncClient, params: GetWeatherParams) -> dict:
        geo = await client.get(GEOCODING_URL, params={"name": params.location, "count": 1})
        geo.raise_for_status()
        places = geo.json().get("results") or []
        if not places:
            raise ToolExecutionError(
                ToolErrorCode.RESOURCE_NOT_FOUND,
                f"Location not found: {params.location}",
                {"location": params.location},
            )
        place = places[0]

        forecast = await client.get(FORECAST_URL, params={
            "latitude": place["latitude"],
            "longitude": place["longitude"],
            "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
            "temperature_unit": params.units,
        })
        forecast.raise_for_status()
        current = forecast.json().get("current", {})

        unit = "°C" if params.units == "celsius" else "°F"
        condition = _WEATHER_CODES.get(current.get("weather_code"), "Unknown")
        return {
            "location": place.get("name", params.location),
            "temperature": current.get("temperature_2m"),
            "units": unit,
            "condition": condition,
            "humidity": current.get("relative_humidity_2m"),
            "wind_speed": current.get("wind_speed_10m"),
            "description": f"Current weather in {params.location}: {condition}, {current.get('temperature_2m')}{unit}",
        }


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def evaluate_expression(expression: str) -> float | int:
    """Evaluate plain arithmetic. Names, calls and attributes are rejected."""

    def _eval(node: ast.AST) -> float | int:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left, right = _eval(node.left), _eval(node.right)
            if isinstance(node.op, ast.Pow) and abs(right) > 100:
                raise ValueError("Exponent too large")
            return _BINARY_OPS[type(node.op)](left, right)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported expression element: {type(node).__name__}")

    try:
        tree = ast.parse(expression.replace("^", "**"), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression}") from e
    return _eval(tree)


class CalculateHandler(BaseToolHandler):
    name = ToolName.CALCULATE.value

    async def execute_impl(self, params: CalculateParams, context: ExecutionContext) -> dict:
        try:
            value = evaluate_expression(params.expression)
        except (ValueError, ZeroDivisionError, OverflowError) as e:
            raise ToolExecutionError(
                ToolErrorCode.VALIDATION_ERROR,
                f"Cannot evaluate '{params.expression}': {e}",
                {"expression": params.expression},
            ) from e
        return {"expression": params.expression, "result": value}


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def _lookup_step(context: ExecutionContext, step_id: str) -> ToolResult:
    result = context.previous_step_results.get(step_id)
    if result is None:
        raise ToolExecutionError(
            ToolErrorCode.RESOURCE_NOT_FOUND,
            f"Step {step_id} not found in previous results",
            {"step_id": step_id},
        )
    return result


def _count_results(data: Any) -> int:
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        for key in ("results", "flights", "jobs", "items"):
            if isinstance(data.get(key), list):
                return len(data[key])
    return 0


class ValidateResultsHandler(BaseToolHandler):
    name = ToolName.VALIDATE_RESULTS.value

    async def execute_impl(self, params: ValidateResultsParams, context: ExecutionContext) -> dict:
        checks: list[dict] = []
        step_id = params.step_id or _last_step_id(context)

        if step_id:
            result = _lookup_step(context, step_id)
            checks.append({"type": "step_success", "passed": result.success,
                           "message": f"Step {step_id} {'succeeded' if result.success else 'failed'}"})
            if params.min_results is not None:
                count = _count_results(result.data)
                meets = count >= params.min_results
                checks.append({
                    "type": "min_results",
                    "passed": meets,
                    "message": f"Result count ({count}) {'meets' if meets else 'does not meet'} minimum ({params.min_results})",
                })
        else:
            checks.append({"type": "general", "passed": True, "message": "No previous results to validate"})

        valid = all(c["passed"] for c in checks)
        self.logger.info(f"Validation {'passed' if valid else 'failed'} - {len(checks)} checks")
        if not valid and params.required:
            raise ToolExecutionError(
                ToolErrorCode.VALIDATION_ERROR,
                "; ".join(c["message"] for c in checks if not c["passed"]),
                {"step_id": step_id, "checks": checks},
            )
        return {"valid": valid, "step_id": step_id, "checks": checks}


class CheckCompletionHandler(BaseToolHandler):
    name = ToolName.CHECK_COMPLETION.value

    async def execute_impl(self, params: CheckCompletionParams, context: ExecutionContext) -> dict:
        if params.step_id:
            completed = _lookup_step(context, params.step_id).success
        else:
            completed = all(r.success for r in context.previous_step_results.values())

        if not completed:
            raise ToolExecutionError(
                ToolErrorCode.VALIDATION_ERROR,
                f"Expected outcome not reached: {params.expected_outcome}",
                {"step_id": params.step_id},
            )
        return {
            "completed": True,
            "expected_outcome": params.expected_outcome,
            "checked_steps": [params.step_id] if params.step_id else list(context.previous_step_results),
        }


class VerifyBookingHandler(BaseToolHandler):
    name = ToolName.VERIFY_BOOKING.value

    async def execute_impl(self, params: VerifyBookingParams, context: ExecutionContext) -> dict:
        step_id = params.step_id or _last_step_id(context)
        if not step_id:
            raise ToolExecutionError(ToolErrorCode.RESOURCE_NOT_FOUND, "No booking step to verify")
        result = _lookup_step(context, step_id)
        data = result.data if isinstance(result.data, dict) else {}

        missing = [f for f in params.confirmation_required if not data.get(f)]
        if not result.success or missing:
            raise ToolExecutionError(
                ToolErrorCode.VALIDATION_ERROR,
                f"{params.booking_type} confirmation incomplete"
                + (f": missing {', '.join(missing)}" if missing else ""),
                {"step_id": step_id, "missing": missing},
            )
        return {
            "verified": True,
            "booking_type": params.booking_type,
            "step_id": step_id,
            "confirmation": {f: data.get(f) for f in params.confirmation_required},
        }


def _last_step_id(context: ExecutionContext) -> str | None:
    """Most recently recorded step in this run (dicts keep insertion order)."""
    return next(reversed(context.previous_step_results), None) if context.previous_step_results else None
