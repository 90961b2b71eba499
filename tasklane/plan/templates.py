"""Deterministic plans: templates for simple intents, fallbacks for the rest."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from tasklane.plan.schema import IntentClassification, IntentType, Plan, empty_plan
from tasklane.tools.definitions import ToolName

logger = logging.getLogger(__name__)


def _param(params: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present value among snake_case and camelCase spellings."""
    for key in keys:
        if params.get(key) is not None:
            return params[key]
    return default


def _screenshot_step(depends_on: str, description: str = "Capture confirmation", full_page: bool = True) -> dict:
    return {
        "id": "step_2",
        "tool": ToolName.TAKE_SCREENSHOT.value,
        "params": {"full_page": True} if full_page else {},
        "description": description,
        "depends_on": [depends_on],
    }


def template_plan(classification: IntentClassification) -> Plan | None:
    """Single-step plans for utility intents; None for everything else."""
    intent, params = classification.intent_type, classification.params

    if intent == IntentType.GET_WEATHER:
        return Plan(
            intent_type=intent,
            steps=[{
                "id": "step_1",
                "tool": ToolName.GET_WEATHER.value,
                "params": {
                    "location": _param(params, "location", default=""),
                    "units": _param(params, "units", default="celsius"),
                },
                "description": "Get current weather information",
            }],
            metadata={"complexity": "simple"},
        )
    if intent == IntentType.CALCULATE:
        return Plan(
            intent_type=intent,
            steps=[{
                "id": "step_1",
                "tool": ToolName.CALCULATE.value,
                "params": {"expression": _param(params, "expression", default="0")},
                "description": "Perform calculation",
            }],
            metadata={"complexity": "simple"},
        )
    return None


def fallback_plan(classification: IntentClassification) -> Plan:
    """Two-step action-plus-evidence plans; empty plan for unrecognized intents."""
    intent, params = classification.intent_type, classification.params
    logger.warning(f"Using fallback plan for intent: {intent.value}")

    if intent == IntentType.FLIGHT_SEARCH:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.SEARCH_FLIGHTS.value,
                "params": {
                    "from": _param(params, "from", "origin", default=""),
                    "to": _param(params, "to", "destination", default=""),
                    "date": _param(params, "date", default=date.today().isoformat()),
                    "passengers": _param(params, "passengers", default=1),
                    "class": _param(params, "class", "cabin_class", default="economy"),
                },
                "description": "Search for flights",
                "retryable": True,
                "max_retries": 3,
            },
            {
                "id": "step_2",
                "tool": ToolName.VALIDATE_RESULTS.value,
                "params": {"step_id": "step_1", "min_results": 1},
                "description": "Validate search results",
                "depends_on": ["step_1"],
            },
        ]
        return Plan(intent_type=intent, steps=steps, metadata={"complexity": "simple"})

    if intent == IntentType.BOOK_FLIGHT:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.BOOK_FLIGHT.value,
                "params": {
                    "flight_option_id": _param(params, "flight_option_id", "flightOptionId", default=""),
                    "passengers": _param(params, "passengers", default=[]),
                },
                "description": "Book flight",
                "max_retries": 2,
            },
            _screenshot_step("step_1"),
        ]
        return Plan(intent_type=intent, steps=steps,
                    metadata={"complexity": "moderate", "requires_user_input": True})

    if intent == IntentType.APPLY_JOB:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.APPLY_JOB.value,
                "params": {
                    "job_url": _param(params, "job_url", "jobUrl", default=""),
                    "job_title": _param(params, "job_title", "jobTitle"),
                    "company": _param(params, "company"),
                    "resume_id": _param(params, "resume_id", "resumeId"),
                },
                "description": "Apply to job",
                "max_retries": 2,
            },
            _screenshot_step("step_1"),
        ]
        return Plan(intent_type=intent, steps=steps, metadata={"complexity": "moderate"})

    if intent == IntentType.FILL_FORM:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.FILL_FORM.value,
                "params": {
                    "url": _param(params, "url", default=""),
                    "fields": _param(params, "fields", default={}),
                    "submit_form": True,
                },
                "description": "Fill form",
                "max_retries": 2,
            },
            {
                "id": "step_2",
                "tool": ToolName.CHECK_COMPLETION.value,
                "params": {"expected_outcome": "Form submitted", "screenshot": True, "step_id": "step_1"},
                "description": "Verify submission",
                "depends_on": ["step_1"],
            },
        ]
        return Plan(intent_type=intent, steps=steps,
                    metadata={"complexity": "moderate", "requires_user_input": True})

    if intent == IntentType.POST_SOCIAL:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.POST_SOCIAL.value,
                "params": {
                    "platform": _param(params, "platform", default="instagram"),
                    "caption": _param(params, "caption", default=""),
                    "media_ids": _param(params, "media_ids", "mediaIds", default=[]),
                },
                "description": "Post to social media",
                "max_retries": 2,
            },
            _screenshot_step("step_1", full_page=False),
        ]
        return Plan(intent_type=intent, steps=steps, metadata={"complexity": "simple"})

    if intent == IntentType.BROWSER_ACTION:
        steps = [
            {
                "id": "step_1",
                "tool": ToolName.BROWSER_ACTION.value,
                "params": {
                    "url": _param(params, "url"),
                    "description": _param(params, "description"),
                    "steps": _param(params, "steps", default=[]),
                },
                "description": "Execute browser actions",
                "max_retries": 2,
            },
            _screenshot_step("step_1", description="Capture final state"),
        ]
        return Plan(intent_type=intent, steps=steps, metadata={"complexity": "complex"})

    return empty_plan(intent)
