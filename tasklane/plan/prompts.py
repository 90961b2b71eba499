"""Prompt text and the structured-call schema for plan generation."""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from tasklane.plan.schema import IntentType
from tasklane.providers.base import FunctionDef
from tasklane.tools.definitions import ALL_TOOLS, ToolDefinition

_CATEGORY_TITLES = {
    "utility": "Utility Tools",
    "flight": "Flight Tools",
    "job": "Job Tools",
    "form": "Form Tools",
    "social": "Social Media Tools",
    "browser": "Browser Tools",
    "validation": "Validation Tools",
}


def _param_names(definition: ToolDefinition) -> str:
    fields = definition.parameter_schema.model_fields
    return ", ".join(f.alias or name for name, f in fields.items())


def render_tool_catalog(tools: list[ToolDefinition] = ALL_TOOLS) -> str:
    sections: dict[str, list[str]] = {}
    for t in tools:
        sections.setdefault(t.category, []).append(
            f"- **{t.name}**: {t.description} (params: {_param_names(t)})"
        )
    parts = []
    for category, lines in sections.items():
        parts.append(f"### {_CATEGORY_TITLES.get(category, category.title())}\n" + "\n".join(lines))
    return "\n\n".join(parts)


PLAN_GENERATOR_SYSTEM_PROMPT = """\
You are a Plan Generator for an autonomous agent.

Your job is to convert a classified user intent into a deterministic, executable multi-step plan.

## Available Tools

{tool_catalog}

## Plan Generation Rules

1. **Deterministic**: Same intent should produce the same plan structure
2. **Safe**: Only use tools from the list above, with parameters matching their schema
3. **Ordered**: Steps run strictly in list order; a step may only depend on earlier steps
4. **Dependencies**: Use `depends_on` for steps that need previous results
5. **Validation**: Include a validation step after critical actions
6. **Evidence**: Add a take_screenshot step after bookings, applications and posts
7. **Error Handling**: Mark optional steps, set `retryable` and `max_retries`
8. **User Context**: Pre-fill parameters from the user profile when possible

## Output Format

Respond with a single JSON object:

```json
{{
  "intent": "flight_search",
  "steps": [
    {{
      "id": "step_1",
      "tool": "search_flights",
      "params": {{"from": "BOM", "to": "DEL", "date": "2025-12-25", "passengers": 2}},
      "description": "Search for flights from Mumbai to Delhi",
      "optional": false,
      "retryable": true,
      "max_retries": 3
    }},
    {{
      "id": "step_2",
      "tool": "validate_results",
      "params": {{"step_id": "step_1", "min_results": 1, "required": true}},
      "description": "Ensure flight search returned results",
      "depends_on": ["step_1"]
    }}
  ],
  "metadata": {{"complexity": "simple", "requires_user_input": false, "estimated_duration_seconds": 30}}
}}
```

Keep plans as small as possible. For OTP/CAPTCHA flows set requires_user_input to true.
Return ONLY the JSON plan object. No additional text or explanation."""


def create_plan_generator_messages(
    intent_type: IntentType,
    params: dict[str, Any],
    user_profile: dict[str, Any] | None = None,
    current_date: date | None = None,
) -> list[dict]:
    context_parts = [
        f"Intent: {intent_type.value}",
        f"Parameters: {json.dumps(params, indent=2, default=str)}",
        f"Current date: {(current_date or date.today()).isoformat()}",
    ]
    for key, value in (user_profile or {}).items():
        if value:
            context_parts.append(f"{key.replace('_', ' ').capitalize()}: {json.dumps(value, indent=2, default=str)}")

    return [
        {"role": "system", "content": PLAN_GENERATOR_SYSTEM_PROMPT.format(tool_catalog=render_tool_catalog())},
        {"role": "user", "content": "Generate an execution plan for the following:\n\n" + "\n\n".join(context_parts)},
    ]


GENERATE_PLAN_FUNCTION = FunctionDef(
    name="generate_plan",
    description="Generate a multi-step execution plan from a classified intent",
    parameters={
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": [i.value for i in IntentType],
                "description": "The classified intent type",
            },
            "steps": {
                "type": "array",
                "description": "Ordered list of execution steps",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "Unique step identifier (step_1, step_2, ...)"},
                        "tool": {
                            "type": "string",
                            "enum": [t.name for t in ALL_TOOLS],
                            "description": "Tool to execute",
                        },
                        "params": {"type": "object", "description": "Tool-specific parameters"},
                        "description": {"type": "string"},
                        "depends_on": {"type": "array", "items": {"type": "string"}},
                        "optional": {"type": "boolean", "default": False},
                        "retryable": {"type": "boolean", "default": True},
                        "max_retries": {"type": "integer", "default": 3},
                    },
                    "required": ["id", "tool", "params"],
                },
            },
            "metadata": {
                "type": "object",
                "properties": {
                    "complexity": {"type": "string", "enum": ["simple", "moderate", "complex"]},
                    "requires_user_input": {"type": "boolean"},
                    "estimated_duration_seconds": {"type": "number"},
                },
            },
        },
        "required": ["intent", "steps"],
    },
)

TITLE_SYSTEM_PROMPT = "You generate concise task titles."


def create_title_messages(intent_text: str) -> list[dict]:
    return [
        {"role": "system", "content": TITLE_SYSTEM_PROMPT},
        {"role": "user", "content": f'Generate a concise task title (max 8 words) for this intent:\n\n"{intent_text}"\n\nTitle:'},
    ]
