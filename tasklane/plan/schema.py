"""Plan-side data models: intents, steps and plans."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class IntentType(str, Enum):
    """Closed set of intents the upstream classifier can produce."""
    GET_WEATHER = "get_weather"
    CALCULATE = "calculate"
    FLIGHT_SEARCH = "flight_search"
    BOOK_FLIGHT = "book_flight"
    APPLY_JOB = "apply_job"
    FILL_FORM = "fill_form"
    POST_SOCIAL = "post_social"
    BROWSER_ACTION = "browser_action"
    UNKNOWN = "unknown"


class IntentClassification(BaseModel):
    """Output of the external classifier. Immutable once created."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    intent_type: IntentType = Field(validation_alias=AliasChoices("intent_type", "intent"))
    params: dict[str, Any] = Field(default_factory=dict)
    confidence: float | None = Field(default=None, ge=0, le=1)
    missing_fields: list[str] | None = Field(
        default=None, validation_alias=AliasChoices("missing_fields", "missingFields")
    )


class Step(BaseModel):
    """One planned tool invocation."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = None
    tool_name: str = Field(validation_alias=AliasChoices("tool_name", "tool"))
    params: dict[str, Any] = Field(default_factory=dict)
    description: str | None = None
    depends_on: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("depends_on", "dependsOn")
    )
    optional: bool = False
    retryable: bool = True
    max_retries: int = Field(default=3, ge=0, validation_alias=AliasChoices("max_retries", "maxRetries"))


class PlanMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    complexity: Literal["simple", "moderate", "complex"] = "moderate"
    total_steps: int = Field(default=0, validation_alias=AliasChoices("total_steps", "totalSteps"))
    requires_user_input: bool = Field(
        default=False, validation_alias=AliasChoices("requires_user_input", "requiresUserInput")
    )
    estimated_duration_seconds: float | None = Field(
        default=None,
        validation_alias=AliasChoices("estimated_duration_seconds", "estimatedDuration"),
    )


class Plan(BaseModel):
    """An ordered list of steps for one intent.

    Steps without an id get ``step_<n>`` (1-based position) and
    ``metadata.total_steps`` always equals ``len(steps)``.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    intent_type: IntentType = Field(validation_alias=AliasChoices("intent_type", "intent"))
    steps: list[Step] = Field(default_factory=list)
    metadata: PlanMetadata = Field(default_factory=PlanMetadata)

    @model_validator(mode="before")
    @classmethod
    def _fill_step_ids(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        steps = []
        for index, step in enumerate(data.get("steps") or [], start=1):
            if isinstance(step, Step):
                if not step.id:
                    step = step.model_copy(update={"id": f"step_{index}"})
            elif isinstance(step, dict):
                step = dict(step)
                if not step.get("id"):
                    step["id"] = f"step_{index}"
            steps.append(step)
        data["steps"] = steps

        metadata = data.get("metadata") or {}
        if isinstance(metadata, PlanMetadata):
            metadata = metadata.model_copy(update={"total_steps": len(steps)})
        else:
            metadata = {**metadata, "total_steps": len(steps)}
            metadata.pop("totalSteps", None)
        data["metadata"] = metadata
        return data

    def get_step(self, step_id: str) -> Step | None:
        return next((s for s in self.steps if s.id == step_id), None)

    def describe(self) -> str:
        """Human-readable one-line-per-step summary."""
        lines = [f"{i}. {s.description or s.tool_name}" for i, s in enumerate(self.steps, start=1)]
        return f"Plan for {self.intent_type.value} ({len(self.steps)} steps):\n" + "\n".join(lines)


def empty_plan(intent_type: IntentType) -> Plan:
    return Plan(intent_type=intent_type, steps=[], metadata={"complexity": "simple"})
