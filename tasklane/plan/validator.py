"""Static plan checks run before a plan is accepted."""

from __future__ import annotations

from typing import Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from tasklane.plan.schema import Plan
from tasklane.tools.definitions import (
    BOOKING_TOOLS,
    EVIDENCE_TOOLS,
    TOOL_DEFINITIONS,
    VERIFICATION_TOOLS,
    ToolDefinition,
)

EMPTY_PLAN = "EMPTY_PLAN"
INVALID_TOOL = "INVALID_TOOL"
INVALID_PARAMS = "INVALID_PARAMS"
INVALID_DEPENDENCY = "INVALID_DEPENDENCY"
CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
DUPLICATE_STEP_ID = "DUPLICATE_STEP_ID"


class ValidationIssue(BaseModel):
    step_id: str | None = None
    code: str
    message: str
    severity: Literal["error", "warning"] = "error"


class PlanValidationResult(BaseModel):
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def validate_plan(
    plan: Plan,
    definitions: Mapping[str, ToolDefinition] = TOOL_DEFINITIONS,
) -> PlanValidationResult:
    """Check a plan against the tool catalog.

    Pure: the same plan always yields the same result. Only direct two-step
    cycles are detected; longer cycles surface at run time as failed
    dependency checks.
    """
    if not plan.steps:
        return PlanValidationResult(
            valid=False,
            errors=[ValidationIssue(code=EMPTY_PLAN, message="Plan must have at least one step")],
        )

    errors: list[ValidationIssue] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    position = {}
    for index, step in enumerate(plan.steps):
        position.setdefault(step.id, index)
    by_id = {step.id: step for step in reversed(plan.steps)}

    for index, step in enumerate(plan.steps):
        step_id = step.id

        if position[step_id] != index:
            errors.append(ValidationIssue(
                step_id=step_id,
                code=DUPLICATE_STEP_ID,
                message=f'Step id "{step_id}" is used more than once',
            ))

        definition = definitions.get(step.tool_name)
        if definition is None:
            errors.append(ValidationIssue(
                step_id=step_id,
                code=INVALID_TOOL,
                message=f'Tool "{step.tool_name}" is not registered',
            ))
            continue

        try:
            definition.parameter_schema.model_validate(step.params)
        except ValidationError as e:
            errors.append(ValidationIssue(
                step_id=step_id,
                code=INVALID_PARAMS,
                message=f'Invalid parameters for tool "{step.tool_name}": {_format_validation_error(e)}',
            ))

        for dep_id in step.depends_on:
            dep = by_id.get(dep_id)
            if dep is None:
                errors.append(ValidationIssue(
                    step_id=step_id,
                    code=INVALID_DEPENDENCY,
                    message=f'Dependency "{dep_id}" does not exist',
                ))
                continue
            if step_id in dep.depends_on:
                errors.append(ValidationIssue(
                    step_id=step_id,
                    code=CIRCULAR_DEPENDENCY,
                    message=f'Circular dependency detected between "{step_id}" and "{dep_id}"',
                ))
            elif position[dep_id] > index:
                warnings.append(
                    f'Step "{step_id}" depends on "{dep_id}", which runs later; the dependency check will fail'
                )

        if definition.requires_auth:
            warnings.append(f'Step "{step_id}" requires authentication')

    tools_used = {step.tool_name for step in plan.steps}
    if len(plan.steps) > 1 and not tools_used & VERIFICATION_TOOLS:
        warnings.append("Plan has no validation steps - consider adding verification")
    if tools_used & BOOKING_TOOLS and not tools_used & EVIDENCE_TOOLS:
        suggestions.append("Consider adding a screenshot step for confirmation")

    return PlanValidationResult(
        valid=not any(e.severity == "error" for e in errors),
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )


class PlanValidator:
    """validate_plan bound to a particular tool catalog."""

    def __init__(self, definitions: Mapping[str, ToolDefinition] | None = None):
        self.definitions = definitions if definitions is not None else TOOL_DEFINITIONS

    def validate(self, plan: Plan) -> PlanValidationResult:
        return validate_plan(plan, self.definitions)
