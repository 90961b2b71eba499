"""Plan schema, validation and generation."""

from tasklane.plan.schema import IntentClassification, IntentType, Plan, PlanMetadata, Step
from tasklane.plan.validator import PlanValidationResult, PlanValidator, validate_plan

__all__ = [
    "IntentClassification",
    "IntentType",
    "Plan",
    "PlanMetadata",
    "PlanValidationResult",
    "PlanValidator",
    "Step",
    "validate_plan",
]
