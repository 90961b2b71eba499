"""Plan generation: templates, LLM-generated plans, and fallbacks."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from tasklane import config
from tasklane.errors import PlanParseError
from tasklane.plan.prompts import GENERATE_PLAN_FUNCTION, create_plan_generator_messages, create_title_messages
from tasklane.plan.schema import IntentClassification, IntentType, Plan, empty_plan
from tasklane.plan.templates import fallback_plan, template_plan
from tasklane.plan.validator import PlanValidator
from tasklane.providers.base import Completion, CompletionProvider

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
MAX_TITLE_LENGTH = 100


def extract_json(text: str) -> Any:
    """Parse JSON from model text, unwrapping a markdown code fence if present."""
    match = _CODE_FENCE.search(text)
    payload = match.group(1).strip() if match else text.strip()
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise PlanParseError(f"Model output is not valid JSON: {e}") from e


def plan_from_completion(completion: Completion) -> Plan:
    """Turn a completion into a Plan. Function-call arguments win over text."""
    if completion.function_call is not None:
        try:
            raw = completion.function_call.parsed_arguments()
        except json.JSONDecodeError as e:
            raise PlanParseError(f"Function call arguments are not valid JSON: {e}") from e
    elif completion.text:
        logger.warning("No function call in LLM response, extracting JSON from message content")
        raw = extract_json(completion.text)
    else:
        raise PlanParseError("Completion has neither a function call nor text")

    if not isinstance(raw, dict):
        raise PlanParseError(f"Expected a JSON object, got {type(raw).__name__}")
    try:
        return Plan.model_validate(raw)
    except ValidationError as e:
        raise PlanParseError(f"Plan does not match schema: {e}") from e


class PlanGenerator:
    """Produces a plan for every classification. Never raises."""

    def __init__(
        self,
        provider: CompletionProvider | None = None,
        validator: PlanValidator | None = None,
        temperature: float = config.PLANNER_TEMPERATURE,
        max_tokens: int = config.PLANNER_MAX_TOKENS,
        timeout_ms: int = config.PLANNER_TIMEOUT_MS,
    ):
        self.provider = provider
        self.validator = validator or PlanValidator()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_ms = timeout_ms

    async def generate(self, classification: IntentClassification, user_profile: dict[str, Any] | None = None) -> Plan:
        intent = classification.intent_type
        logger.info(f"Generating plan for intent: {intent.value} with {len(classification.params)} params")

        if intent == IntentType.UNKNOWN:
            logger.warning("Cannot generate plan for unknown intent")
            return empty_plan(intent)

        template = template_plan(classification)
        if template is not None:
            logger.info(f"Using template plan for intent: {intent.value}")
            return template

        if self.provider is None:
            logger.warning("No completion provider configured")
            return fallback_plan(classification)

        try:
            completion = await self.provider.complete(
                create_plan_generator_messages(intent, classification.params, user_profile),
                functions=[GENERATE_PLAN_FUNCTION],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout_ms=self.timeout_ms,
            )
            plan = plan_from_completion(completion)
        except Exception as e:
            logger.error(f"Failed to generate plan: {e}", exc_info=True)
            return fallback_plan(classification)

        validation = self.validator.validate(plan)
        if not validation.valid:
            logger.error(f"Plan validation failed: {', '.join(e.message for e in validation.errors)}")
            return fallback_plan(classification)

        logger.info(f"Plan generated with {len(plan.steps)} steps (tokens: {sum(completion.usage.values())})")
        return plan

    async def generate_title(self, intent_text: str) -> str:
        """Short task title from the model, or the truncated intent text."""
        fallback = intent_text.strip()[:MAX_TITLE_LENGTH]
        if self.provider is None:
            return fallback
        try:
            completion = await self.provider.complete(
                create_title_messages(intent_text),
                temperature=self.temperature,
                max_tokens=50,
                timeout_ms=self.timeout_ms,
            )
        except Exception as e:
            logger.warning(f"Failed to generate title, using intent: {e}")
            return fallback
        title = (completion.text or "").strip().strip("\"'")
        return title[:MAX_TITLE_LENGTH] or fallback
