"""
Intent classification and scenario selection.

The classifier is advisory: any failure falls back to `general_plan`. The
scenario table is a pure function of the intent and the request.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from todoplan.models import INTENTS, MAX_TASKS, MIN_TASKS, IntentDecision, PlanRequest, PlanScenario

from .llm import LLMError, generate_json

logger = logging.getLogger(__name__)

INTENT_TEMPERATURE = 0.1
INTENT_MAX_TOKENS = 512

FALLBACK_DECISION = IntentDecision(intent="general_plan", summary="fallback")

INTENT_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["intent"],
    "properties": {
        "intent": {
            "type": "string",
            "enum": list(INTENTS),
            "description": "Detected scenario for the request.",
        },
        "summary": {
            "type": "string",
            "description": "Short rationale explaining the classification.",
        },
        "days": {
            "type": "integer",
            "minimum": 1,
            "maximum": 7,
            "description": "Number of days to cover when the plan spans multiple days (optional).",
        },
        "keywords": {
            "type": "array",
            "maxItems": 10,
            "items": {"type": "string"},
            "description": "Important entities (ingredients, deadlines, etc.) extracted from the request.",
        },
    },
}

INTENT_EXAMPLES = (
    'Example A: "Set an alarm for 7 AM tomorrow" -> intent: "single_reminder" '
    "(one precise action, even if it implies light prep).",
    'Example B: "Write the weekly report in the morning, meet the client in the afternoon, '
    'recap at night" -> intent: "multi_step_plan" (explicit multiple steps).',
    'Example C: "I have chicken breast and quinoa, plan lunches for the next three days" '
    '-> intent: "recipe_plan" (ingredients + multi-day meals).',
    'Example D: "Help me design a relaxed weekend schedule" -> intent: "general_plan" '
    "(open-ended planning).",
)


def build_intent_prompt(request: PlanRequest) -> str:
    """Build the classifier instruction with definitions and worked examples."""
    context = [
        f"Deadline hint: {request.due}." if request.due else "",
        f"Timezone: {request.timezone}." if request.timezone else "",
        f"Preferences: {request.preferences}." if request.preferences else "",
        f"Labels: {', '.join(request.labels)}" if request.labels else "",
    ]
    parts = [
        "You are an intent classifier for a Todoist planning assistant.",
        "Choose one of: single_reminder, multi_step_plan, recipe_plan, general_plan.",
        "Definitions:",
        "- single_reminder: the user describes exactly one obligation or reminder (often with a time) "
        "even if it implies preparation; do NOT expand implicit routines.",
        "- multi_step_plan: the user explicitly requests multiple actions, a schedule, or a breakdown of a period.",
        "- recipe_plan: the user references cooking, meals, menus, or provides ingredient lists to build menus.",
        "- general_plan: any other planning request that does not clearly match the categories above.",
        "Return JSON with fields intent, summary (why this intent fits), optional days "
        "(when multiple days are requested), and optional keywords (important entities).",
        " ".join(INTENT_EXAMPLES),
        f"User request: {request.prompt}",
        " ".join(part for part in context if part),
    ]
    return " ".join(part for part in parts if part)


async def classify_intent(llm: Any, request: PlanRequest, *, model: str | None = None) -> IntentDecision:
    """Classify the request; never raises."""
    try:
        payload = await generate_json(
            llm,
            build_intent_prompt(request),
            schema=INTENT_JSON_SCHEMA,
            schema_name="todoist_plan_intent",
            model=model,
            temperature=INTENT_TEMPERATURE,
            max_tokens=INTENT_MAX_TOKENS,
        )
        return IntentDecision.model_validate(payload)
    except (LLMError, ValidationError) as e:
        logger.warning("[intent] classification failed, falling back to general_plan: %s", e)
    except Exception:
        logger.warning("[intent] classification failed, falling back to general_plan", exc_info=True)
    return FALLBACK_DECISION


def clamp_tasks(value: int) -> int:
    return min(max(value, MIN_TASKS), MAX_TASKS)


def determine_scenario(decision: IntentDecision, request: PlanRequest) -> PlanScenario:
    """Map an intent to its task bound, directives and temperature."""
    if decision.intent == "single_reminder":
        return PlanScenario(
            intent="single_reminder",
            max_tasks=1,
            directives=(
                "Return exactly one Todoist task that mirrors the reminder wording.",
                "Do not invent extra subtasks or routines; stay literal to the request.",
            ),
            temperature=0.1,
        )

    if decision.intent == "recipe_plan":
        days = min(max(decision.days or 3, 1), 5)
        return PlanScenario(
            intent="recipe_plan",
            max_tasks=clamp_tasks(days * 2),
            directives=(
                f"Produce meal-prep tasks covering {days} day(s). "
                "Each task must mention the day and meal (Breakfast/Lunch/Dinner).",
                "Incorporate the provided ingredients creatively and avoid repeating the same dish twice in a row.",
                "Mention which ingredients are used inside the task description so the cook can verify coverage.",
            ),
            temperature=0.35,
        )

    if decision.intent == "multi_step_plan":
        return PlanScenario(
            intent="multi_step_plan",
            max_tasks=clamp_tasks(max(2, request.max_tasks)),
            directives=(
                "Break the day into distinct steps with clear sequencing or time anchors.",
                "Reference dependencies or prerequisites when relevant so the user can follow the workflow.",
            ),
            temperature=0.25,
        )

    return PlanScenario(
        intent="general_plan",
        max_tasks=clamp_tasks(request.max_tasks),
        directives=(
            "Balance the schedule so it feels focused yet achievable.",
            "Only add extra tasks when the request explicitly implies multiple actions.",
        ),
        temperature=0.2,
    )
