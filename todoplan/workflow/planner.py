"""
Plan generator - turns a classified request into validated Todoist tasks.

The planner builds one instruction from the scenario, the request hints and
the discovered Todoist metadata, asks the model for schema-constrained JSON,
validates it, truncates it to the scenario bound and normalizes every task.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from todoplan.errors import GenerationError
from todoplan.models import (
    MAX_TASKS,
    MIN_TASKS,
    GeneratedPlan,
    IntentDecision,
    MetadataSnapshot,
    NormalizedTask,
    PlanHints,
    PlanRequest,
    PlanScenario,
)

from .llm import LLMError, generate_json
from .normalize import normalize_task

logger = logging.getLogger(__name__)

PLAN_MAX_TOKENS = 2048
PROJECT_PROMPT_LIMIT = 12
LABEL_PROMPT_LIMIT = 15

PLAN_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["tasks"],
    "properties": {
        "summary": {
            "type": "string",
            "description": "One paragraph summary of the schedule",
        },
        "tasks": {
            "type": "array",
            "minItems": MIN_TASKS,
            "maxItems": MAX_TASKS,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["title"],
                "properties": {
                    "title": {"type": "string", "description": "Task headline ready for Todoist content"},
                    "description": {"type": "string", "description": "Optional context for the task"},
                    "priority": {"type": "integer", "minimum": 1, "maximum": 4},
                    "labels": {"type": "array", "maxItems": 5, "items": {"type": "string"}},
                    "projectId": {
                        "type": "string",
                        "description": "Todoist project ID from the provided context",
                    },
                    "project": {
                        "type": "string",
                        "description": "Matching Todoist project name from the provided context",
                    },
                    "due": {
                        "type": "object",
                        "additionalProperties": False,
                        "properties": {
                            "string": {"type": "string", "description": "Natural language due string"},
                            "date": {"type": "string", "pattern": "^[0-9]{4}-[0-9]{2}-[0-9]{2}$"},
                            "datetime": {"type": "string", "format": "date-time"},
                        },
                    },
                },
            },
        },
    },
}

PRIORITY_RULE = (
    "Interpret priority cues such as P0/P1/P2/P3 (Todoist UI labels) or phrases like \"high priority\" "
    "and convert them to Todoist API numbers where 4 = P1 (highest) and 1 = P4 (lowest). "
    "Treat P0 and P1 as the highest priority, map P2 to 3, P3 to 2, and default to 1 when hints are missing."
)

RESPONSE_SHAPE = (
    "Respond with JSON that EXACTLY matches this shape (do not wrap it in markdown fences): "
    '{ "summary"?: "One paragraph summary of the schedule", '
    '"tasks": [ { "title": string, "description"?: string, "priority"?: number 1-4, '
    '"projectId"?: string, "project"?: string, "labels"?: string[], '
    '"due"?: { "string"?: string, "date"?: "YYYY-MM-DD", "datetime"?: ISO8601 } } ] }'
)


@dataclass(frozen=True)
class PlanResult:
    """Validated, normalized plan."""

    summary: str | None
    tasks: tuple[NormalizedTask, ...]

    def to_dict(self) -> dict:
        return {"summary": self.summary, "tasks": [t.to_dict() for t in self.tasks]}


def _project_context(metadata: MetadataSnapshot, hints: PlanHints) -> list[str]:
    lines = []
    if metadata.projects:
        listed = "; ".join(
            f'"{p.name}" (id: {p.id}{", inbox" if p.is_inbox else ""})'
            for p in metadata.projects[:PROJECT_PROMPT_LIMIT]
        )
        lines.append(f"Available Todoist projects (use their IDs when the user references them): {listed}.")
    else:
        lines.append(
            "Project metadata is unavailable; leave projectId undefined unless the user explicitly specifies one."
        )
    if hints.project:
        lines.append(
            f'The user wording implies project "{hints.project.name}". '
            "Use this project unless they clearly request another."
        )
    return lines


def _label_context(metadata: MetadataSnapshot, hints: PlanHints) -> list[str]:
    lines = []
    if metadata.labels:
        listed = ", ".join(f'"{label.name}"' for label in metadata.labels[:LABEL_PROMPT_LIMIT])
        lines.append(
            f"Available Todoist labels: {listed}. Only use labels from this list when the user asks for them."
        )
    else:
        lines.append("Label metadata is unavailable; only assign labels when the user clearly asks for them.")
    if hints.labels:
        lines.append(
            f"The user intent suggests these labels: {', '.join(hints.labels)}. Apply them where relevant."
        )
    return lines


def build_plan_prompt(
    request: PlanRequest,
    scenario: PlanScenario,
    decision: IntentDecision,
    metadata: MetadataSnapshot,
    hints: PlanHints,
) -> str:
    """Build the full generation instruction (system part, blank line, user part)."""
    plural = "" if scenario.max_tasks == 1 else "s"
    system = [
        "You are a planning assistant that produces Todoist tasks.",
        "Return structured data that maps to the Todoist add-task payload.",
        "Every task must include a concise title and optional metadata.",
        "If no due overrides are present, prefer natural language due strings that respect the supplied timezone.",
        "Task titles must only describe the action (for example, 'Buy groceries'); express times, dates, "
        "and locations exclusively through the due fields or description, never inside the title itself.",
        f"Detected scenario: {scenario.intent}.",
        f"Intent reasoning: {decision.summary}" if decision.summary else "",
        " ".join(scenario.directives),
        *_project_context(metadata, hints),
        *_label_context(metadata, hints),
        f"Key entities to respect: {', '.join(decision.keywords)}." if decision.keywords else "",
        PRIORITY_RULE,
        RESPONSE_SHAPE,
    ]
    user = [
        f"User request: {request.prompt.strip()}",
        f"Target deadline: {request.due}." if request.due else "",
        f"User timezone: {request.timezone}." if request.timezone else "",
        f"Plan no more than {scenario.max_tasks} actionable task{plural}.",
        f"Use Todoist priority {request.priority} as default unless the plan specifies otherwise."
        if request.priority
        else "",
        f"Preferred labels: {', '.join(request.labels)}." if request.labels else "",
        f"Additional preferences: {request.preferences}" if request.preferences else "",
        f"User hinted priority should default to Todoist priority {hints.priority}." if hints.priority else "",
        "Always keep the plan feasible for the schedule described by the user. When assigning projects, "
        "only use the provided project list. When assigning labels, only use names from the provided label list.",
        "Do NOT include markdown code fences around the JSON. Output only the JSON object.",
    ]
    return " ".join(p for p in system if p) + "\n\n" + " \n".join(p for p in user if p)


async def generate_plan(
    llm: Any,
    request: PlanRequest,
    scenario: PlanScenario,
    decision: IntentDecision,
    metadata: MetadataSnapshot,
    hints: PlanHints,
    *,
    model: str | None = None,
) -> PlanResult:
    """
    Generate, validate and normalize the plan for a scenario.

    Raises:
        GenerationError: the model failed, returned invalid JSON, or no tasks
    """
    prompt = build_plan_prompt(request, scenario, decision, metadata, hints)
    try:
        payload = await generate_json(
            llm,
            prompt,
            schema=PLAN_JSON_SCHEMA,
            schema_name="todoist_task_plan",
            model=model,
            temperature=scenario.temperature,
            max_tokens=PLAN_MAX_TOKENS,
        )
    except LLMError as e:
        raise GenerationError(str(e)) from e

    try:
        plan = GeneratedPlan.model_validate(payload)
    except ValidationError as e:
        raise GenerationError(f"The assistant returned an invalid plan: {e}") from e

    tasks = tuple(
        normalize_task(task, request, metadata, hints) for task in plan.tasks[: scenario.max_tasks]
    )
    if not tasks:
        raise GenerationError("The assistant did not return any tasks")

    logger.debug("[plan] %d task(s) for scenario %s", len(tasks), scenario.intent)
    return PlanResult(summary=plan.summary, tasks=tasks)
