"""
Data model for the planning pipeline.

Wire payloads (the inbound request and the model's JSON answers) are pydantic
models so validation errors carry field paths. Values produced inside the
pipeline are frozen dataclasses that serialize to the camelCase keys the
NDJSON stream uses.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from todoplan.errors import InvalidRequest


MIN_TASKS = 1
MAX_TASKS = 10
MAX_LABELS = 5

IntentType = Literal["single_reminder", "multi_step_plan", "recipe_plan", "general_plan"]
INTENTS: tuple[str, ...] = ("single_reminder", "multi_step_plan", "recipe_plan", "general_plan")

NonEmptyStr = Annotated[str, Field(min_length=1)]


# =============================================================================
# Wire models
# =============================================================================


class PlanRequest(BaseModel):
    """Body of a `/plan` request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str = Field(min_length=1)
    timezone: str | None = Field(default=None, min_length=3)
    due: str | None = Field(default=None, min_length=3)
    preferences: str | None = Field(default=None, min_length=1)
    labels: tuple[NonEmptyStr, ...] | None = Field(default=None, max_length=MAX_LABELS)
    priority: int | None = Field(default=None, ge=1, le=4)
    max_tasks: int = Field(default=5, ge=MIN_TASKS, le=MAX_TASKS, alias="maxTasks")

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Prompt is required")
        return value


class IntentDecision(BaseModel):
    """Classifier verdict for a request."""

    model_config = ConfigDict(frozen=True)

    intent: IntentType
    summary: str | None = None
    days: int | None = Field(default=None, ge=1, le=7)
    keywords: tuple[NonEmptyStr, ...] | None = Field(default=None, max_length=10)


class PlannedDue(BaseModel):
    """Due information as emitted by the model; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    string: str | None = None
    date: str | None = Field(default=None, pattern=r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
    datetime: str | None = None

    @field_validator("datetime")
    @classmethod
    def _iso_datetime(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if "T" not in value:
            raise ValueError("datetime must be an ISO 8601 date-time")
        try:
            dt.datetime.fromisoformat(value)
        except ValueError as e:
            raise ValueError(f"datetime must be an ISO 8601 date-time: {e}") from e
        return value


class PlannedTask(BaseModel):
    """A single task before normalization."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    title: str = Field(min_length=1)
    description: str | None = None
    priority: int | None = Field(default=None, ge=1, le=4)
    labels: list[NonEmptyStr] | None = Field(default=None, max_length=MAX_LABELS)
    project_id: str | None = Field(default=None, alias="projectId")
    project: str | None = None
    due: PlannedDue | None = None


class GeneratedPlan(BaseModel):
    """Validated plan payload returned by the model."""

    summary: str | None = None
    tasks: list[PlannedTask] = Field(min_length=MIN_TASKS)

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, value: Any) -> Any:
        # Some models answer with the task array alone.
        if isinstance(value, list):
            return {"tasks": value}
        return value


def parse_plan_request(body: Any) -> PlanRequest:
    """Validate an inbound body, raising InvalidRequest with a readable message."""
    if not isinstance(body, Mapping):
        raise InvalidRequest("Invalid request")
    try:
        return PlanRequest.model_validate(dict(body))
    except ValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        raise InvalidRequest("; ".join(messages) or "Invalid request") from e


# =============================================================================
# Pipeline values
# =============================================================================


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool advertised by the Todoist connection."""

    name: str
    description: str | None = None

    @classmethod
    def from_tool(cls, tool: Any) -> "ToolDescriptor":
        """Build from an MCP `Tool` object or a plain mapping."""
        if isinstance(tool, Mapping):
            name = tool.get("name")
            description = tool.get("description")
        else:
            name = getattr(tool, "name", None)
            description = getattr(tool, "description", None)
        return cls(
            name=str(name or ""),
            description=description if isinstance(description, str) else None,
        )

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description}


@dataclass(frozen=True)
class ProjectSummary:
    id: str
    name: str
    is_inbox: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "isInbox": self.is_inbox}


@dataclass(frozen=True)
class LabelSummary:
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class MetadataSnapshot:
    """Projects and labels discovered for one request. Empty means unavailable."""

    projects: tuple[ProjectSummary, ...] = ()
    labels: tuple[LabelSummary, ...] = ()

    def to_dict(self) -> dict:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "labels": [label.to_dict() for label in self.labels],
        }


@dataclass(frozen=True)
class PlanScenario:
    """Generation configuration derived from an intent."""

    intent: str
    max_tasks: int
    directives: tuple[str, ...]
    temperature: float

    def to_dict(self) -> dict:
        return {
            "intent": self.intent,
            "maxTasks": self.max_tasks,
            "directives": list(self.directives),
            "temperature": self.temperature,
        }


@dataclass(frozen=True)
class PlanHints:
    """Signals inferred from the prompt before generation."""

    priority: int | None = None
    project: ProjectSummary | None = None
    labels: tuple[str, ...] | None = None

    def to_dict(self) -> dict:
        return {
            "inferredProject": self.project.to_dict() if self.project else None,
            "inferredLabels": list(self.labels) if self.labels else None,
            "priorityHint": self.priority,
        }


@dataclass(frozen=True)
class DueSpec:
    """Resolved due value; exactly one field is set."""

    string: str | None = None
    date: str | None = None
    datetime: str | None = None

    def to_dict(self) -> dict:
        return {k: v for k, v in (("string", self.string), ("date", self.date), ("datetime", self.datetime)) if v}


@dataclass(frozen=True)
class NormalizedTask:
    """A task ready to be sent to Todoist."""

    title: str
    description: str | None = None
    priority: int | None = None
    labels: tuple[str, ...] | None = None
    due: DueSpec | None = None
    project_id: str | None = None
    project_name: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"title": self.title}
        if self.description:
            data["description"] = self.description
        if self.priority is not None:
            data["priority"] = self.priority
        if self.labels:
            data["labels"] = list(self.labels)
        if self.due:
            data["due"] = self.due.to_dict()
        if self.project_id:
            data["projectId"] = self.project_id
        if self.project_name:
            data["projectName"] = self.project_name
        return data


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one task-creation call."""

    planned: NormalizedTask
    status: Literal["created", "failed"]
    todoist_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"planned": self.planned.to_dict(), "status": self.status}
        if self.todoist_id:
            data["todoistId"] = self.todoist_id
        if self.error:
            data["error"] = self.error
        return data
