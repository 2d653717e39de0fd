"""
Task normalization.

Resolves each generated task's priority, labels, due and project against the
request and the discovered metadata. Every function here is pure and total.

Precedence:
    priority  task > prompt cue > request
    labels    task > request > prompt-inferred
    due       task datetime > task date > task string > request due
    project   task projectId > task project name > prompt-inferred
"""

from __future__ import annotations

import math
import re
from typing import Iterable

from todoplan.models import (
    MAX_LABELS,
    DueSpec,
    MetadataSnapshot,
    NormalizedTask,
    PlanHints,
    PlannedDue,
    PlannedTask,
    PlanRequest,
    ProjectSummary,
)

PRIORITY_CUE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:^|[^a-z0-9])p\s*([0-4])"),
    re.compile(r"priority\s*([0-4])"),
    re.compile(r"优先级\s*([0-4])"),
)

# Todoist UI level -> REST priority (4 is the most urgent)
UI_CUE_TO_API: dict[str, int] = {"0": 4, "1": 4, "2": 3, "3": 2, "4": 1}


def detect_priority_cue(prompt: str) -> int | None:
    """Find a `P1` / `priority 2` / `优先级3` cue and map it to an API priority."""
    lowered = prompt.lower()
    for pattern in PRIORITY_CUE_PATTERNS:
        match = pattern.search(lowered)
        if match and match.group(1) in UI_CUE_TO_API:
            return UI_CUE_TO_API[match.group(1)]
    return None


def clamp_priority(priority: float | None) -> int | None:
    if priority is None:
        return None
    return min(4, max(1, math.floor(priority + 0.5)))


def to_ui_priority(priority: int) -> str:
    """API priority (4 highest) -> Todoist UI flag (`p1` highest)."""
    return f"p{5 - (clamp_priority(priority) or 1)}"


def dedupe_labels(labels: Iterable[str] | None) -> tuple[str, ...] | None:
    """Trim, drop blanks, dedupe case-insensitively keeping first casing, cap at 5."""
    seen: set[str] = set()
    result: list[str] = []
    for label in labels or ():
        trimmed = label.strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        result.append(trimmed)
        if len(result) == MAX_LABELS:
            break
    return tuple(result) or None


def normalize_labels(
    preferred: Iterable[str] | None,
    fallback: Iterable[str] | None,
    metadata: MetadataSnapshot,
    inferred: Iterable[str] | None = None,
) -> tuple[str, ...] | None:
    source = list(preferred or ()) or list(fallback or ()) or list(inferred or ())
    if not source:
        return None
    canonical = {label.name.lower(): label.name for label in metadata.labels}
    restored = []
    for label in source:
        trimmed = label.strip()
        if trimmed:
            restored.append(canonical.get(trimmed.lower(), trimmed))
    return dedupe_labels(restored)


def select_due(from_task: PlannedDue | None, fallback: str | None) -> DueSpec | None:
    if from_task is not None:
        if from_task.datetime:
            return DueSpec(datetime=from_task.datetime)
        if from_task.date:
            return DueSpec(date=from_task.date)
        if from_task.string:
            return DueSpec(string=from_task.string)
    if fallback:
        return DueSpec(string=fallback)
    return None


def resolve_project(
    task: PlannedTask,
    metadata: MetadataSnapshot,
    inferred: ProjectSummary | None = None,
) -> tuple[str | None, str] | None:
    """Return (project id, display name) or None for the service default."""
    if task.project_id:
        known = next((p for p in metadata.projects if p.id == task.project_id), None)
        name = known.name if known else (task.project or task.project_id)
        return task.project_id, name
    if task.project and task.project.strip():
        wanted = task.project.strip()
        known = next((p for p in metadata.projects if p.name.lower() == wanted.lower()), None)
        if known:
            return known.id or None, known.name
        return None, wanted
    if inferred:
        return inferred.id or None, inferred.name
    return None


def normalize_task(
    task: PlannedTask,
    request: PlanRequest,
    metadata: MetadataSnapshot,
    hints: PlanHints | None = None,
) -> NormalizedTask:
    """Apply the precedence rules to one generated task."""
    hints = hints or PlanHints()
    project = resolve_project(task, metadata, hints.project)
    priority = task.priority
    if priority is None:
        priority = hints.priority if hints.priority is not None else request.priority
    description = task.description.strip() if task.description else None
    return NormalizedTask(
        title=task.title.strip(),
        description=description or None,
        priority=clamp_priority(priority),
        labels=normalize_labels(task.labels, request.labels, metadata, hints.labels),
        due=select_due(task.due, request.due),
        project_id=project[0] if project else None,
        project_name=project[1] if project else None,
    )
