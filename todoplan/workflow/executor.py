"""
Sync executor - pushes normalized tasks to Todoist one at a time.

Tasks are created sequentially so the streamed pending/created/failed events
line up with task order. A failing task is recorded and the loop moves on;
only a missing creation tool stops the sync.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from todoplan.errors import ExternalCallError
from todoplan.events import EventStream
from todoplan.models import NormalizedTask, PlanRequest, SyncResult, ToolDescriptor
from todoplan.todoist.extract import as_mapping, extract_tool_text, parse_tool_json, pluck_array
from todoplan.todoist.resolver import is_bulk_create_tool, resolve_create_tool

from .normalize import to_ui_priority

logger = logging.getLogger(__name__)

CREATED_ID_KEYS: tuple[str, ...] = ("id", "task_id", "taskId", "uuid")


def build_task_arguments(
    task: NormalizedTask,
    request: PlanRequest,
    *,
    priority_style: str = "number",
) -> dict[str, Any]:
    """
    Map a normalized task to add-task arguments.

    Servers disagree on `projectId` vs `project_id`, so both are sent.
    """
    payload: dict[str, Any] = {"content": task.title}
    if task.description:
        payload["description"] = task.description
    if task.priority is not None:
        payload["priority"] = to_ui_priority(task.priority) if priority_style == "string" else task.priority
    if task.labels:
        payload["labels"] = list(task.labels)
    if task.project_id:
        payload["projectId"] = task.project_id
        payload["project_id"] = task.project_id

    due = task.due
    if due and due.datetime:
        payload["dueDatetime"] = due.datetime
    elif due and due.date:
        payload["dueDate"] = due.date
    elif due and due.string:
        payload["dueString"] = due.string
    elif request.due:
        payload["dueString"] = request.due

    return payload


def parse_created_id(response: Any) -> str | None:
    """Pull the created task id out of a tool response, if there is one."""
    parsed = parse_tool_json(response)
    candidates = [parsed]
    listed = pluck_array(parsed, ("tasks", "items", "data", "results"))
    if listed:
        candidates.append(listed[0])
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        for key in CREATED_ID_KEYS:
            if candidate.get(key) not in (None, ""):
                return str(candidate[key])
    text = extract_tool_text(response)
    if text:
        logger.debug("[todoist.sync] no id in response, raw text: %s", text[:200])
    return None


async def _create_one(
    connection: Any,
    tool_name: str,
    task: NormalizedTask,
    request: PlanRequest,
) -> SyncResult:
    """Create a single task; failures come back as a failed SyncResult."""
    bulk = is_bulk_create_tool(tool_name)
    args = build_task_arguments(task, request, priority_style="string" if bulk else "number")
    payload = {"tasks": [args]} if bulk else args
    logger.debug("[todoist.sync] calling %s with %s", tool_name, payload)

    try:
        response = await connection.call_tool(tool_name, payload)
        if as_mapping(response).get("isError"):
            raise ExternalCallError(extract_tool_text(response) or f"{tool_name} reported an error")
    except Exception as e:
        logger.warning("[todoist.sync] %r failed: %s", task.title, e)
        return SyncResult(planned=task, status="failed", error=str(e) or type(e).__name__)

    return SyncResult(planned=task, status="created", todoist_id=parse_created_id(response))


async def sync_tasks(
    connection: Any,
    tasks: Iterable[NormalizedTask],
    catalog: Iterable[ToolDescriptor],
    request: PlanRequest,
    stream: EventStream,
) -> list[SyncResult]:
    """
    Create every task in order, streaming one event per status change.

    Raises:
        ToolResolutionError: no task-creation tool is advertised
    """
    tool_name = resolve_create_tool(catalog)
    results: list[SyncResult] = []

    for task in tasks:
        stream.task("pending", task)
        result = await _create_one(connection, tool_name, task, request)
        results.append(result)
        stream.task(result.status, task, todoist_id=result.todoist_id, error=result.error)

    return results
