"""
Project and label discovery.

Whatever list tools the server exposes are resolved and called concurrently.
Missing tools or failing calls only empty their half of the snapshot; the
pipeline keeps going without metadata.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

from todoplan.models import LabelSummary, MetadataSnapshot, ProjectSummary, ToolDescriptor
from todoplan.todoist.extract import extract_array_payload
from todoplan.todoist.resolver import (
    LABEL_TOOL_ALIASES,
    PROJECT_TOOL_ALIASES,
    ListToolConfig,
    resolve_list_tool,
)

logger = logging.getLogger(__name__)

INBOX_FLAGS: tuple[str, ...] = ("is_inbox_project", "inbox_project", "isInbox", "isInboxProject")


async def call_list_tool(connection: Any, config: ListToolConfig) -> list:
    """Call a resolved list tool and return its array payload ([] on failure)."""
    try:
        response = await connection.call_tool(config.name, dict(config.args))
    except Exception as e:
        logger.warning("[todoist.metadata] failed to call %s: %s", config.name, e)
        return []
    return extract_array_payload(response, config.result_keys)


async def _nothing() -> list:
    return []


async def discover_metadata(connection: Any, catalog: Iterable[ToolDescriptor]) -> MetadataSnapshot:
    """
    Build the project/label snapshot for one request.

    Args:
        connection: Open Todoist connection (anything with `call_tool`)
        catalog: Tools advertised by that connection

    Returns:
        MetadataSnapshot, possibly empty
    """
    tools = list(catalog)
    if connection is None or not tools:
        return MetadataSnapshot()

    project_tool = resolve_list_tool(tools, PROJECT_TOOL_ALIASES)
    label_tool = resolve_list_tool(tools, LABEL_TOOL_ALIASES)
    if project_tool is None and label_tool is None:
        return MetadataSnapshot()

    raw_projects, raw_labels = await asyncio.gather(
        call_list_tool(connection, project_tool) if project_tool else _nothing(),
        call_list_tool(connection, label_tool) if label_tool else _nothing(),
    )

    snapshot = MetadataSnapshot(
        projects=tuple(_project_summaries(raw_projects)),
        labels=tuple(_label_summaries(raw_labels)),
    )
    logger.debug(
        "[todoist.metadata] project tool=%s label tool=%s projects=%d labels=%d",
        project_tool.name if project_tool else None,
        label_tool.name if label_tool else None,
        len(snapshot.projects),
        len(snapshot.labels),
    )
    return snapshot


def _entry_id(entry: Mapping) -> str:
    """Stringified id; a missing or null id becomes ''."""
    value = entry.get("id")
    return "" if value is None else str(value)


def _project_summaries(entries: list) -> list[ProjectSummary]:
    projects = []
    for entry in entries:
        if not isinstance(entry, Mapping) or not entry.get("name"):
            continue
        name = str(entry["name"])
        is_inbox = any(bool(entry.get(flag)) for flag in INBOX_FLAGS) or name.lower() == "inbox"
        projects.append(ProjectSummary(id=_entry_id(entry), name=name, is_inbox=is_inbox))
    return projects


def _label_summaries(entries: list) -> list[LabelSummary]:
    return [
        LabelSummary(id=_entry_id(entry), name=str(entry["name"]))
        for entry in entries
        if isinstance(entry, Mapping) and entry.get("name")
    ]


def infer_project(prompt: str, snapshot: MetadataSnapshot) -> ProjectSummary | None:
    """First non-inbox project whose name appears in the prompt."""
    lowered = prompt.lower()
    for project in snapshot.projects:
        if not project.is_inbox and project.name.lower() in lowered:
            return project
    return None


def infer_labels(prompt: str, snapshot: MetadataSnapshot) -> tuple[str, ...] | None:
    """All label names that appear in the prompt, or None."""
    lowered = prompt.lower()
    matches = tuple(label.name for label in snapshot.labels if label.name.lower() in lowered)
    return matches or None
