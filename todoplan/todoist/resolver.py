"""
Tool resolution against whatever catalog the Todoist MCP server advertises.

List tools (projects, labels) are resolved through ordered alias rules: an
explicit name list first, a predicate over the tool text as fallback. The
task-creation tool is never inferred; it must match one of a fixed set of
known names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from todoplan.errors import ToolResolutionError
from todoplan.models import ToolDescriptor


LIST_VERB_KEYWORDS: tuple[str, ...] = ("list", "find", "search", "get", "overview", "browse", "view", "all")
MUTATING_KEYWORDS: tuple[str, ...] = (
    "add",
    "create",
    "update",
    "delete",
    "remove",
    "complete",
    "close",
    "assign",
    "set",
    "comment",
)
PROJECT_KEYWORDS: tuple[str, ...] = ("project", "projects")
LABEL_KEYWORDS: tuple[str, ...] = ("label", "labels", "tag", "tags")

CREATE_TOOL_PREFERENCE: tuple[str, ...] = (
    "create_task",
    "add-task",
    "add_task",
    "create-task",
    "add-tasks",
    "add_tasks",
)
BULK_CREATE_TOOLS: frozenset[str] = frozenset({"add-tasks", "add_tasks"})


@dataclass(frozen=True)
class ToolAlias:
    """One resolution rule for an abstract capability."""

    names: tuple[str, ...] = ()
    match: Callable[[ToolDescriptor], bool] | None = None
    build_args: Callable[[ToolDescriptor], dict[str, Any]] | None = None
    result_keys: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ListToolConfig:
    """A resolved list tool and how to call it."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    result_keys: tuple[str, ...] | None = None


def tool_text(tool: ToolDescriptor) -> str:
    return f"{tool.name or ''} {tool.description or ''}".lower()


def matches_list_tool(tool: ToolDescriptor, keywords: Iterable[str]) -> bool:
    """True when the tool text names the capability, has a list verb and no mutating verb."""
    text = tool_text(tool)
    if not any(keyword in text for keyword in keywords):
        return False
    if not any(verb in text for verb in LIST_VERB_KEYWORDS):
        return False
    return not any(verb in text for verb in MUTATING_KEYWORDS)


def _named(name: str) -> Callable[[ToolDescriptor], bool]:
    return lambda tool: tool.name == name


PROJECT_TOOL_ALIASES: tuple[ToolAlias, ...] = (
    ToolAlias(
        names=("todoist_projects",),
        build_args=lambda _tool: {"action": "list", "include_archived": False},
        result_keys=("data", "projects"),
    ),
    ToolAlias(
        names=("todoist.projects.list", "todoist.projects.search", "todoist.projects.overview"),
        result_keys=("projects", "items", "data", "results"),
    ),
    ToolAlias(match=_named("find-projects"), result_keys=("projects", "data")),
    ToolAlias(match=lambda tool: matches_list_tool(tool, PROJECT_KEYWORDS)),
)

LABEL_TOOL_ALIASES: tuple[ToolAlias, ...] = (
    ToolAlias(
        names=("todoist_labels",),
        build_args=lambda _tool: {"action": "list", "limit": 100},
        result_keys=("data", "labels"),
    ),
    ToolAlias(
        names=("todoist.labels.list", "todoist.labels.search"),
        result_keys=("labels", "items", "data", "results"),
    ),
    ToolAlias(match=_named("find-labels"), result_keys=("labels", "data")),
    ToolAlias(match=lambda tool: matches_list_tool(tool, LABEL_KEYWORDS)),
)


def resolve_list_tool(
    catalog: Iterable[ToolDescriptor],
    aliases: Iterable[ToolAlias],
) -> ListToolConfig | None:
    """Return the first tool matched by the first satisfied alias rule."""
    tools = list(catalog)
    for alias in aliases:
        matched = None
        if alias.names:
            matched = next((tool for tool in tools if tool.name in alias.names), None)
        if matched is None and alias.match is not None:
            matched = next((tool for tool in tools if alias.match(tool)), None)
        if matched is not None:
            return ListToolConfig(
                name=matched.name,
                args=alias.build_args(matched) if alias.build_args else {},
                result_keys=alias.result_keys,
            )
    return None


def resolve_create_tool(catalog: Iterable[ToolDescriptor]) -> str:
    """Pick the task-creation tool by fixed preference; raise when none is present."""
    names = [tool.name for tool in catalog]
    for candidate in CREATE_TOOL_PREFERENCE:
        if candidate in names:
            return candidate
    available = ", ".join(names) or "none"
    raise ToolResolutionError(f"No Todoist create task tool found. Available tools: {available}")


def is_bulk_create_tool(name: str) -> bool:
    return name in BULK_CREATE_TOOLS
