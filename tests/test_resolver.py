import pytest

from todoplan.errors import ToolResolutionError
from todoplan.models import ToolDescriptor
from todoplan.todoist.resolver import (
    LABEL_TOOL_ALIASES,
    PROJECT_TOOL_ALIASES,
    is_bulk_create_tool,
    matches_list_tool,
    resolve_create_tool,
    resolve_list_tool,
)


def make_catalog(*names: str) -> list[ToolDescriptor]:
    return [ToolDescriptor(name=name) for name in names]


def test_exact_alias_beats_heuristic_match() -> None:
    catalog = [
        ToolDescriptor(name="browse-projects", description="List all projects"),
        ToolDescriptor(name="todoist_projects", description="Project operations"),
    ]

    resolved = resolve_list_tool(catalog, PROJECT_TOOL_ALIASES)

    assert resolved is not None
    assert resolved.name == "todoist_projects"
    assert resolved.args == {"action": "list", "include_archived": False}
    assert resolved.result_keys == ("data", "projects")


def test_dotted_aliases_and_find_tools() -> None:
    projects = resolve_list_tool(make_catalog("todoist.projects.search"), PROJECT_TOOL_ALIASES)
    labels = resolve_list_tool(make_catalog("add-task", "find-labels"), LABEL_TOOL_ALIASES)

    assert projects.name == "todoist.projects.search"
    assert projects.args == {}
    assert labels.name == "find-labels"
    assert labels.result_keys == ("labels", "data")


def test_todoist_labels_alias_carries_limit() -> None:
    resolved = resolve_list_tool(make_catalog("todoist_labels"), LABEL_TOOL_ALIASES)

    assert resolved.args == {"action": "list", "limit": 100}


def test_heuristic_requires_list_verb_and_skips_mutating_tools() -> None:
    create = ToolDescriptor(name="create-project", description="Create a new project")
    view = ToolDescriptor(name="project-overview", description="Get an overview of all projects")
    bare = ToolDescriptor(name="projects", description="Projects")

    assert not matches_list_tool(create, ("project",))
    assert not matches_list_tool(bare, ("project",))
    assert matches_list_tool(view, ("project",))
    assert resolve_list_tool([create, bare, view], PROJECT_TOOL_ALIASES).name == "project-overview"


def test_heuristic_matches_tags_for_labels() -> None:
    catalog = [ToolDescriptor(name="search-tags", description="Search personal tags")]

    resolved = resolve_list_tool(catalog, LABEL_TOOL_ALIASES)

    assert resolved.name == "search-tags"
    assert resolved.result_keys is None


def test_no_list_tool_resolves_to_none() -> None:
    assert resolve_list_tool(make_catalog("add-task", "complete-task"), PROJECT_TOOL_ALIASES) is None
    assert resolve_list_tool([], LABEL_TOOL_ALIASES) is None


def test_create_tool_follows_preference_order() -> None:
    assert resolve_create_tool(make_catalog("add-tasks", "add-task")) == "add-task"
    assert resolve_create_tool(make_catalog("add_tasks", "create_task")) == "create_task"
    assert resolve_create_tool(make_catalog("find-projects", "add-tasks")) == "add-tasks"


def test_create_tool_missing_lists_available_tools() -> None:
    with pytest.raises(ToolResolutionError) as excinfo:
        resolve_create_tool(make_catalog("find-projects", "find-labels"))

    assert "No Todoist create task tool found" in str(excinfo.value)
    assert "find-projects, find-labels" in str(excinfo.value)


def test_create_tool_is_never_inferred() -> None:
    catalog = [ToolDescriptor(name="new-todo", description="Add a task to Todoist")]

    with pytest.raises(ToolResolutionError):
        resolve_create_tool(catalog)


def test_bulk_create_tool_names() -> None:
    assert is_bulk_create_tool("add-tasks")
    assert is_bulk_create_tool("add_tasks")
    assert not is_bulk_create_tool("add-task")
