import asyncio

import pytest
from conftest import FakeConnection, text_result

from todoplan.errors import ToolResolutionError
from todoplan.models import DueSpec, NormalizedTask, PlanRequest, ToolDescriptor
from todoplan.workflow.executor import build_task_arguments, parse_created_id, sync_tasks


REQUEST = PlanRequest(prompt="Get errands done", due="Saturday")


def make_tasks(*titles: str) -> list[NormalizedTask]:
    return [NormalizedTask(title=title) for title in titles]


def test_partial_failure_keeps_going(writer, stream) -> None:
    def add_task(args):
        if args["content"] == "Two":
            return RuntimeError("rate limited")
        return text_result({"id": f"id-{args['content']}"})

    connection = FakeConnection(["find-projects", "add-task"], {"add-task": add_task})

    results = asyncio.run(sync_tasks(connection, make_tasks("One", "Two", "Three"), connection.tools, REQUEST, stream))
    stream.final(results, 12)

    assert [r.status for r in results] == ["created", "failed", "created"]
    assert [r.todoist_id for r in results] == ["id-One", None, "id-Three"]
    assert results[1].error == "rate limited"

    events = writer.events
    task_events = [(e["status"], e["task"]["title"]) for e in events if e["type"] == "todoist.task"]
    assert task_events == [
        ("pending", "One"),
        ("created", "One"),
        ("pending", "Two"),
        ("failed", "Two"),
        ("pending", "Three"),
        ("created", "Three"),
    ]
    final = events[-1]
    assert final["type"] == "final"
    assert (final["created"], final["failed"]) == (2, 1)
    assert final["tasks"][1] == {"planned": {"title": "Two"}, "status": "failed", "error": "rate limited"}


def test_error_flag_in_tool_result_is_a_failure(stream) -> None:
    connection = FakeConnection(
        ["add-task"],
        {"add-task": {"isError": True, "content": [{"type": "text", "text": "Invalid project"}]}},
    )

    results = asyncio.run(sync_tasks(connection, make_tasks("One"), connection.tools, REQUEST, stream))

    assert results[0].status == "failed"
    assert results[0].error == "Invalid project"


def test_missing_create_tool_raises(stream) -> None:
    connection = FakeConnection(["find-projects"])

    with pytest.raises(ToolResolutionError):
        asyncio.run(sync_tasks(connection, make_tasks("One"), connection.tools, REQUEST, stream))

    assert connection.calls == []


def test_bulk_tool_wraps_task_and_uses_ui_priority(stream) -> None:
    connection = FakeConnection(["add-tasks"])
    task = NormalizedTask(title="Ship it", priority=4, labels=("work",))

    asyncio.run(sync_tasks(connection, [task], connection.tools, REQUEST, stream))

    name, args = connection.calls[0]
    assert name == "add-tasks"
    assert args == {
        "tasks": [{"content": "Ship it", "priority": "p1", "labels": ["work"], "dueString": "Saturday"}]
    }


def test_task_arguments_send_both_project_keys() -> None:
    task = NormalizedTask(
        title="Review PR",
        description="the big one",
        priority=3,
        project_id="2",
        due=DueSpec(datetime="2026-03-02T09:00:00"),
    )

    args = build_task_arguments(task, REQUEST)

    assert args == {
        "content": "Review PR",
        "description": "the big one",
        "priority": 3,
        "projectId": "2",
        "project_id": "2",
        "dueDatetime": "2026-03-02T09:00:00",
    }


def test_task_arguments_due_variants() -> None:
    no_hint = PlanRequest(prompt="x")

    assert build_task_arguments(NormalizedTask(title="a", due=DueSpec(date="2026-03-02")), no_hint)["dueDate"] == (
        "2026-03-02"
    )
    assert build_task_arguments(NormalizedTask(title="a", due=DueSpec(string="tomorrow")), no_hint)["dueString"] == (
        "tomorrow"
    )
    assert build_task_arguments(NormalizedTask(title="a"), no_hint) == {"content": "a"}


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (text_result({"id": 42}), "42"),
        ({"structuredContent": {"task_id": "t-1"}}, "t-1"),
        ({"structuredContent": {"tasks": [{"taskId": "t-2"}]}}, "t-2"),
        ({"content": [{"type": "text", "text": "Task added"}]}, None),
        ({}, None),
    ],
)
def test_parse_created_id(response, expected) -> None:
    assert parse_created_id(response) == expected


def test_sync_uses_descriptor_catalog(stream) -> None:
    catalog = [ToolDescriptor(name="create_task"), ToolDescriptor(name="add-task")]
    connection = FakeConnection(["create_task", "add-task"])

    asyncio.run(sync_tasks(connection, make_tasks("One"), catalog, REQUEST, stream))

    assert connection.calls[0][0] == "create_task"
