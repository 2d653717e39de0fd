import asyncio

from conftest import FakeConnection, text_result

from todoplan.models import LabelSummary, MetadataSnapshot, ProjectSummary
from todoplan.todoist.metadata import discover_metadata, infer_labels, infer_project


def make_snapshot() -> MetadataSnapshot:
    return MetadataSnapshot(
        projects=(
            ProjectSummary(id="1", name="Inbox", is_inbox=True),
            ProjectSummary(id="2", name="Work"),
            ProjectSummary(id="3", name="Home"),
        ),
        labels=(LabelSummary(id="10", name="Errands"), LabelSummary(id="11", name="deep-work")),
    )


def test_discover_metadata_normalizes_entries() -> None:
    connection = FakeConnection(
        ["find-projects", "find-labels", "add-task"],
        {
            "find-projects": text_result(
                {
                    "projects": [
                        {"id": 1, "name": "Inbox", "inboxProject": True},
                        {"id": "2", "name": "Work", "is_inbox_project": False},
                        {"id": "3", "name": "Shared", "isInbox": True},
                        {"id": "4"},
                    ]
                }
            ),
            "find-labels": {"structuredContent": {"labels": [{"id": 10, "name": "errands"}, {"id": 11}]}},
        },
    )

    snapshot = asyncio.run(discover_metadata(connection, connection.tools))

    assert snapshot.projects == (
        ProjectSummary(id="1", name="Inbox", is_inbox=True),
        ProjectSummary(id="2", name="Work", is_inbox=False),
        ProjectSummary(id="3", name="Shared", is_inbox=True),
    )
    assert snapshot.labels == (LabelSummary(id="10", name="errands"),)
    assert sorted(name for name, _ in connection.calls) == ["find-labels", "find-projects"]


def test_failing_list_call_only_empties_its_half() -> None:
    connection = FakeConnection(
        ["todoist_projects", "todoist_labels"],
        {
            "todoist_projects": RuntimeError("boom"),
            "todoist_labels": text_result({"data": [{"id": "5", "name": "home"}]}),
        },
    )

    snapshot = asyncio.run(discover_metadata(connection, connection.tools))

    assert snapshot.projects == ()
    assert snapshot.labels == (LabelSummary(id="5", name="home"),)
    assert ("todoist_labels", {"action": "list", "limit": 100}) in connection.calls


def test_no_list_tools_skips_calls() -> None:
    connection = FakeConnection(["add-task"])

    snapshot = asyncio.run(discover_metadata(connection, connection.tools))

    assert snapshot == MetadataSnapshot()
    assert connection.calls == []


def test_empty_catalog_gives_empty_snapshot() -> None:
    assert asyncio.run(discover_metadata(FakeConnection([]), [])) == MetadataSnapshot()


def test_infer_project_skips_inbox() -> None:
    snapshot = make_snapshot()

    assert infer_project("Put the report in my Work list", snapshot).id == "2"
    assert infer_project("Add to inbox please", snapshot) is None
    assert infer_project("Something unrelated", MetadataSnapshot()) is None


def test_infer_labels_keeps_metadata_order() -> None:
    snapshot = make_snapshot()

    assert infer_labels("DEEP-WORK block, then errands", snapshot) == ("Errands", "deep-work")
    assert infer_labels("nothing to see", snapshot) is None


def test_null_ids_become_empty_strings() -> None:
    connection = FakeConnection(
        ["find-projects", "find-labels"],
        {
            "find-projects": text_result({"projects": [{"id": None, "name": "Work"}]}),
            "find-labels": text_result({"labels": [{"name": "errands"}]}),
        },
    )

    snapshot = asyncio.run(discover_metadata(connection, connection.tools))

    assert snapshot.projects == (ProjectSummary(id="", name="Work"),)
    assert snapshot.labels == (LabelSummary(id="", name="errands"),)
