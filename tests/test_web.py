import json

from conftest import FakeConnection, FakeLLM
from fastapi.testclient import TestClient

from todoplan.runtime import RuntimeConfig
from todoplan.web import create_app
from todoplan.workflow.pipeline import PlanPipeline


ORIGIN = "https://planner.example.test"


def make_client(config: RuntimeConfig, connection: FakeConnection | None = None, llm: FakeLLM | None = None):
    llm = llm or FakeLLM(
        todoist_plan_intent={"intent": "single_reminder"},
        todoist_task_plan={"tasks": [{"title": "Call the dentist", "due": {"string": "tomorrow 9am"}}]},
    )
    connection = connection or FakeConnection(["add-task"])
    app = create_app(
        config,
        pipeline_factory=lambda: PlanPipeline(config, llm=llm, connection_factory=lambda: connection),
    )
    return TestClient(app)


def make_config(**overrides) -> RuntimeConfig:
    values = {
        "todoist_mcp_url": "https://mcp.example.test/mcp",
        "todoist_token": "secret",
        "frontend_origins": (ORIGIN,),
    }
    values.update(overrides)
    return RuntimeConfig(**values)


def test_healthz() -> None:
    response = make_client(make_config()).get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_plan_streams_ndjson() -> None:
    connection = FakeConnection(["add-task"])
    client = make_client(make_config(), connection=connection)

    response = client.post("/plan", json={"prompt": "Call the dentist tomorrow at 9am"}, headers={"Origin": ORIGIN})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    assert response.headers["cache-control"] == "no-store"
    assert response.headers["access-control-allow-origin"] == ORIGIN

    events = [json.loads(line) for line in response.text.splitlines() if line]
    assert events[0]["type"] == "status"
    assert events[-1]["type"] == "final"
    assert events[-1]["created"] == 1
    assert connection.close_calls == 1


def test_invalid_body_is_rejected_before_streaming() -> None:
    client = make_client(make_config())

    blank = client.post("/plan", json={"prompt": "   "})
    too_many = client.post("/plan", json={"prompt": "x", "maxTasks": 11})
    not_json = client.post("/plan", content=b"not json", headers={"Content-Type": "application/json"})
    not_object = client.post("/plan", json=["prompt"])

    assert blank.status_code == 400
    assert "prompt" in blank.json()["error"]
    assert too_many.status_code == 400
    assert "maxTasks" in too_many.json()["error"]
    assert not_json.status_code == 400
    assert not_json.json() == {"error": "Invalid request"}
    assert not_object.json() == {"error": "Invalid request"}


def test_missing_configuration_returns_503() -> None:
    client = TestClient(create_app(RuntimeConfig()))

    response = client.post("/plan", json={"prompt": "Call the dentist"})

    assert response.status_code == 503
    assert response.json() == {"error": "TODOIST_MCP_URL is not configured"}


def test_unknown_origin_is_forbidden() -> None:
    client = make_client(make_config())

    response = client.post("/plan", json={"prompt": "x"}, headers={"Origin": "https://elsewhere.test"})

    assert response.status_code == 403


def test_any_origin_allowed_when_unconfigured() -> None:
    client = make_client(make_config(frontend_origins=()))

    response = client.post("/plan", json={"prompt": "Call the dentist"}, headers={"Origin": "https://elsewhere.test"})

    assert response.status_code == 200


def test_preflight_is_answered() -> None:
    client = make_client(make_config())

    response = client.options(
        "/plan",
        headers={
            "Origin": ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == ORIGIN
    assert response.headers["access-control-max-age"] == "600"
