import io
import json
from typing import Any

import pytest

from todoplan.events import EventStream, TextWriter
from todoplan.models import ToolDescriptor
from todoplan.runtime import RuntimeConfig
from todoplan.workflow.llm import LLMResponse


def text_result(payload: Any) -> dict:
    """MCP-style tool result with the payload JSON-encoded in a text block."""
    return {"content": [{"type": "text", "text": json.dumps(payload)}]}


class FakeLLM:
    """Answers by schema name; a value that is an Exception is raised instead."""

    def __init__(self, **answers: Any):
        self.answers = answers
        self.calls: list[dict] = []

    async def chat(self, messages, *, model=None, format=None, schema_name=None, temperature=None, max_tokens=None):
        self.calls.append(
            {
                "prompt": messages[-1]["content"],
                "model": model,
                "schema_name": schema_name,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        answer = self.answers[schema_name]
        if isinstance(answer, Exception):
            raise answer
        content = answer if isinstance(answer, str) else json.dumps(answer)
        return LLMResponse(content=content, model=model or "fake")


class FakeConnection:
    """
    In-memory Todoist MCP connection.

    `handlers` maps tool names to a response, an exception to raise, or a
    callable taking the arguments and returning either.
    """

    def __init__(self, tools: list[str], handlers: dict[str, Any] | None = None):
        self.tools = [ToolDescriptor(name=name) for name in tools]
        self.handlers = handlers or {}
        self.calls: list[tuple[str, dict]] = []
        self.connected = False
        self.close_calls = 0
        self.list_error: Exception | None = None
        self.close_error: Exception | None = None

    async def connect(self) -> None:
        self.connected = True

    async def list_tools(self) -> list[ToolDescriptor]:
        if self.list_error:
            raise self.list_error
        return list(self.tools)

    async def call_tool(self, name: str, arguments: dict | None = None) -> dict:
        self.calls.append((name, arguments or {}))
        handler = self.handlers.get(name, text_result({"id": f"{name}-{len(self.calls)}"}))
        if callable(handler):
            handler = handler(arguments or {})
        if isinstance(handler, Exception):
            raise handler
        return handler

    async def aclose(self) -> None:
        self.close_calls += 1
        if self.close_error:
            raise self.close_error


class RecordingWriter:
    def __init__(self):
        self.lines: list[str] = []
        self.closed = 0

    def write(self, line: str) -> None:
        self.lines.append(line)

    def close(self) -> None:
        self.closed += 1

    @property
    def events(self) -> list[dict]:
        return [json.loads(line) for line in self.lines]


class ClosedPipeWriter:
    """Writer whose reader went away after `fail_after` lines."""

    def __init__(self, fail_after: int):
        self.fail_after = fail_after
        self.lines: list[str] = []

    def write(self, line: str) -> None:
        if len(self.lines) >= self.fail_after:
            raise BrokenPipeError(32, "Broken pipe")
        self.lines.append(line)

    def close(self) -> None:
        raise BrokenPipeError(32, "Broken pipe")


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def stream(writer: RecordingWriter) -> EventStream:
    return EventStream(writer)


@pytest.fixture
def config() -> RuntimeConfig:
    return RuntimeConfig(todoist_mcp_url="https://mcp.example.test/mcp", todoist_token="secret")


@pytest.fixture
def text_stream() -> tuple[io.StringIO, EventStream]:
    buffer = io.StringIO()
    return buffer, EventStream(TextWriter(buffer))
