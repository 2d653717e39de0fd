"""
NDJSON event stream.

Every pipeline stage reports through one EventStream. Each event is written as
a single JSON line as soon as it is sent. The stream ends after exactly one
`final` or `error` event; later sends are dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, TextIO

from todoplan.models import NormalizedTask, SyncResult

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = frozenset({"final", "error"})


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TextWriter:
    """Writes lines to a text stream, flushing after each one."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def write(self, line: str) -> None:
        self.stream.write(line)
        self.stream.flush()

    def close(self) -> None:
        self.stream.flush()


class QueueWriter:
    """Feeds lines to an asyncio.Queue; `None` marks the end of the stream."""

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue

    def write(self, line: str) -> None:
        self.queue.put_nowait(line)

    def close(self) -> None:
        self.queue.put_nowait(None)


class EventStream:
    """Single-writer, append-only event stream."""

    def __init__(self, writer: Any, *, debug: bool = True):
        self.writer = writer
        self.debug_enabled = debug
        self.terminal: str | None = None
        self.broken = False
        self.sent: list[str] = []

    @property
    def closed(self) -> bool:
        return self.terminal is not None

    def send(self, event_type: str, **payload: Any) -> None:
        """Serialize and write one event immediately."""
        if self.closed:
            logger.warning("[events] dropping %s after terminal %s", event_type, self.terminal)
            return
        if self.broken:
            return
        event = {"type": event_type, **payload, "timestamp": utc_timestamp()}
        try:
            self.writer.write(json.dumps(event, default=str) + "\n")
        except (OSError, ValueError) as e:
            # Reader is gone; the pipeline keeps running without output
            logger.warning("[events] writer failed on %s, dropping further events: %s", event_type, e)
            self.broken = True
            return
        self.sent.append(event_type)
        if event_type in TERMINAL_EVENTS:
            self.terminal = event_type
            try:
                self.writer.close()
            except (OSError, ValueError) as e:
                logger.warning("[events] failed to close writer: %s", e)
                self.broken = True

    # Typed helpers ------------------------------------------------------------

    def status(self, stage: str, message: str) -> None:
        self.send("status", stage=stage, message=message)

    def plan(self, summary: str | None, tasks: Iterable[NormalizedTask], intent: str) -> None:
        payload: dict[str, Any] = {"tasks": [task.to_dict() for task in tasks], "intent": intent}
        if summary:
            payload["summary"] = summary
        self.send("ai.plan", **payload)

    def task(
        self,
        status: str,
        task: NormalizedTask,
        *,
        todoist_id: str | None = None,
        error: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"status": status, "task": task.to_dict()}
        if todoist_id:
            payload["todoistId"] = todoist_id
        if error:
            payload["error"] = error
        self.send("todoist.task", **payload)

    def final(self, results: list[SyncResult], elapsed_ms: int) -> None:
        created = sum(1 for r in results if r.status == "created")
        self.send(
            "final",
            created=created,
            failed=len(results) - created,
            tasks=[r.to_dict() for r in results],
            elapsedMs=elapsed_ms,
        )

    def error(self, message: str, detail: str | None = None) -> None:
        payload: dict[str, Any] = {"message": message}
        if detail:
            payload["detail"] = detail
        self.send("error", **payload)

    def debug(self, kind: str, **payload: Any) -> None:
        """Diagnostic event (`debug.<kind>`); consumers ignore unknown types."""
        if self.debug_enabled:
            self.send(f"debug.{kind}", **payload)
