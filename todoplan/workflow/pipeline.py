"""
Planning pipeline.

    request -> connect -> catalog -> metadata -> intent -> scenario -> hints
            -> plan -> sync -> final

Each stage takes the current PlanContext and returns a new one, so nothing is
mutated after it has been computed. Once the stream has started every failure
becomes a single terminal `error` event, and the Todoist connection is closed
on every exit path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from todoplan.events import EventStream
from todoplan.models import (
    IntentDecision,
    MetadataSnapshot,
    PlanHints,
    PlanRequest,
    PlanScenario,
    SyncResult,
    ToolDescriptor,
)
from todoplan.runtime import RuntimeConfig
from todoplan.todoist.connection import TodoistConnection
from todoplan.todoist.metadata import discover_metadata, infer_labels, infer_project

from .executor import sync_tasks
from .intent import classify_intent, determine_scenario
from .llm import get_llm_client
from .normalize import detect_priority_cue
from .planner import PlanResult, generate_plan

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to generate the plan"


@dataclass(frozen=True)
class PlanContext:
    """Everything computed so far for one request."""

    request: PlanRequest
    catalog: tuple[ToolDescriptor, ...] = ()
    metadata: MetadataSnapshot = field(default_factory=MetadataSnapshot)
    decision: IntentDecision | None = None
    scenario: PlanScenario | None = None
    hints: PlanHints = field(default_factory=PlanHints)
    plan: PlanResult | None = None


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class PlanPipeline:
    """Runs one plan request end to end against an event stream."""

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        llm: Any = None,
        connection_factory: Callable[[], Any] | None = None,
    ):
        self.config = config
        self.llm = llm if llm is not None else get_llm_client(config)
        if connection_factory is None:
            # Raises ConfigurationError before any event is written
            url, token = config.require_todoist()
            connection_factory = lambda: TodoistConnection(url, token)  # noqa: E731
        self.connection_factory = connection_factory

    async def run(self, request: PlanRequest, stream: EventStream) -> list[SyncResult] | None:
        """
        Execute the pipeline, writing events to stream.

        Returns:
            The sync results, or None when the run ended with an `error` event
        """
        started = time.monotonic()
        connection = None
        try:
            stream.status("mcp:connect", "Connecting to Todoist MCP")
            connection = self.connection_factory()
            await connection.connect()

            context = PlanContext(request=request)
            context = await self._load_catalog(context, connection, stream)
            context = await self._discover(context, connection, stream)
            context = await self._classify(context, stream)
            context = self._infer_hints(context, stream)
            context = await self._generate(context, stream)
            results = await self._sync(context, connection, stream)

            stream.final(results, _elapsed_ms(started))
            return results
        except Exception as e:
            logger.exception("[plan] pipeline failed")
            stream.error(FAILURE_MESSAGE, str(e) or type(e).__name__)
            return None
        finally:
            await self._close(connection)

    # Stages -------------------------------------------------------------------

    async def _load_catalog(self, context: PlanContext, connection: Any, stream: EventStream) -> PlanContext:
        try:
            catalog = tuple(await connection.list_tools())
        except Exception as e:
            logger.warning("[todoist.tools] unable to list MCP tools: %s", e)
            stream.debug("error", stage="tools", message=str(e))
            return context
        logger.debug("[todoist.tools] %s", [tool.name for tool in catalog])
        stream.debug("tools", tools=[tool.to_dict() for tool in catalog])
        return replace(context, catalog=catalog)

    async def _discover(self, context: PlanContext, connection: Any, stream: EventStream) -> PlanContext:
        stream.status("metadata:discover", "Loading Todoist projects and labels")
        metadata = await discover_metadata(connection, context.catalog)
        stream.debug("metadata", **metadata.to_dict())
        return replace(context, metadata=metadata)

    async def _classify(self, context: PlanContext, stream: EventStream) -> PlanContext:
        stream.status("intent:detect", "Analyzing the request intent")
        decision = await classify_intent(self.llm, context.request, model=self.config.intent_model)
        scenario = determine_scenario(decision, context.request)
        stream.status("intent:classified", f"Detected scenario: {scenario.intent}")
        return replace(context, decision=decision, scenario=scenario)

    def _infer_hints(self, context: PlanContext, stream: EventStream) -> PlanContext:
        prompt = context.request.prompt
        hints = PlanHints(
            priority=detect_priority_cue(prompt),
            project=infer_project(prompt, context.metadata),
            labels=infer_labels(prompt, context.metadata),
        )
        stream.debug("inference", **hints.to_dict())
        return replace(context, hints=hints)

    async def _generate(self, context: PlanContext, stream: EventStream) -> PlanContext:
        stream.status("ai:plan", "Planning tasks")
        plan = await generate_plan(
            self.llm,
            context.request,
            context.scenario,
            context.decision,
            context.metadata,
            context.hints,
            model=self.config.plan_model,
        )
        stream.plan(plan.summary, plan.tasks, context.scenario.intent)
        return replace(context, plan=plan)

    async def _sync(self, context: PlanContext, connection: Any, stream: EventStream) -> list[SyncResult]:
        stream.status("todoist:sync", f"Creating {len(context.plan.tasks)} task(s) in Todoist")
        return await sync_tasks(connection, context.plan.tasks, context.catalog, context.request, stream)

    async def _close(self, connection: Any) -> None:
        if connection is None:
            return
        try:
            await connection.aclose()
        except Exception as e:
            logger.warning("[todoist.connect] failed to close MCP client: %s", e)
