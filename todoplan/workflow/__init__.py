"""
Todoplan Workflow Engine.

Turns one natural language request into Todoist tasks while streaming
progress as NDJSON.

Architecture:
    Request -> [Intent] -> Scenario -> [Planner] -> Tasks -> [Executor] -> Todoist
                  ^                       ^                      ^
             (Local LLM)             (Local LLM)           (MCP tool calls)

Usage:
    from todoplan.workflow import PlanPipeline

    pipeline = PlanPipeline(get_runtime_config())
    await pipeline.run(request, EventStream(TextWriter(sys.stdout)))
"""

from .executor import build_task_arguments, sync_tasks
from .intent import classify_intent, determine_scenario
from .llm import LLMError, LLMResponse, get_llm_client
from .normalize import detect_priority_cue, normalize_task
from .pipeline import PlanContext, PlanPipeline
from .planner import PlanResult, generate_plan

__all__ = [
    "PlanPipeline",
    "PlanContext",
    "PlanResult",
    "classify_intent",
    "determine_scenario",
    "generate_plan",
    "normalize_task",
    "detect_priority_cue",
    "sync_tasks",
    "build_task_arguments",
    "get_llm_client",
    "LLMError",
    "LLMResponse",
]
