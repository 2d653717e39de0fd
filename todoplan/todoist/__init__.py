"""
Todoist MCP integration.

The planner never hard-codes the server's tool names. Everything here adapts
to the advertised catalog:
- resolver: alias rules and keyword heuristics for list tools, fixed
  preference order for the creation tool
- extract: payload lookup across response envelopes
- metadata: concurrent project/label discovery and prompt inference
- connection: streamable-HTTP MCP client session
"""

from .connection import TodoistConnection
from .extract import extract_array_payload, extract_tool_text, parse_tool_json, pluck_array
from .metadata import discover_metadata, infer_labels, infer_project
from .resolver import (
    LABEL_TOOL_ALIASES,
    PROJECT_TOOL_ALIASES,
    ListToolConfig,
    ToolAlias,
    is_bulk_create_tool,
    matches_list_tool,
    resolve_create_tool,
    resolve_list_tool,
)

__all__ = [
    # Connection
    "TodoistConnection",
    # Extraction
    "extract_array_payload",
    "extract_tool_text",
    "parse_tool_json",
    "pluck_array",
    # Metadata
    "discover_metadata",
    "infer_labels",
    "infer_project",
    # Resolution
    "LABEL_TOOL_ALIASES",
    "PROJECT_TOOL_ALIASES",
    "ListToolConfig",
    "ToolAlias",
    "is_bulk_create_tool",
    "matches_list_tool",
    "resolve_create_tool",
    "resolve_list_tool",
]
