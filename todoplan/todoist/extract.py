"""
Payload extraction for Todoist MCP tool responses.

Servers disagree on where a tool puts its result: `structuredContent`, a
`json` content block, or JSON (sometimes fenced) inside a text block. The
accessors below are tried in order and the first one that yields a payload
wins. Nothing in here raises on malformed input; callers get None or [].
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_KEYS: tuple[str, ...] = (
    "projects",
    "labels",
    "data",
    "items",
    "results",
    "structuredContent",
)

JSON_MIME_TYPE = "application/json"


def as_mapping(response: Any) -> Mapping[str, Any]:
    """Coerce an MCP result (pydantic model or dict) into a mapping."""
    if isinstance(response, Mapping):
        return response
    dump = getattr(response, "model_dump", None)
    if callable(dump):
        return dump(exclude_none=True)
    return {}


def strip_json_fence(payload: str) -> str:
    """Remove a surrounding ```json fence if present."""
    trimmed = payload.strip()
    if not trimmed.startswith("```"):
        return trimmed
    fence_end = trimmed.rfind("```")
    first_break = trimmed.find("\n")
    if fence_end <= 0 or first_break == -1 or first_break > fence_end:
        return trimmed
    return trimmed[first_break + 1 : fence_end].strip()


def _content_blocks(response: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    content = response.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, Mapping)]


def _structured_content(response: Mapping[str, Any]) -> Any:
    if response.get("structuredContent") is not None:
        return response["structuredContent"]
    return response.get("structured_content")


def _json_block(response: Mapping[str, Any]) -> Any:
    blocks = _content_blocks(response)
    for block in blocks:
        if block.get("type") == "json" and block.get("json") is not None:
            return block["json"]
    for block in blocks:
        if block.get("mimeType") == JSON_MIME_TYPE and isinstance(block.get("text"), str):
            return _loads(block["text"])
    return None


def _text_block(response: Mapping[str, Any]) -> Any:
    text = extract_tool_text(response)
    if not text:
        return None
    return _loads(text)


def _loads(text: str) -> Any:
    try:
        return json.loads(strip_json_fence(text))
    except json.JSONDecodeError as e:
        logger.debug("[todoist.extract] unparseable payload: %s", e)
        return None


PAYLOAD_ACCESSORS: tuple[Callable[[Mapping[str, Any]], Any], ...] = (
    _structured_content,
    _json_block,
    _text_block,
)


def extract_tool_text(response: Any) -> str | None:
    """Return the first text block, preferring non-JSON blocks, fence-stripped."""
    blocks = [b for b in _content_blocks(as_mapping(response)) if b.get("type") == "text"]
    if not blocks:
        return None
    target = next(
        (b for b in blocks if b.get("mimeType") != JSON_MIME_TYPE and b.get("text")),
        None,
    ) or next((b for b in blocks if b.get("text")), None)
    if target is None:
        return None
    return strip_json_fence(str(target["text"]))


def parse_tool_json(response: Any) -> Any:
    """Return the first payload found by PAYLOAD_ACCESSORS, or None."""
    mapping = as_mapping(response)
    for accessor in PAYLOAD_ACCESSORS:
        payload = accessor(mapping)
        if payload is not None:
            return payload
    return None


def pluck_array(value: Any, keys: Iterable[str]) -> list | None:
    """
    Find the first list inside value.

    A list is returned as-is. For mappings each key is checked in order; a
    list under the key wins, a nested mapping is searched with the same keys.
    """
    if not value:
        return None
    if isinstance(value, list):
        return value
    if not isinstance(value, Mapping):
        return None
    keys = tuple(keys)
    for key in keys:
        candidate = value.get(key)
        if isinstance(candidate, list):
            return candidate
        if isinstance(candidate, Mapping):
            nested = pluck_array(candidate, keys)
            if nested is not None:
                return nested
    return None


def extract_array_payload(response: Any, preferred_keys: Iterable[str] | None = None) -> list:
    """Extract a list payload from a tool response; [] when there is none."""
    parsed = parse_tool_json(response)
    keys = tuple(preferred_keys) if preferred_keys else DEFAULT_COLLECTION_KEYS
    found = pluck_array(parsed, keys)
    return found if found is not None else []
