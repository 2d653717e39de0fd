"""
LLM integration for todoplan.

Local-first approach using Ollama with fallback to OpenAI-compatible APIs.
Both backends accept a JSON schema and are used as one capability: given an
instruction and a schema, return JSON or raise LLMError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
from ollama import AsyncClient

from todoplan.runtime import RuntimeConfig, get_global_config
from todoplan.todoist.extract import strip_json_fence


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    raw_response: Any = None


class LLMError(Exception):
    """Error from LLM call."""

    pass


def get_llm_client(config: RuntimeConfig | None = None):
    """Get the appropriate LLM client based on configuration."""
    config = config or get_global_config()

    # Custom API endpoint (OpenAI-compatible)
    if config.llm_base_url and config.llm_api_key:
        return OpenAICompatibleClient(config.llm_base_url, config.llm_api_key, model=config.plan_model)

    # Default to Ollama
    return OllamaClient(model=config.plan_model)


class OllamaClient:
    """Client for local Ollama LLM."""

    def __init__(self, model: str, host: str | None = None):
        self.model = model
        self.host = host

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        format: str | dict | None = None,
        schema_name: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Send a chat request to Ollama."""
        model = model or self.model

        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens:
            options["num_predict"] = max_tokens

        try:
            kwargs: dict[str, Any] = {"model": model, "messages": messages, "think": False}
            if format:
                kwargs["format"] = format
            if options:
                kwargs["options"] = options

            response = await AsyncClient(host=self.host).chat(**kwargs)
            return LLMResponse(
                content=response.message.content or "",
                model=model,
                raw_response=response,
            )
        except Exception as e:
            raise LLMError(f"Ollama error: {e}") from e


class OpenAICompatibleClient:
    """Client for OpenAI-compatible APIs."""

    def __init__(self, base_url: str, api_key: str, model: str = "gpt-4o-mini", timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        format: str | dict | None = None,
        schema_name: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Send a chat request to an OpenAI-compatible API."""
        model = model or self.model

        body: dict[str, Any] = {"model": model, "messages": messages}
        if isinstance(format, dict):
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name or "response", "schema": format},
            }
        elif format == "json":
            body["response_format"] = {"type": "json_object"}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens:
            body["max_tokens"] = max_tokens

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/v1/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
                response.raise_for_status()
                data = response.json()

            return LLMResponse(
                content=data["choices"][0]["message"]["content"] or "",
                model=model,
                raw_response=data,
            )
        except Exception as e:
            raise LLMError(f"API error: {e}") from e


def parse_json_content(content: str) -> Any:
    """
    Parse a model answer as JSON.

    Handles thinking models that emit <think>...</think> before the answer
    and answers wrapped in markdown fences.
    """
    if "</think>" in content:
        content = content.split("</think>")[-1]
    content = strip_json_fence(content)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    # Find the outermost JSON value in the response
    for opener, closer in (("{", "}"), ("[", "]")):
        start = content.find(opener)
        end = content.rfind(closer) + 1
        if start >= 0 and end > start:
            try:
                return json.loads(content[start:end])
            except json.JSONDecodeError:
                continue
    raise LLMError(f"Could not parse JSON from response: {content[:200]}")


async def generate_json(
    client: Any,
    prompt: str,
    *,
    schema: dict[str, Any],
    schema_name: str,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> Any:
    """
    Run one schema-constrained generation and return the parsed JSON.

    Args:
        client: LLM client with an async `chat` method
        prompt: Full instruction for the model
        schema: JSON schema the answer must follow
        schema_name: Name reported to backends that want one
        model: Model override
        temperature: Sampling temperature
        max_tokens: Output token cap

    Returns:
        Parsed JSON value (not yet validated against the schema)
    """
    response = await client.chat(
        [{"role": "user", "content": prompt}],
        model=model,
        format=schema,
        schema_name=schema_name,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return parse_json_content(response.content)
