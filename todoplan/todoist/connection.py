"""
Todoist MCP connection over streamable HTTP.

One connection is opened per plan request and closed exactly once. Tool
results are handed back as plain mappings so the extraction helpers can treat
SDK objects and test doubles the same way.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from todoplan.models import ToolDescriptor
from todoplan.todoist.extract import as_mapping

logger = logging.getLogger(__name__)


class TodoistConnection:
    """Client session against a Todoist MCP server."""

    def __init__(self, url: str, token: str, *, timeout: float = 30.0):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Open the transport and initialize the MCP session."""
        stack = AsyncExitStack()
        try:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(
                    self.url,
                    headers={"Authorization": f"Bearer {self.token}"},
                    timeout=self.timeout,
                )
            )
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except Exception:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        logger.debug("[todoist.connect] session ready at %s", self.url)

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self._require_session().list_tools()
        return [ToolDescriptor.from_tool(tool) for tool in result.tools]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        result = await self._require_session().call_tool(name, arguments or {})
        return dict(as_mapping(result))

    async def aclose(self) -> None:
        """Release the session and transport. Safe to call more than once."""
        stack, self._stack = self._stack, None
        self._session = None
        if stack is not None:
            await stack.aclose()

    async def __aenter__(self) -> "TodoistConnection":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError("Todoist MCP connection is not open")
        return self._session
