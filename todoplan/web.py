"""
Todoplan web server.

A FastAPI server that exposes the planning pipeline as a newline-delimited
JSON stream.

Usage:
    todoplan web                 # Start server on localhost:8000
    todoplan web -p 3000         # Custom port

The pipeline runs as its own task and writes into a queue; the response only
drains that queue. A client that disconnects stops receiving events but the
pipeline (and any Todoist calls it already issued) runs to completion.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from todoplan.errors import ConfigurationError, InvalidRequest
from todoplan.events import EventStream, QueueWriter
from todoplan.models import parse_plan_request
from todoplan.runtime import RuntimeConfig, get_global_config
from todoplan.workflow import PlanPipeline

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def check_origin(request: Request, allowed: tuple[str, ...]) -> None:
    """Reject requests from origins outside the configured list."""
    origin = request.headers.get("origin")
    if allowed and origin and origin not in allowed:
        raise HTTPException(status_code=403, detail="Forbidden")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """App lifespan handler; lets running plans finish on shutdown."""
    logger.info("Todoplan server starting...")
    yield
    pending = list(app.state.background)
    if pending:
        logger.info("Waiting for %d running plan(s)", len(pending))
        await asyncio.gather(*pending, return_exceptions=True)
    logger.info("Shutting down...")


def create_app(
    config: RuntimeConfig | None = None,
    *,
    pipeline_factory: Callable[[], Any] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Runtime configuration (default: global config)
        pipeline_factory: Builds a PlanPipeline per request

    Returns:
        Configured FastAPI app
    """
    config = config or get_global_config()
    if pipeline_factory is None:
        pipeline_factory = lambda: PlanPipeline(config)  # noqa: E731

    app = FastAPI(
        title="Todoplan",
        description="Natural language planning into Todoist",
        lifespan=lifespan,
    )
    app.state.background = set()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.frontend_origins) or ["*"],
        allow_methods=["OPTIONS", "POST"],
        allow_headers=["content-type"],
        max_age=600,
    )

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.post("/plan")
    async def plan(request: Request):
        """Stream intent detection, planning and Todoist sync as NDJSON."""
        check_origin(request, config.frontend_origins)

        try:
            body = await request.json()
        except ValueError:
            body = None

        try:
            plan_request = parse_plan_request(body)
        except InvalidRequest as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        try:
            pipeline = pipeline_factory()
        except ConfigurationError as e:
            logger.error("[plan] configuration error: %s", e)
            return JSONResponse({"error": str(e)}, status_code=503)

        queue: asyncio.Queue = asyncio.Queue()
        stream = EventStream(QueueWriter(queue), debug=config.debug_events)

        async def run_pipeline() -> None:
            try:
                await pipeline.run(plan_request, stream)
            finally:
                if not stream.closed:
                    queue.put_nowait(None)

        task = asyncio.create_task(run_pipeline())
        app.state.background.add(task)
        task.add_done_callback(app.state.background.discard)

        async def ndjson() -> AsyncGenerator[str, None]:
            while True:
                line = await queue.get()
                if line is None:
                    break
                yield line

        return StreamingResponse(
            ndjson(),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-store"},
        )

    return app


# =============================================================================
# Server Runner
# =============================================================================


def run_server(host: str = "127.0.0.1", port: int = 8000, config: RuntimeConfig | None = None):
    """
    Run the Todoplan web server.

    Args:
        host: Host to bind to
        port: Port to bind to
        config: Runtime configuration (default: global config)
    """
    import uvicorn

    app = create_app(config)
    logger.info("Todoplan server running at http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")
