"""
Todoplan CLI.

Commands:
    plan       Turn a natural language request into Todoist tasks (NDJSON on stdout)
    tools      List the Todoist MCP tool catalog and the resolved tools
    web        Start the HTTP server

Examples:
    todoplan plan "Call the dentist tomorrow at 9am"
    todoplan plan "I have chicken and rice, plan lunches for 3 days" -l cooking
    todoplan tools -v
    todoplan web -p 3000
"""

from __future__ import annotations

import argparse
import logging
import sys


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_plan(args: argparse.Namespace) -> int:
    """Handle plan command - run the pipeline and stream events to stdout."""
    import asyncio

    from todoplan.errors import ConfigurationError, InvalidRequest
    from todoplan.events import EventStream, TextWriter
    from todoplan.models import parse_plan_request
    from todoplan.runtime import get_runtime_config, set_global_config
    from todoplan.workflow import PlanPipeline

    body = {"prompt": args.prompt, "maxTasks": args.max_tasks}
    if args.timezone:
        body["timezone"] = args.timezone
    if args.due:
        body["due"] = args.due
    if args.preferences:
        body["preferences"] = args.preferences
    if args.labels:
        body["labels"] = args.labels
    if args.priority is not None:
        body["priority"] = args.priority

    try:
        request = parse_plan_request(body)
    except InvalidRequest as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    config = get_runtime_config(verbose=args.verbose or None)
    set_global_config(config)

    try:
        pipeline = PlanPipeline(config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    stream = EventStream(TextWriter(sys.stdout), debug=config.debug_events)
    try:
        asyncio.run(pipeline.run(request, stream))
    except KeyboardInterrupt:
        return 1

    return 0 if stream.terminal == "final" else 1


def cmd_tools(args: argparse.Namespace) -> int:
    """Handle tools command - show what the MCP server advertises."""
    import asyncio

    from todoplan.errors import ConfigurationError, ToolResolutionError
    from todoplan.runtime import get_runtime_config
    from todoplan.todoist import (
        LABEL_TOOL_ALIASES,
        PROJECT_TOOL_ALIASES,
        TodoistConnection,
        resolve_create_tool,
        resolve_list_tool,
    )

    config = get_runtime_config(verbose=args.verbose or None)
    try:
        url, token = config.require_todoist()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def load():
        async with TodoistConnection(url, token) as connection:
            return await connection.list_tools()

    try:
        catalog = asyncio.run(load())
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    print(f"Tools ({len(catalog)}):")
    for tool in catalog:
        if args.verbose and tool.description:
            print(f"  {tool.name}: {tool.description.splitlines()[0]}")
        else:
            print(f"  {tool.name}")
    print()

    project_tool = resolve_list_tool(catalog, PROJECT_TOOL_ALIASES)
    label_tool = resolve_list_tool(catalog, LABEL_TOOL_ALIASES)
    try:
        create_tool = resolve_create_tool(catalog)
    except ToolResolutionError:
        create_tool = None

    print(f"Projects: {project_tool.name if project_tool else '(none)'}")
    print(f"Labels:   {label_tool.name if label_tool else '(none)'}")
    print(f"Create:   {create_tool or '(none)'}")
    return 0 if create_tool else 1


def cmd_web(args: argparse.Namespace) -> int:
    """Handle web command - start the web server."""
    from todoplan.runtime import get_runtime_config, set_global_config
    from todoplan.web import run_server

    config = get_runtime_config()
    set_global_config(config)

    try:
        run_server(host=args.host, port=args.port, config=config)
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todoplan",
        description="Plan Todoist tasks from natural language with a local LLM.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # plan
    plan_parser = subparsers.add_parser(
        "plan",
        help="Turn a natural language request into Todoist tasks",
    )
    plan_parser.add_argument(
        "prompt",
        help="What you want to get done",
    )
    plan_parser.add_argument(
        "--timezone",
        help="IANA timezone used for natural language due strings",
    )
    plan_parser.add_argument(
        "--due",
        help="Deadline hint applied when a task has no due date",
    )
    plan_parser.add_argument(
        "--preferences",
        help="Free-form planning preferences",
    )
    plan_parser.add_argument(
        "-l",
        "--label",
        dest="labels",
        action="append",
        help="Preferred label (repeatable, up to 5)",
    )
    plan_parser.add_argument(
        "--priority",
        type=int,
        default=None,
        help="Default Todoist priority, 1 (lowest) to 4 (highest)",
    )
    plan_parser.add_argument(
        "--max-tasks",
        type=int,
        default=5,
        help="Upper bound on planned tasks, 1-10 (default: 5)",
    )
    plan_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging on stderr",
    )

    # tools
    tools_parser = subparsers.add_parser(
        "tools",
        help="List the Todoist MCP tools and which ones the planner uses",
    )
    tools_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show tool descriptions",
    )

    # web
    web_parser = subparsers.add_parser(
        "web",
        help="Start the HTTP server",
    )
    web_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    web_parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _setup_logging(getattr(args, "verbose", False))

    if args.command == "plan":
        return cmd_plan(args)
    elif args.command == "tools":
        return cmd_tools(args)
    elif args.command == "web":
        return cmd_web(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
