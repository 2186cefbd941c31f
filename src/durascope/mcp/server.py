# src/durascope/mcp/server.py
"""MCP server for Durable Task Framework task hub inspection.

A read-only server that exposes tools for discovering task hubs and
querying orchestration state, history, queues and large messages in an
Azure Storage account.

Usage:
    # Direct execution
    python -m durascope.mcp.server --storage-account mystorageaccount

    # Or as an MCP server
    durascope-mcp --storage-account mystorageaccount

The analyzer logic lives in ``mcp.analyzer`` (facade) and
``mcp.analyzers.*`` (domain submodules). This file contains only
MCP protocol machinery: argument validation, tool registration,
dispatcher, CLI entry point.
"""

import argparse
import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from durascope.contracts.enums import EventKind
from durascope.core.config import DurascopeSettings, load_settings, settings_from_env
from durascope.core.formatters import to_json
from durascope.core.logging import configure_logging, get_logger
from durascope.mcp.analyzer import TaskHubAnalyzer
from durascope.storage.protocols import MAX_PEEK_MESSAGES

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# MCP Argument Validation (external boundary)
#
# The MCP SDK delivers tool arguments as dict[str, Any]. The MCP client
# can send any JSON. We validate types immediately rather than letting
# bad types travel through to the Azure SDK or analyzer methods.
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class _ArgSpec:
    """Declarative schema for one MCP tool's arguments."""

    required_str: tuple[str, ...] = ()
    optional_str: tuple[str, ...] = ()  # defaults to None
    optional_int: tuple[tuple[str, int], ...] = ()  # (name, default)
    optional_int_or_none: tuple[str, ...] = ()  # defaults to None


_HUB = ("task_hub_name",)
_INSTANCE = ("task_hub_name", "instance_id")

_TOOL_ARGS: dict[str, _ArgSpec] = {
    # --- Task Hub Tools ---
    "list_task_hubs": _ArgSpec(),
    "get_task_hub_details": _ArgSpec(required_str=_HUB),
    "get_orchestration_summary": _ArgSpec(required_str=_HUB),
    "diagnose_task_hub": _ArgSpec(required_str=_HUB),
    # --- Orchestration Tools ---
    "list_orchestrations": _ArgSpec(
        required_str=_HUB,
        optional_str=("runtime_status", "name", "created_after", "created_before"),
        optional_int=(("limit", 100),),
    ),
    "get_orchestration": _ArgSpec(required_str=_INSTANCE),
    "search_orchestrations": _ArgSpec(
        required_str=(*_HUB, "instance_id_prefix"),
        optional_int=(("limit", 100),),
    ),
    "get_failed_orchestrations": _ArgSpec(required_str=_HUB, optional_int=(("limit", 50),)),
    "list_running_orchestrations": _ArgSpec(required_str=_HUB, optional_int=(("limit", 100),)),
    "list_pending_orchestrations": _ArgSpec(required_str=_HUB, optional_int=(("limit", 100),)),
    # --- History Tools ---
    "get_orchestration_history": _ArgSpec(required_str=_INSTANCE, optional_int_or_none=("limit",)),
    "get_activity_history": _ArgSpec(required_str=_INSTANCE),
    "get_sub_orchestration_history": _ArgSpec(required_str=_INSTANCE),
    "get_timer_history": _ArgSpec(required_str=_INSTANCE),
    "get_external_events": _ArgSpec(required_str=_INSTANCE),
    "get_failed_activities": _ArgSpec(required_str=_INSTANCE),
    "get_history_summary": _ArgSpec(required_str=_INSTANCE),
    # --- Queue Tools ---
    "list_queues": _ArgSpec(required_str=_HUB),
    "peek_queue_messages": _ArgSpec(
        required_str=("queue_name",),
        optional_int=(("max_messages", MAX_PEEK_MESSAGES),),
    ),
    "get_queue_depth": _ArgSpec(required_str=("queue_name",)),
    "get_all_queue_depths": _ArgSpec(required_str=_HUB),
    # --- Blob Tools ---
    "list_containers": _ArgSpec(required_str=_HUB),
    "list_large_messages": _ArgSpec(required_str=_HUB, optional_int=(("limit", 100),)),
    "get_large_message_content": _ArgSpec(required_str=(*_HUB, "blob_name")),
}

# History tools that are a bucket filter over the full log
_HISTORY_KIND_TOOLS: dict[str, EventKind] = {
    "get_activity_history": EventKind.ACTIVITY,
    "get_sub_orchestration_history": EventKind.SUB_ORCHESTRATION,
    "get_timer_history": EventKind.TIMER,
    "get_external_events": EventKind.EXTERNAL,
}


def _coerce_int(name: str, fname: str, val: Any) -> int:
    # JSON numbers may arrive as whole floats; convert to int
    if isinstance(val, float) and val.is_integer():
        val = int(val)
    if not isinstance(val, int) or isinstance(val, bool):
        raise TypeError(f"'{name}': '{fname}' must be integer, got {type(val).__name__}")
    return val


def _validate_tool_args(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    """Validate MCP tool arguments at the external boundary.

    Checks required fields exist, validates types (str, int), and
    applies defaults for optional fields. Returns a new dict with only
    the declared fields, preventing unexpected keys from leaking through.

    Raises:
        ValueError: Missing required field or unknown tool.
        TypeError: Field has wrong type.
    """
    spec = _TOOL_ARGS.get(name)
    if spec is None:
        raise ValueError(f"Unknown tool: {name}")

    arguments = arguments or {}
    validated: dict[str, Any] = {}

    for fname in spec.required_str:
        if fname not in arguments:
            raise ValueError(f"'{name}' requires '{fname}'")
        val = arguments[fname]
        if not isinstance(val, str):
            raise TypeError(f"'{name}': '{fname}' must be string, got {type(val).__name__}")
        if not val.strip():
            raise ValueError(f"'{name}': '{fname}' must not be empty")
        validated[fname] = val

    for fname in spec.optional_str:
        val = arguments.get(fname)
        if val is not None and not isinstance(val, str):
            raise TypeError(f"'{name}': '{fname}' must be string or null, got {type(val).__name__}")
        validated[fname] = val

    for fname, int_default in spec.optional_int:
        validated[fname] = _coerce_int(name, fname, arguments.get(fname, int_default))

    for fname in spec.optional_int_or_none:
        val = arguments.get(fname)
        validated[fname] = None if val is None else _coerce_int(name, fname, val)

    return validated


def _hub_property() -> dict[str, Any]:
    return {"type": "string", "description": "Task hub name (e.g. 'MyTaskHub')"}


def _instance_properties() -> dict[str, Any]:
    return {
        "task_hub_name": _hub_property(),
        "instance_id": {"type": "string", "description": "Orchestration instance ID"},
    }


def _tool_definitions() -> list[Tool]:
    """Tool metadata advertised to MCP clients."""
    return [
        # === Task Hub Tools ===
        Tool(
            name="list_task_hubs",
            description="Discover all task hubs in the storage account, with each hub's tables, queues and containers",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="get_task_hub_details",
            description="Show which tables, queues and blob containers exist for one task hub",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="get_orchestration_summary",
            description="Count orchestrations by runtime status. Scans the whole Instances table: slow on large hubs",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="diagnose_task_hub",
            description="Health check: missing resources, failed orchestrations, queue backlog. Start here when a hub misbehaves",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        # === Orchestration Tools ===
        Tool(
            name="list_orchestrations",
            description="List orchestration instances, filtered by status, name and creation time",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "runtime_status": {
                        "type": "string",
                        "description": "Filter by runtime status",
                        "enum": ["Running", "Completed", "Failed", "Pending", "Terminated", "Suspended", "ContinuedAsNew"],
                    },
                    "name": {"type": "string", "description": "Exact orchestration name"},
                    "created_after": {"type": "string", "description": "ISO 8601 lower bound on creation time (inclusive)"},
                    "created_before": {"type": "string", "description": "ISO 8601 upper bound on creation time (inclusive)"},
                    "limit": {"type": "integer", "description": "Max instances to return (default 100)", "default": 100},
                },
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="get_orchestration",
            description="Get the current state of one orchestration instance",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="search_orchestrations",
            description="Find orchestration instances whose instance ID starts with a prefix",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "instance_id_prefix": {"type": "string", "description": "Instance ID prefix"},
                    "limit": {"type": "integer", "description": "Max instances to return (default 100)", "default": 100},
                },
                "required": ["task_hub_name", "instance_id_prefix"],
            },
        ),
        Tool(
            name="get_failed_orchestrations",
            description="List failed orchestrations with the error message taken from each one's history",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "limit": {"type": "integer", "description": "Max instances to return (default 50)", "default": 50},
                },
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="list_running_orchestrations",
            description="List orchestrations in Running status",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "limit": {"type": "integer", "description": "Max instances to return (default 100)", "default": 100},
                },
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="list_pending_orchestrations",
            description="List orchestrations in Pending status (scheduled but not started)",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "limit": {"type": "integer", "description": "Max instances to return (default 100)", "default": 100},
                },
                "required": ["task_hub_name"],
            },
        ),
        # === History Tools ===
        Tool(
            name="get_orchestration_history",
            description="Get an orchestration's full execution history in sequence order",
            inputSchema={
                "type": "object",
                "properties": {
                    **_instance_properties(),
                    "limit": {"type": "integer", "description": "Return only the first N events (default: all)"},
                },
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_activity_history",
            description="Activity events only (TaskScheduled, TaskCompleted, TaskFailed)",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_sub_orchestration_history",
            description="Sub-orchestration events only (created, completed, failed)",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_timer_history",
            description="Durable timer events only (TimerCreated, TimerFired)",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_external_events",
            description="External events only (EventRaised, EventSent)",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_failed_activities",
            description="Failed activities with the activity name and failure reason",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        Tool(
            name="get_history_summary",
            description="Event counts by type, start and end time, duration and final status of an orchestration",
            inputSchema={
                "type": "object",
                "properties": _instance_properties(),
                "required": ["task_hub_name", "instance_id"],
            },
        ),
        # === Queue Tools ===
        Tool(
            name="list_queues",
            description="List a task hub's control and work-item queues with approximate depth",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="peek_queue_messages",
            description="Peek at queue messages without removing them",
            inputSchema={
                "type": "object",
                "properties": {
                    "queue_name": {"type": "string", "description": "Full queue name (e.g. 'mytaskhub-control-00')"},
                    "max_messages": {
                        "type": "integer",
                        "description": "Max messages to peek (1-32, default 32)",
                        "default": MAX_PEEK_MESSAGES,
                    },
                },
                "required": ["queue_name"],
            },
        ),
        Tool(
            name="get_queue_depth",
            description="Approximate message count of one queue",
            inputSchema={
                "type": "object",
                "properties": {"queue_name": {"type": "string", "description": "Full queue name"}},
                "required": ["queue_name"],
            },
        ),
        Tool(
            name="get_all_queue_depths",
            description="Approximate message counts of every queue in a task hub, with the total",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        # === Blob Tools ===
        Tool(
            name="list_containers",
            description="List a task hub's blob containers (large messages, leases)",
            inputSchema={
                "type": "object",
                "properties": {"task_hub_name": _hub_property()},
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="list_large_messages",
            description="List payloads too large for a queue message, stored as blobs",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "limit": {"type": "integer", "description": "Max blobs to list (default 100)", "default": 100},
                },
                "required": ["task_hub_name"],
            },
        ),
        Tool(
            name="get_large_message_content",
            description="Read one large message blob; JSON payloads are returned parsed",
            inputSchema={
                "type": "object",
                "properties": {
                    "task_hub_name": _hub_property(),
                    "blob_name": {"type": "string", "description": "Blob name from list_large_messages"},
                },
                "required": ["task_hub_name", "blob_name"],
            },
        ),
    ]


async def _dispatch(analyzer: TaskHubAnalyzer, name: str, args: dict[str, Any]) -> Any:
    """Route a validated tool call to the analyzer."""
    # === Task Hub Tools ===
    if name == "list_task_hubs":
        return await analyzer.list_task_hubs()
    elif name == "get_task_hub_details":
        return await analyzer.get_task_hub_details(args["task_hub_name"])
    elif name == "get_orchestration_summary":
        return await analyzer.get_orchestration_summary(args["task_hub_name"])
    elif name == "diagnose_task_hub":
        return await analyzer.diagnose_task_hub(args["task_hub_name"])
    # === Orchestration Tools ===
    elif name == "list_orchestrations":
        return await analyzer.list_orchestrations(
            task_hub=args["task_hub_name"],
            status=args["runtime_status"],
            name=args["name"],
            created_after=args["created_after"],
            created_before=args["created_before"],
            limit=args["limit"],
        )
    elif name == "get_orchestration":
        return await analyzer.get_orchestration(args["task_hub_name"], args["instance_id"])
    elif name == "search_orchestrations":
        return await analyzer.search_orchestrations(
            task_hub=args["task_hub_name"],
            instance_id_prefix=args["instance_id_prefix"],
            limit=args["limit"],
        )
    elif name == "get_failed_orchestrations":
        return await analyzer.get_failed_orchestrations(args["task_hub_name"], limit=args["limit"])
    elif name == "list_running_orchestrations":
        return await analyzer.list_running_orchestrations(args["task_hub_name"], limit=args["limit"])
    elif name == "list_pending_orchestrations":
        return await analyzer.list_pending_orchestrations(args["task_hub_name"], limit=args["limit"])
    # === History Tools ===
    elif name == "get_orchestration_history":
        return await analyzer.get_orchestration_history(args["task_hub_name"], args["instance_id"], limit=args["limit"])
    elif name in _HISTORY_KIND_TOOLS:
        return await analyzer.get_events_of_kind(args["task_hub_name"], args["instance_id"], _HISTORY_KIND_TOOLS[name])
    elif name == "get_failed_activities":
        return await analyzer.get_failed_activities(args["task_hub_name"], args["instance_id"])
    elif name == "get_history_summary":
        return await analyzer.get_history_summary(args["task_hub_name"], args["instance_id"])
    # === Queue Tools ===
    elif name == "list_queues":
        return await analyzer.list_queues(args["task_hub_name"])
    elif name == "peek_queue_messages":
        return await analyzer.peek_queue_messages(args["queue_name"], max_messages=args["max_messages"])
    elif name == "get_queue_depth":
        return await analyzer.get_queue_depth(args["queue_name"])
    elif name == "get_all_queue_depths":
        return await analyzer.get_all_queue_depths(args["task_hub_name"])
    # === Blob Tools ===
    elif name == "list_containers":
        return await analyzer.list_containers(args["task_hub_name"])
    elif name == "list_large_messages":
        return await analyzer.list_large_messages(args["task_hub_name"], limit=args["limit"])
    elif name == "get_large_message_content":
        return await analyzer.get_large_message_content(args["task_hub_name"], args["blob_name"])
    # _validate_tool_args already rejects unknown tools
    raise ValueError(f"Unknown tool: {name}")


def create_server(analyzer: TaskHubAnalyzer, *, tool_timeout_seconds: float = 120.0) -> Server:
    """Create MCP server with task hub inspection tools.

    Args:
        analyzer: Analyzer over the storage account
        tool_timeout_seconds: Cancel any tool call running longer than this

    Returns:
        Configured MCP Server
    """
    server = Server("durascope")

    @server.list_tools()  # type: ignore[misc, no-untyped-call, untyped-decorator]  # MCP SDK decorators lack type stubs
    async def list_tools() -> list[Tool]:
        """List available inspection tools."""
        return _tool_definitions()

    @server.call_tool()  # type: ignore[misc, untyped-decorator]  # MCP SDK decorators lack type stubs
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls.

        Arguments are validated before dispatch. ``_validate_tool_args``
        checks required fields, types, and defaults.
        """
        # ValueError/TypeError from validation are the caller's fault.
        try:
            args = _validate_tool_args(name, arguments)
        except (ValueError, TypeError) as e:
            return [TextContent(type="text", text=f"Invalid arguments: {e!s}")]

        # No blanket catch here. Storage failures and
        # analyzer bugs must propagate so they surface as MCP protocol
        # errors rather than being mistaken for an empty result.
        logger.debug("tool_called", tool=name)
        async with asyncio.timeout(tool_timeout_seconds):
            result = await _dispatch(analyzer, name, args)

        return [TextContent(type="text", text=to_json(result))]

    return server


async def run_server(settings: DurascopeSettings) -> None:
    """Run the MCP server with stdio transport."""
    analyzer = TaskHubAnalyzer.from_settings(settings)
    server = create_server(analyzer, tool_timeout_seconds=settings.server.tool_timeout_seconds)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await analyzer.close()


def _resolve_settings(args: argparse.Namespace) -> DurascopeSettings:
    """Settings from --config, else from flags and environment.

    Raises:
        SystemExit: On missing or invalid configuration
    """
    try:
        if args.config is not None:
            return load_settings(Path(args.config))

        connection_string: str | None = None
        if args.connection_string_env is not None:
            connection_string = os.environ.get(args.connection_string_env)
            if connection_string is None:
                sys.stderr.write(f"Error: environment variable {args.connection_string_env} is not set.\n")
                sys.exit(1)
        return settings_from_env(account_name=args.storage_account, connection_string=connection_string)
    except FileNotFoundError as e:
        sys.stderr.write(f"Error: {e}\n")
        sys.exit(1)
    except ValidationError as e:
        sys.stderr.write(f"Error: invalid configuration:\n{e}\n")
        sys.exit(1)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="durascope MCP Server - Durable Task Framework task hub inspection tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Storage account with Azure AD (az login, managed identity)
    durascope-mcp --storage-account mystorageaccount

    # Connection string (Azurite, local development)
    export AZURE_STORAGE_CONNECTION_STRING="UseDevelopmentStorage=true"
    durascope-mcp --connection-string-env AZURE_STORAGE_CONNECTION_STRING

    # Full configuration file
    durascope-mcp --config durascope.yaml --log-file ./durascope.log

Environment Variables:
    DTFX_STORAGE_ACCOUNT: Storage account if --storage-account is not given
    AZURE_STORAGE_CONNECTION_STRING: Used when no storage account is set
    AZURE_STORAGE_SAS_TOKEN: SAS token for the storage account
    DTFX_LOG_FILE: Log file if --log-file is not given
""",
    )
    parser.add_argument(
        "--storage-account",
        "-s",
        default=None,
        help="Azure Storage account name (authenticates with DefaultAzureCredential)",
    )
    parser.add_argument(
        "--connection-string-env",
        default=None,
        metavar="VAR",
        help="Environment variable holding a storage connection string",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="YAML configuration file (overrides the other storage options)",
    )
    parser.add_argument(
        "--log-file",
        "-l",
        default=None,
        help="Write logs to this file instead of stderr",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default from configuration, else WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    args = parser.parse_args()
    settings = _resolve_settings(args)

    # stdout carries the MCP protocol; logs go to stderr or a file
    log_file = args.log_file or settings.logging.log_file
    configure_logging(
        json_output=args.json_logs or settings.logging.json_output,
        level=args.log_level or settings.logging.level,
        log_file=Path(log_file) if log_file else None,
    )
    logger.info("server_starting", auth_method=settings.storage.auth_method)

    asyncio.run(run_server(settings))


if __name__ == "__main__":
    main()
