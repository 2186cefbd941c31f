# src/durascope/mcp/__init__.py
"""MCP (Model Context Protocol) server for DTFx task hub inspection.

Provides read-only tools over an Azure Storage account:
- list_task_hubs / get_task_hub_details: Discover hubs and their resources
- get_orchestration_summary: Instance counts by runtime status
- diagnose_task_hub: Health check (missing resources, failures, backlog)
- list_orchestrations / search_orchestrations / get_orchestration
- get_failed_orchestrations: Failed instances with error messages
- get_orchestration_history and the per-kind history views
- get_failed_activities: Failed activities joined to their names
- get_history_summary: Event counts, duration, final status
- list_queues / peek_queue_messages / get_queue_depth / get_all_queue_depths
- list_containers / list_large_messages / get_large_message_content
"""

from durascope.mcp.server import create_server, main

__all__ = ["create_server", "main"]
