# src/durascope/mcp/analyzers/diagnostics.py
"""Task hub health check.

Functions: diagnose_task_hub.

Accepts (records, queues, blobs) as its first parameters.
"""

from __future__ import annotations

from durascope.contracts.models import OrchestrationSummary
from durascope.core.formatters import dataclass_to_dict
from durascope.core.logging import get_logger
from durascope.mcp.analyzers.aggregation import summarize_task_hub
from durascope.mcp.analyzers.discovery import describe_task_hub
from durascope.mcp.analyzers.queues import list_task_hub_queues
from durascope.mcp.types import DiagnosticProblem, DiagnosticReport, QueueDepthReport
from durascope.storage.protocols import BlobStore, QueueStore, RecordStore

logger = get_logger(__name__)


def _overall_status(problems: list[DiagnosticProblem]) -> str:
    severities = {p["severity"] for p in problems}
    if "CRITICAL" in severities:
        return "CRITICAL"
    if "WARNING" in severities:
        return "WARNING"
    return "OK"


async def diagnose_task_hub(
    records: RecordStore,
    queues: QueueStore,
    blobs: BlobStore,
    task_hub: str,
    *,
    queue_backlog_threshold: int = 1000,
    pool_size: int = 8,
    page_size: int | None = None,
) -> DiagnosticReport:
    """What's wrong with this task hub right now?

    Checks resource layout, failed instances and queue backlog. This is
    the first tool to use when a hub misbehaves. Includes a full status
    scan of the Instances table, so it costs as much as
    ``get_orchestration_summary``.

    Args:
        records: Table store
        queues: Queue store
        blobs: Blob store
        task_hub: Task hub name
        queue_backlog_threshold: Depth at which a queue counts as backed up
        pool_size: Maximum concurrent queue depth reads
        page_size: Scan page size for the status summary

    Returns:
        Report with overall status, problems and recommendations
    """
    problems: list[DiagnosticProblem] = []
    recommendations: list[str] = []

    hub = await describe_task_hub(records, queues, blobs, task_hub)

    missing_tables = [
        table
        for table, present in ((hub.instances_table, hub.has_instances_table), (hub.history_table, hub.has_history_table))
        if not present
    ]
    if missing_tables:
        problems.append(
            {
                "severity": "CRITICAL",
                "type": "missing_tables",
                "resources": missing_tables,
                "message": f"{len(missing_tables)} task hub table(s) not found",
            }
        )
        recommendations.append("Use list_task_hubs to check the task hub name; table names are case-insensitive")

    missing_queues: list[str] = []
    if hub.control_queue_count == 0:
        missing_queues.append(f"{task_hub.lower()}-control-*")
    if not hub.has_work_item_queue:
        missing_queues.append(f"{task_hub.lower()}-workitems")
    if missing_queues:
        problems.append(
            {
                "severity": "WARNING",
                "type": "missing_queues",
                "resources": missing_queues,
                "message": "Task hub queues not found; no worker may have started against this hub",
            }
        )

    summary: OrchestrationSummary | None = None
    if hub.has_instances_table:
        summary = await summarize_task_hub(records, task_hub, page_size=page_size)
        if summary.failed_count > 0:
            problems.append(
                {
                    "severity": "WARNING",
                    "type": "failed_orchestrations",
                    "count": summary.failed_count,
                    "message": f"{summary.failed_count} orchestration(s) in Failed status",
                }
            )
            recommendations.append("Use get_failed_orchestrations to see error messages")
            recommendations.append("Use get_failed_activities(instance_id) to find the activity that failed")
        unclassified = summary.total_count - summary.classified_count
        if unclassified > 0:
            problems.append(
                {
                    "severity": "INFO",
                    "type": "unknown_statuses",
                    "count": unclassified,
                    "message": f"{unclassified} orchestration(s) with a missing or unrecognized runtime status",
                }
            )

    queue_records = await list_task_hub_queues(queues, task_hub, pool_size=pool_size)
    backlogged: list[QueueDepthReport] = [
        {"queue_name": q["name"], "approximate_message_count": q["approximate_message_count"]}
        for q in queue_records
        if q["approximate_message_count"] >= queue_backlog_threshold
    ]
    if backlogged:
        problems.append(
            {
                "severity": "WARNING",
                "type": "queue_backlog",
                "count": len(backlogged),
                "queues": backlogged,
                "message": f"{len(backlogged)} queue(s) at or above {queue_backlog_threshold} messages",
            }
        )
        recommendations.append("Use peek_queue_messages(queue_name) to inspect backed-up messages")
        recommendations.append("A growing work-item queue usually means too few activity workers")

    status = _overall_status(problems)
    logger.info("task_hub_diagnosed", task_hub=task_hub, status=status, problems=len(problems))
    return {
        "task_hub": task_hub,
        "status": status,
        "problems": problems,
        "resources": dataclass_to_dict(hub),
        "summary": dataclass_to_dict(summary),
        "total_queue_messages": sum(q["approximate_message_count"] for q in queue_records),
        "recommendations": recommendations,
    }
