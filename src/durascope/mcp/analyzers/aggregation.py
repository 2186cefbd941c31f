# src/durascope/mcp/analyzers/aggregation.py
"""Status counts over a whole task hub.

Functions: summarize_task_hub.

There is no index by status in the Instances table, so this is a full
O(n) scan. Only the RuntimeStatus column is read. Expensive on large
hubs; nothing here caps it.
"""

from __future__ import annotations

from durascope.contracts.enums import RuntimeStatus
from durascope.contracts.models import OrchestrationSummary
from durascope.core.logging import get_logger
from durascope.storage.protocols import RecordStore

logger = get_logger(__name__)

_STATUS_BY_LOWER: dict[str, RuntimeStatus] = {status.value.lower(): status for status in RuntimeStatus}


async def summarize_task_hub(records: RecordStore, task_hub: str, *, page_size: int | None = None) -> OrchestrationSummary:
    """Count instances by runtime status.

    Status matching is case-insensitive. Every instance counts toward
    ``total_count``; an instance whose status is missing or not one of
    the known values counts toward nothing else, so the per-status
    counts may sum to less than the total.

    Args:
        records: Table store
        task_hub: Task hub name
        page_size: Scan page size

    Returns:
        Status counts (all zero if the table does not exist)
    """
    counts: dict[RuntimeStatus, int] = dict.fromkeys(RuntimeStatus, 0)
    total = 0
    unclassified = 0
    async for record in records.scan(f"{task_hub}Instances", select=["RuntimeStatus"], page_size=page_size):
        total += 1
        raw = record.get("RuntimeStatus")
        status = _STATUS_BY_LOWER.get(raw.lower()) if isinstance(raw, str) else None
        if status is None:
            unclassified += 1
        else:
            counts[status] += 1

    logger.debug("task_hub_summarized", task_hub=task_hub, total=total, unclassified=unclassified)
    return OrchestrationSummary.from_counts(task_hub, total, counts)
