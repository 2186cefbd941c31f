# src/durascope/mcp/analyzers/discovery.py
"""Task hub discovery.

Functions: hub_name_from_table, discover_task_hubs, describe_task_hub.

A task hub has no catalog entry of its own. It is inferred from the
``<hub>Instances`` / ``<hub>History`` table names, then each companion
resource is probed on its own service: tables, queues and blob
containers are independent, and a hub with some resources missing
(history dropped by retention, queues deleted) is still reported.

All functions accept (records, queues, blobs) as their first parameters.
"""

from __future__ import annotations

import re

from durascope.contracts.models import TaskHub
from durascope.core.logging import get_logger
from durascope.core.pooling import gather_cancelling, gather_ordered
from durascope.storage.protocols import BlobStore, QueueStore, RecordStore

logger = get_logger(__name__)

TABLE_SUFFIXES: tuple[str, ...] = ("Instances", "History")


def hub_name_from_table(table: str) -> str | None:
    """Strip a task hub table suffix (case-insensitive).

    Returns:
        The hub name, or None if the table is not a task hub table
        (or the suffix is the whole name)
    """
    lowered = table.lower()
    for suffix in TABLE_SUFFIXES:
        if lowered.endswith(suffix.lower()):
            name = table[: -len(suffix)]
            return name or None
    return None


def _control_queue_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-control-\d+$")


async def describe_task_hub(records: RecordStore, queues: QueueStore, blobs: BlobStore, name: str) -> TaskHub:
    """Probe every resource a task hub may own.

    Absent resources are reported as False / 0, never raised.

    Args:
        records: Table store
        queues: Queue store
        blobs: Blob store
        name: Task hub name (any case for queues and containers)

    Returns:
        Snapshot of the hub's resources
    """
    # Queue and container names are always lower case
    prefix = name.lower()
    has_instances, has_history, queue_names, container_names = await gather_cancelling(
        records.table_exists(f"{name}Instances"),
        records.table_exists(f"{name}History"),
        queues.list_queues(prefix),
        blobs.list_containers(prefix),
    )

    control_pattern = _control_queue_pattern(prefix)
    lowered_queues = [q.lower() for q in queue_names]
    lowered_containers = {c.lower() for c in container_names}

    hub = TaskHub(
        name=name,
        has_instances_table=has_instances,
        has_history_table=has_history,
        control_queue_count=sum(1 for q in lowered_queues if control_pattern.match(q)),
        has_work_item_queue=f"{prefix}-workitems" in lowered_queues,
        has_large_messages_container=f"{prefix}-largemessages" in lowered_containers,
        has_leases_container=f"{prefix}-leases" in lowered_containers,
    )
    logger.debug("task_hub_described", task_hub=name, control_queues=hub.control_queue_count)
    return hub


async def discover_task_hubs(
    records: RecordStore,
    queues: QueueStore,
    blobs: BlobStore,
    *,
    pool_size: int = 8,
) -> list[TaskHub]:
    """Find every task hub in the storage account.

    Candidate names come from table names only. ``MyHubInstances`` and
    ``myhubHistory`` name the same hub; the spelling seen first wins.

    Emission order follows the table listing, but callers must not
    depend on it.

    Args:
        records: Table store
        queues: Queue store
        blobs: Blob store
        pool_size: Maximum hubs probed concurrently

    Returns:
        One TaskHub per distinct (case-insensitive) hub name
    """
    candidates: dict[str, str] = {}
    for table in await records.list_tables():
        name = hub_name_from_table(table)
        if name is not None and name.lower() not in candidates:
            candidates[name.lower()] = name

    hubs = await gather_ordered(
        list(candidates.values()),
        lambda name: describe_task_hub(records, queues, blobs, name),
        pool_size=pool_size,
    )
    # A table dropped between listing and probing leaves nothing to report
    hubs = [hub for hub in hubs if hub.has_instances_table or hub.has_history_table]
    logger.debug("task_hubs_discovered", count=len(hubs))
    return hubs
