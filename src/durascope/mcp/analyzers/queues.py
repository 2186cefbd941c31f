# src/durascope/mcp/analyzers/queues.py
"""Control and work-item queue inspection.

Functions: queue_type, hub_queue_names, list_task_hub_queues,
peek_messages, get_queue_depth, get_all_queue_depths.

Depths are the service's approximate message counts; they are not
consistent with each other or with the Instances table.

All functions accept the queue store as their first parameter.
"""

from __future__ import annotations

from durascope.contracts.enums import QueueType
from durascope.contracts.models import QueueMessage
from durascope.core.logging import get_logger
from durascope.core.pooling import gather_ordered
from durascope.mcp.types import QueueDepthReport, QueueDepthsReport, QueueRecord
from durascope.storage.protocols import MAX_PEEK_MESSAGES, QueueStore

logger = get_logger(__name__)


def queue_type(queue_name: str) -> QueueType:
    if "-control-" in queue_name:
        return QueueType.CONTROL
    if queue_name.endswith("-workitems"):
        return QueueType.WORK_ITEM
    return QueueType.OTHER


async def hub_queue_names(queues: QueueStore, task_hub: str) -> list[str]:
    """Queues named ``<hub>-...`` (queue names are lower case).

    The trailing dash keeps ``myhub`` from claiming ``myhub2``'s queues.
    """
    prefix = f"{task_hub.lower()}-"
    return [name for name in await queues.list_queues(prefix) if name.lower().startswith(prefix)]


async def list_task_hub_queues(queues: QueueStore, task_hub: str, *, pool_size: int = 8) -> list[QueueRecord]:
    """Every queue of a task hub with its depth and role."""
    names = await hub_queue_names(queues, task_hub)
    depths = await gather_ordered(names, queues.approximate_depth, pool_size=pool_size)
    return [
        {
            "name": name,
            "approximate_message_count": depth,
            "type": queue_type(name).value,
        }
        for name, depth in zip(names, depths, strict=True)
    ]


async def peek_messages(queues: QueueStore, queue_name: str, max_messages: int = MAX_PEEK_MESSAGES) -> list[QueueMessage]:
    """Peek without dequeuing. ``max_messages`` is clamped to 1..32."""
    count = max(1, min(max_messages, MAX_PEEK_MESSAGES))
    messages = await queues.peek(queue_name, count)
    logger.debug("queue_peeked", queue=queue_name, count=len(messages))
    return messages


async def get_queue_depth(queues: QueueStore, queue_name: str) -> QueueDepthReport:
    return {
        "queue_name": queue_name,
        "approximate_message_count": await queues.approximate_depth(queue_name),
    }


async def get_all_queue_depths(queues: QueueStore, task_hub: str, *, pool_size: int = 8) -> QueueDepthsReport:
    """Depth of every queue of a task hub, plus the total."""
    records = await list_task_hub_queues(queues, task_hub, pool_size=pool_size)
    return {
        "task_hub": task_hub,
        "total_message_count": sum(r["approximate_message_count"] for r in records),
        "queues": records,
    }
