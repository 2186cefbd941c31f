# src/durascope/mcp/analyzers/instances.py
"""Orchestration instance queries against the ``<hub>Instances`` table.

Functions: parse_time_filter, instance_predicate, to_instance,
list_instances, get_instance, search_instances, list_failed_instances.

Every query criterion contributes at most one clause; clauses are ANDed
and absent criteria contribute nothing. ``limit`` bounds the records
read: scans are closed as soon as enough records have been taken, so a
bounded listing of a large hub costs one page, not a full scan.

All query functions accept the record store as their first parameter.
"""

from __future__ import annotations

import re
from collections.abc import AsyncGenerator
from contextlib import aclosing
from datetime import UTC, datetime
from typing import Any

from durascope.contracts.enums import EventType, RuntimeStatus
from durascope.contracts.models import FailedOrchestration, OrchestrationInstance
from durascope.core.logging import get_logger
from durascope.core.pooling import gather_ordered
from durascope.mcp.analyzers.history import get_history, last_error_message
from durascope.storage.predicates import Clause, Predicate
from durascope.storage.protocols import Record, RecordStore

logger = get_logger(__name__)

_OFFSET_GAP = re.compile(r"\s+([+-]\d{2}:?\d{2}|Z)$")

# Instances are keyed (instanceId, "")
INSTANCE_ROW_KEY = ""

_FAILURE_EVENT_TYPES = frozenset(
    {
        EventType.TASK_FAILED,
        EventType.SUB_ORCHESTRATION_FAILED,
        EventType.EXECUTION_COMPLETED,
    }
)


def parse_time_filter(field: str, value: str | None) -> datetime | None:
    """Parse an ISO 8601 filter value.

    Only ISO 8601 is accepted. Date and time may be separated by a space,
    and whitespace before the UTC offset is tolerated
    (``2024-01-15 10:00:00 +02:00``). Anything else is malformed.

    Malformed values are dropped (treated as absent) with a warning, so
    a typo widens the result instead of failing the query. Naive values
    are taken as UTC.

    Args:
        field: Filter name, for the warning
        value: Raw value from the caller

    Returns:
        Aware datetime, or None if the value is absent or malformed
    """
    if value is None or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(_OFFSET_GAP.sub(r"\1", value.strip()))
    except ValueError:
        logger.warning("time_filter_ignored", field=field, value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def instance_predicate(
    *,
    status: str | None = None,
    name: str | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
) -> Predicate:
    """Build the AND-joined filter for an instance listing.

    Empty strings count as absent. Both time bounds are inclusive.
    """
    return Predicate.all_of(
        Clause("RuntimeStatus", "eq", status) if status else None,
        Clause("Name", "eq", name) if name else None,
        Clause("CreatedTime", "ge", created_after) if created_after is not None else None,
        Clause("CreatedTime", "le", created_before) if created_before is not None else None,
    )


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_datetime(value: Any) -> datetime | None:
    return value if isinstance(value, datetime) else None


def to_instance(record: Record, task_hub: str) -> OrchestrationInstance:
    """Map an Instances table entity to an OrchestrationInstance."""
    return OrchestrationInstance(
        instance_id=record["PartitionKey"],
        task_hub_name=task_hub,
        name=_as_str(record.get("Name")),
        runtime_status=_as_str(record.get("RuntimeStatus")),
        input=_as_str(record.get("Input")),
        output=_as_str(record.get("Output")),
        custom_status=_as_str(record.get("CustomStatus")),
        created_time=_as_datetime(record.get("CreatedTime")),
        last_updated_time=_as_datetime(record.get("LastUpdatedTime")),
        completed_time=_as_datetime(record.get("CompletedTime")),
        execution_id=_as_str(record.get("ExecutionId")),
    )


async def _take(cursor: AsyncGenerator[Record, None], limit: int) -> list[Record]:
    """Read at most ``limit`` records, then close the cursor."""
    taken: list[Record] = []
    if limit <= 0:
        return taken
    async with aclosing(cursor):
        async for record in cursor:
            taken.append(record)
            if len(taken) >= limit:
                break
    return taken


async def list_instances(
    records: RecordStore,
    task_hub: str,
    *,
    status: str | None = None,
    name: str | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    limit: int = 100,
    page_size: int = 1000,
) -> list[OrchestrationInstance]:
    """List instances of a task hub, optionally filtered.

    With no criteria this is an unfiltered scan bounded by ``limit``.
    No ordering is promised across instances.

    Args:
        records: Table store
        task_hub: Task hub name
        status: Exact runtime status
        name: Exact orchestration name
        created_after: Inclusive lower bound on CreatedTime
        created_before: Inclusive upper bound on CreatedTime
        limit: Maximum instances returned
        page_size: Upper bound on the scan page size

    Returns:
        Up to ``limit`` instances (empty if the table does not exist)
    """
    predicate = instance_predicate(status=status, name=name, created_after=created_after, created_before=created_before)
    cursor = records.scan(f"{task_hub}Instances", predicate, page_size=max(1, min(limit, page_size)))
    rows = await _take(cursor, limit)
    logger.debug("instances_listed", task_hub=task_hub, count=len(rows), filtered=bool(predicate))
    return [to_instance(row, task_hub) for row in rows]


async def get_instance(records: RecordStore, task_hub: str, instance_id: str) -> OrchestrationInstance | None:
    """Point lookup by instance ID.

    Returns:
        The instance, or None if it (or the table) does not exist
    """
    record = await records.get_entity(f"{task_hub}Instances", instance_id, INSTANCE_ROW_KEY)
    if record is None:
        return None
    return to_instance(record, task_hub)


async def search_instances(
    records: RecordStore,
    task_hub: str,
    prefix: str,
    *,
    limit: int = 100,
    page_size: int = 1000,
) -> list[OrchestrationInstance]:
    """Find instances whose ID starts with ``prefix``.

    Expressed as the key range ``[prefix, prefix + U+FFFF)`` since the
    table service has no prefix operator.
    """
    predicate = Predicate.key_prefix(prefix)
    cursor = records.scan(f"{task_hub}Instances", predicate, page_size=max(1, min(limit, page_size)))
    rows = await _take(cursor, limit)
    logger.debug("instances_searched", task_hub=task_hub, prefix=prefix, count=len(rows))
    return [to_instance(row, task_hub) for row in rows]


async def list_failed_instances(
    records: RecordStore,
    task_hub: str,
    *,
    limit: int = 50,
    pool_size: int = 8,
    page_size: int = 1000,
) -> list[FailedOrchestration]:
    """Failed instances with the error message found in their history.

    One history read per failed instance, at most ``pool_size`` in
    flight. Results keep the listing order whatever order the history
    reads complete in.

    The error message is ``reason`` (else ``result``) of the LAST
    TaskFailed, SubOrchestrationInstanceFailed or ExecutionCompleted
    event, or None when the history has none of them.
    """
    failed = await list_instances(
        records,
        task_hub,
        status=RuntimeStatus.FAILED,
        limit=limit,
        page_size=page_size,
    )

    async def _with_reason(instance: OrchestrationInstance) -> FailedOrchestration:
        history = await get_history(records, task_hub, instance.instance_id, page_size=page_size)
        return FailedOrchestration(
            instance=instance,
            error_message=last_error_message(history, _FAILURE_EVENT_TYPES),
        )

    return await gather_ordered(failed, _with_reason, pool_size=pool_size)
