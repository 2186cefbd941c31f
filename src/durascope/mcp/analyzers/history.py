# src/durascope/mcp/analyzers/history.py
"""History retrieval, classification, correlation and summary.

Functions: to_history_event, sort_history, get_history, classify_event,
events_of_kind, correlate_failures, summarize_history, last_error_message.

Only ``get_history`` touches storage. Everything else is a pure function
over an already-ordered list of events, so the same history can be
fetched once and viewed several ways.

Event types are open strings. Types outside the known buckets (including
``None``) classify as UNCLASSIFIED and never raise.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Collection, Iterable
from datetime import datetime

from durascope.contracts.enums import EventKind, EventType
from durascope.contracts.models import FailedActivity, HistoryEvent, HistorySummary
from durascope.core.logging import get_logger
from durascope.storage.predicates import Clause, Predicate
from durascope.storage.protocols import Record, RecordStore

logger = get_logger(__name__)

UNKNOWN_ACTIVITY = "Unknown"
UNKNOWN_EVENT_TYPE = "Unknown"

KIND_EVENT_TYPES: dict[EventKind, frozenset[str]] = {
    EventKind.ACTIVITY: frozenset(
        {
            EventType.TASK_SCHEDULED,
            EventType.TASK_COMPLETED,
            EventType.TASK_FAILED,
        }
    ),
    EventKind.SUB_ORCHESTRATION: frozenset(
        {
            EventType.SUB_ORCHESTRATION_CREATED,
            EventType.SUB_ORCHESTRATION_COMPLETED,
            EventType.SUB_ORCHESTRATION_FAILED,
        }
    ),
    EventKind.TIMER: frozenset({EventType.TIMER_CREATED, EventType.TIMER_FIRED}),
    EventKind.EXTERNAL: frozenset({EventType.EVENT_RAISED, EventType.EVENT_SENT}),
}

_KIND_BY_EVENT_TYPE: dict[str, EventKind] = {
    event_type: kind for kind, event_types in KIND_EVENT_TYPES.items() for event_type in event_types
}


def _as_datetime(value: object) -> datetime | None:
    return value if isinstance(value, datetime) else None


def _as_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _as_int(value: object) -> int | None:
    # bool is an int subclass; a boolean is never a correlation ID
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _as_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def to_history_event(record: Record) -> HistoryEvent:
    """Map a History table entity to a HistoryEvent.

    The engine records the event time in ``_Timestamp``; the service
    ``Timestamp`` (last write) is the fallback.
    """
    timestamp = _as_datetime(record.get("_Timestamp")) or _as_datetime(record.get("Timestamp"))
    return HistoryEvent(
        instance_id=record["PartitionKey"],
        sequence_number=record["RowKey"],
        event_type=_as_str(record.get("EventType")),
        timestamp=timestamp,
        name=_as_str(record.get("Name")),
        input=_as_str(record.get("Input")),
        result=_as_str(record.get("Result")),
        task_scheduled_id=_as_int(record.get("TaskScheduledId")),
        scheduled_time=_as_datetime(record.get("ScheduledTime")),
        fire_at=_as_datetime(record.get("FireAt")),
        orchestration_status=_as_str(record.get("OrchestrationStatus")),
        execution_id=_as_str(record.get("ExecutionId")),
        reason=_as_str(record.get("Reason")),
        is_played=_as_bool(record.get("IsPlayed")),
    )


def sort_history(events: Iterable[HistoryEvent]) -> list[HistoryEvent]:
    """Order events by sequence number.

    Sequence numbers are compared as strings (ordinal), matching the
    table service's RowKey order. The sort is stable.
    """
    return sorted(events, key=lambda event: event.sequence_number)


async def get_history(
    records: RecordStore,
    task_hub: str,
    instance_id: str,
    *,
    limit: int | None = None,
    page_size: int | None = None,
) -> list[HistoryEvent]:
    """Fetch an instance's full history in sequence order.

    Every event of the partition is read and sorted BEFORE ``limit`` is
    applied, so a limited result is always the first N events in log
    order, never an arbitrary window.

    Args:
        records: Table store
        task_hub: Task hub name
        instance_id: Instance (partition) to read
        limit: Keep only the first N events after sorting
        page_size: Scan page size

    Returns:
        Events ascending by sequence number (empty if none or no table)
    """
    predicate = Predicate.all_of(Clause("PartitionKey", "eq", instance_id))
    events = [
        to_history_event(record)
        async for record in records.scan(f"{task_hub}History", predicate, page_size=page_size)
    ]
    events = sort_history(events)
    if limit is not None:
        events = events[: max(limit, 0)]
    logger.debug("history_fetched", task_hub=task_hub, instance_id=instance_id, count=len(events))
    return events


def classify_event(event_type: str | None) -> EventKind:
    """Bucket an event type; unknown and missing types are UNCLASSIFIED."""
    if event_type is None:
        return EventKind.UNCLASSIFIED
    return _KIND_BY_EVENT_TYPE.get(event_type, EventKind.UNCLASSIFIED)


def events_of_kind(history: Iterable[HistoryEvent], kinds: Collection[EventKind]) -> list[HistoryEvent]:
    """Events whose kind is in ``kinds``, in their original order."""
    return [event for event in history if classify_event(event.event_type) in kinds]


def correlate_failures(history: Iterable[HistoryEvent]) -> list[FailedActivity]:
    """Join each TaskFailed event to the TaskScheduled event it refers to.

    Two passes: index TaskScheduled events by ``task_scheduled_id``
    (first one wins on duplicates), then resolve each TaskFailed event.
    A failure with no matching scheduled event (or no ID at all) gets
    the activity name ``"Unknown"``. The failure reason is ``reason``,
    falling back to ``result``.
    """
    events = list(history)

    scheduled: dict[int, HistoryEvent] = {}
    for event in events:
        if event.event_type == EventType.TASK_SCHEDULED and event.task_scheduled_id is not None:
            scheduled.setdefault(event.task_scheduled_id, event)

    failures: list[FailedActivity] = []
    for event in events:
        if event.event_type != EventType.TASK_FAILED:
            continue
        match = scheduled.get(event.task_scheduled_id) if event.task_scheduled_id is not None else None
        activity_name = match.name if match is not None and match.name is not None else UNKNOWN_ACTIVITY
        failures.append(
            FailedActivity(
                sequence_number=event.sequence_number,
                timestamp=event.timestamp,
                activity_name=activity_name,
                task_scheduled_id=event.task_scheduled_id,
                failure_reason=event.reason if event.reason is not None else event.result,
            )
        )
    return failures


def _first_of_type(history: Iterable[HistoryEvent], event_type: EventType) -> HistoryEvent | None:
    return next((event for event in history if event.event_type == event_type), None)


def summarize_history(history: Iterable[HistoryEvent]) -> HistorySummary:
    """Event-type histogram plus start/end milestones.

    Start and end are the FIRST ExecutionStarted and the FIRST
    ExecutionCompleted events. Duration needs both timestamps. An empty
    history gives an all-zero summary.
    """
    events = list(history)
    event_counts = Counter(event.event_type or UNKNOWN_EVENT_TYPE for event in events)

    started = _first_of_type(events, EventType.EXECUTION_STARTED)
    completed = _first_of_type(events, EventType.EXECUTION_COMPLETED)
    start_time = started.timestamp if started is not None else None
    end_time = completed.timestamp if completed is not None else None

    return HistorySummary(
        total_events=len(events),
        event_counts=dict(event_counts),
        start_time=start_time,
        end_time=end_time,
        duration=end_time - start_time if start_time is not None and end_time is not None else None,
        final_status=completed.orchestration_status if completed is not None else None,
        activities_scheduled=event_counts[EventType.TASK_SCHEDULED],
        activities_completed=event_counts[EventType.TASK_COMPLETED],
        activities_failed=event_counts[EventType.TASK_FAILED],
        timers_created=event_counts[EventType.TIMER_CREATED],
        external_events=event_counts[EventType.EVENT_RAISED],
        sub_orchestrations_created=event_counts[EventType.SUB_ORCHESTRATION_CREATED],
    )


def last_error_message(history: Iterable[HistoryEvent], event_types: Collection[str]) -> str | None:
    """``reason`` (else ``result``) of the last event of the given types."""
    last: HistoryEvent | None = None
    for event in history:
        if event.event_type in event_types:
            last = event
    if last is None:
        return None
    return last.reason if last.reason is not None else last.result
