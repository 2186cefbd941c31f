# src/durascope/contracts/models.py
"""Read-only projections over DTFx storage.

Every entity here is a transient, per-request snapshot of data owned by the
Durable Task engine. Nothing is persisted by durascope. String fields that
the engine treats as open vocabularies (runtime status, event type) stay
``str`` rather than enum so unknown values pass through untouched.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from durascope.contracts.enums import RuntimeStatus


@dataclass(frozen=True, slots=True)
class TaskHub:
    """A task hub discovered from storage resource names.

    ``name`` is the case-insensitive identity of the hub; the spelling is the
    one first seen on a table name.
    """

    name: str
    has_instances_table: bool = False
    has_history_table: bool = False
    control_queue_count: int = 0
    has_work_item_queue: bool = False
    has_large_messages_container: bool = False
    has_leases_container: bool = False

    @property
    def instances_table(self) -> str:
        return f"{self.name}Instances"

    @property
    def history_table(self) -> str:
        return f"{self.name}History"


@dataclass(frozen=True, slots=True)
class OrchestrationInstance:
    """Current state of one orchestration, from the ``<hub>Instances`` table."""

    instance_id: str
    task_hub_name: str
    name: str | None = None
    runtime_status: str | None = None
    input: str | None = None
    output: str | None = None
    custom_status: str | None = None
    created_time: datetime | None = None
    last_updated_time: datetime | None = None
    completed_time: datetime | None = None
    execution_id: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryEvent:
    """One append-only entry of the ``<hub>History`` table.

    ``sequence_number`` is the RowKey: a sort token, compared as a string.
    """

    instance_id: str
    sequence_number: str
    event_type: str | None = None
    timestamp: datetime | None = None
    name: str | None = None
    input: str | None = None
    result: str | None = None
    task_scheduled_id: int | None = None
    scheduled_time: datetime | None = None
    fire_at: datetime | None = None
    orchestration_status: str | None = None
    execution_id: str | None = None
    reason: str | None = None
    is_played: bool | None = None


@dataclass(frozen=True, slots=True)
class OrchestrationSummary:
    """Status counts for every instance of a task hub.

    ``total_count`` includes instances whose status is outside the known
    set, so the per-status counts may sum to less than the total.
    """

    task_hub_name: str
    total_count: int = 0
    running_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    pending_count: int = 0
    terminated_count: int = 0
    suspended_count: int = 0
    continued_as_new_count: int = 0

    @classmethod
    def from_counts(cls, task_hub_name: str, total_count: int, counts: dict[RuntimeStatus, int]) -> "OrchestrationSummary":
        return cls(
            task_hub_name=task_hub_name,
            total_count=total_count,
            running_count=counts.get(RuntimeStatus.RUNNING, 0),
            completed_count=counts.get(RuntimeStatus.COMPLETED, 0),
            failed_count=counts.get(RuntimeStatus.FAILED, 0),
            pending_count=counts.get(RuntimeStatus.PENDING, 0),
            terminated_count=counts.get(RuntimeStatus.TERMINATED, 0),
            suspended_count=counts.get(RuntimeStatus.SUSPENDED, 0),
            continued_as_new_count=counts.get(RuntimeStatus.CONTINUED_AS_NEW, 0),
        )

    @property
    def classified_count(self) -> int:
        return (
            self.running_count
            + self.completed_count
            + self.failed_count
            + self.pending_count
            + self.terminated_count
            + self.suspended_count
            + self.continued_as_new_count
        )


@dataclass(frozen=True, slots=True)
class HistorySummary:
    """Aggregate view over one instance's history."""

    total_events: int = 0
    event_counts: dict[str, int] = field(default_factory=dict)
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: timedelta | None = None
    final_status: str | None = None
    activities_scheduled: int = 0
    activities_completed: int = 0
    activities_failed: int = 0
    timers_created: int = 0
    external_events: int = 0
    sub_orchestrations_created: int = 0


@dataclass(frozen=True, slots=True)
class FailedActivity:
    """A TaskFailed event joined to the TaskScheduled event that started it."""

    sequence_number: str
    timestamp: datetime | None
    activity_name: str
    task_scheduled_id: int | None
    failure_reason: str | None


@dataclass(frozen=True, slots=True)
class FailedOrchestration:
    """A Failed instance with the error message found in its history."""

    instance: OrchestrationInstance
    error_message: str | None


@dataclass(frozen=True, slots=True)
class QueueMessage:
    """A peeked (not dequeued) control or work-item queue message."""

    message_id: str
    queue_name: str
    message_text: str | None = None
    inserted_on: datetime | None = None
    expires_on: datetime | None = None
    dequeue_count: int = 0
