# src/durascope/contracts/enums.py
"""Status codes and event kinds read from DTFx storage.

Both runtime status and history event type are OPEN strings in storage:
the engine may write values this module does not know about. The enums
below name the values we classify; everything else passes through as a
plain string and must never crash a caller.
"""

from enum import StrEnum


class RuntimeStatus(StrEnum):
    """Known orchestration runtime statuses.

    Stored in the instances table (RuntimeStatus column).
    """

    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    PENDING = "Pending"
    TERMINATED = "Terminated"
    SUSPENDED = "Suspended"
    CONTINUED_AS_NEW = "ContinuedAsNew"


class EventType(StrEnum):
    """History event types that durascope classifies or correlates.

    Stored in the history table (EventType column).
    """

    EXECUTION_STARTED = "ExecutionStarted"
    EXECUTION_COMPLETED = "ExecutionCompleted"
    TASK_SCHEDULED = "TaskScheduled"
    TASK_COMPLETED = "TaskCompleted"
    TASK_FAILED = "TaskFailed"
    SUB_ORCHESTRATION_CREATED = "SubOrchestrationInstanceCreated"
    SUB_ORCHESTRATION_COMPLETED = "SubOrchestrationInstanceCompleted"
    SUB_ORCHESTRATION_FAILED = "SubOrchestrationInstanceFailed"
    TIMER_CREATED = "TimerCreated"
    TIMER_FIRED = "TimerFired"
    EVENT_RAISED = "EventRaised"
    EVENT_SENT = "EventSent"


class EventKind(StrEnum):
    """Semantic buckets for history events.

    UNCLASSIFIED is the fallback for event types outside every bucket
    (ExecutionStarted, OrchestratorStarted, types added by newer engines).
    """

    ACTIVITY = "activity"
    SUB_ORCHESTRATION = "sub_orchestration"
    TIMER = "timer"
    EXTERNAL = "external"
    UNCLASSIFIED = "unclassified"


class QueueType(StrEnum):
    """Role of a task hub queue, inferred from its name."""

    CONTROL = "Control"
    WORK_ITEM = "WorkItem"
    OTHER = "Other"
