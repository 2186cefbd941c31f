# src/durascope/mcp/types.py
"""TypedDict definitions for MCP server return types.

These TypedDicts give static structure to the dicts returned by
TaskHubAnalyzer methods. At runtime they are plain dicts and serialize
identically via json.dumps() -- the MCP wire format is unchanged.

Naming convention:
  - {Noun}Record   -- items in a list
  - {Noun}Detail   -- dataclass_to_dict conversions (contract entities)
  - {Noun}Report   -- aggregate / analysis single-dict returns

Absent data is never an error. Tools return ``NotFoundResult`` for a
missing point lookup and ``EmptyResult`` for a listing with no items,
so a caller can tell "nothing there" apart from a storage failure
(which surfaces as an MCP protocol error).
"""

from typing import Any, NotRequired, Required, TypedDict

# ══════════════════════════════════════════════════════════════════════════════
# Group A -- Dataclass Mirror Types (for dataclass_to_dict conversions)
# ══════════════════════════════════════════════════════════════════════════════
# These mirror contracts/models.py after dataclass_to_dict conversion
# (datetime -> ISO str, timedelta -> seconds, enum -> str).

TaskHubDetail = dict[str, Any]
"""Task hub dict from ``dataclass_to_dict(TaskHub)``."""

OrchestrationDetail = dict[str, Any]
"""Instance dict from ``dataclass_to_dict(OrchestrationInstance)``."""

HistoryEventDetail = dict[str, Any]
"""Event dict from ``dataclass_to_dict(HistoryEvent)``."""

FailedActivityDetail = dict[str, Any]
"""Correlated failure dict from ``dataclass_to_dict(FailedActivity)``."""

QueueMessageDetail = dict[str, Any]
"""Peeked message dict from ``dataclass_to_dict(QueueMessage)``."""

OrchestrationSummaryDetail = dict[str, Any]
"""Status counts dict from ``dataclass_to_dict(OrchestrationSummary)``."""


# ══════════════════════════════════════════════════════════════════════════════
# Group B -- Sentinel Results
# ══════════════════════════════════════════════════════════════════════════════


class NotFoundResult(TypedDict):
    """A point lookup found nothing (instance, blob)."""

    not_found: str  # kind of thing looked up
    message: str


class EmptyResult(TypedDict, total=False):
    """A listing matched nothing.

    ``ignored_filters`` is present when malformed filters were dropped,
    which matters for reading an empty result correctly.
    """

    empty: Required[str]  # kind of thing listed
    message: Required[str]
    ignored_filters: list[str]


# ══════════════════════════════════════════════════════════════════════════════
# Group C -- Record and Report Types
# ══════════════════════════════════════════════════════════════════════════════


class OrchestrationListReport(TypedDict):
    """Return type for ``list_orchestrations`` and the status-preset listings."""

    task_hub: str
    count: int
    orchestrations: list[OrchestrationDetail]
    ignored_filters: NotRequired[list[str]]


class FailedOrchestrationRecord(TypedDict):
    """A failed instance as returned by ``get_failed_orchestrations``."""

    instance_id: str
    name: str | None
    created_time: str | None
    last_updated_time: str | None
    error_message: str | None


class HistoryReport(TypedDict):
    """Return type for the history tools (full log or one event kind)."""

    task_hub: str
    instance_id: str
    count: int
    events: list[HistoryEventDetail]


class FailedActivitiesReport(TypedDict):
    """Return type for ``get_failed_activities``."""

    task_hub: str
    instance_id: str
    count: int
    failed_activities: list[FailedActivityDetail]


class HistorySummaryReport(TypedDict):
    """Return type for ``get_history_summary``."""

    instance_id: str
    total_events: int
    event_counts: dict[str, int]  # dynamic event type names
    start_time: str | None
    end_time: str | None
    duration_seconds: float | None
    final_status: str | None
    activities_scheduled: int
    activities_completed: int
    activities_failed: int
    timers_created: int
    external_events: int
    sub_orchestrations_created: int


class QueueRecord(TypedDict):
    """A queue as returned by ``list_queues`` and ``get_all_queue_depths``."""

    name: str
    approximate_message_count: int
    type: str


class QueueDepthReport(TypedDict):
    """Return type for ``get_queue_depth``."""

    queue_name: str
    approximate_message_count: int


class QueueDepthsReport(TypedDict):
    """Return type for ``get_all_queue_depths``."""

    task_hub: str
    total_message_count: int
    queues: list[QueueRecord]


class PeekReport(TypedDict):
    """Return type for ``peek_queue_messages``."""

    queue_name: str
    count: int
    messages: list[QueueMessageDetail]


class ContainerListReport(TypedDict):
    """Return type for ``list_containers``."""

    task_hub: str
    containers: list[str]


class LargeMessageListReport(TypedDict):
    """Return type for ``list_large_messages``."""

    task_hub: str
    container: str
    count: int
    blobs: list[str]


class LargeMessageContent(TypedDict):
    """Return type for ``get_large_message_content``.

    ``content`` is the parsed document when ``content_type`` is
    ``application/json``, otherwise the raw text.
    """

    task_hub: str
    blob_name: str
    content_type: str
    size: int
    content: Any


# --- DiagnosticReport ---


class DiagnosticProblem(TypedDict, total=False):
    """A single problem in ``diagnose_task_hub``.

    Uses ``total=False`` because different problem types include
    different fields (``resources``, ``queues``, ``count``).
    """

    severity: Required[str]
    type: Required[str]
    message: Required[str]
    count: int
    resources: list[str]
    queues: list[QueueDepthReport]


class DiagnosticReport(TypedDict):
    """Return type for ``diagnose_task_hub``."""

    task_hub: str
    status: str
    problems: list[DiagnosticProblem]
    resources: TaskHubDetail
    summary: OrchestrationSummaryDetail | None
    total_queue_messages: int
    recommendations: list[str]
