"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core,
storage or mcp. Settings classes live in durascope.core.config.

Import patterns:
    from durascope.contracts import HistoryEvent, RuntimeStatus
    from durascope.core.config import DurascopeSettings
"""

from durascope.contracts.enums import EventKind, EventType, QueueType, RuntimeStatus
from durascope.contracts.errors import ConfigurationError, DurascopeError, StorageUnavailableError
from durascope.contracts.models import (
    FailedActivity,
    FailedOrchestration,
    HistoryEvent,
    HistorySummary,
    OrchestrationInstance,
    OrchestrationSummary,
    QueueMessage,
    TaskHub,
)

__all__ = [
    "ConfigurationError",
    "DurascopeError",
    "EventKind",
    "EventType",
    "FailedActivity",
    "FailedOrchestration",
    "HistoryEvent",
    "HistorySummary",
    "OrchestrationInstance",
    "OrchestrationSummary",
    "QueueMessage",
    "QueueType",
    "RuntimeStatus",
    "StorageUnavailableError",
    "TaskHub",
]
