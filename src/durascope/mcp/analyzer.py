# src/durascope/mcp/analyzer.py
"""Thin facade for the task hub analyzer.

TaskHubAnalyzer delegates every method to the appropriate submodule in
``mcp.analyzers`` and shapes the result for the MCP wire format. Holds
only the three stores, the tuning settings, and ``close()``.
"""

from __future__ import annotations

from typing import Any

from durascope.contracts.enums import EventKind, RuntimeStatus
from durascope.contracts.models import HistoryEvent, OrchestrationInstance
from durascope.core.config import ConcurrencySettings, DiagnosticsSettings, DurascopeSettings
from durascope.core.formatters import dataclass_to_dict
from durascope.mcp.analyzers import aggregation, blobs, diagnostics, discovery, history, instances, queues
from durascope.mcp.types import (
    ContainerListReport,
    DiagnosticReport,
    EmptyResult,
    FailedActivitiesReport,
    FailedOrchestrationRecord,
    HistoryReport,
    HistorySummaryReport,
    LargeMessageContent,
    LargeMessageListReport,
    NotFoundResult,
    OrchestrationDetail,
    OrchestrationListReport,
    OrchestrationSummaryDetail,
    PeekReport,
    QueueDepthReport,
    QueueDepthsReport,
    QueueRecord,
    TaskHubDetail,
)
from durascope.storage.protocols import MAX_PEEK_MESSAGES, BlobStore, QueueStore, RecordStore


def _empty(kind: str, message: str, ignored_filters: list[str] | None = None) -> EmptyResult:
    result: EmptyResult = {"empty": kind, "message": message}
    if ignored_filters:
        result["ignored_filters"] = ignored_filters
    return result


def _not_found(kind: str, message: str) -> NotFoundResult:
    return {"not_found": kind, "message": message}


class TaskHubAnalyzer:
    """Read-only analyzer for DTFx task hubs in Azure Storage.

    Thin facade that delegates to domain-specific submodules:
    - discovery: Task hubs and their resources
    - instances: Orchestration listing, lookup, search
    - history: Event logs, correlation, summaries
    - aggregation: Status counts
    - queues / blobs: Queue depth, peek, large messages
    - diagnostics: Health check

    Every "nothing there" outcome is a labelled ``EmptyResult`` or
    ``NotFoundResult``; storage failures propagate as exceptions.
    """

    def __init__(
        self,
        records: RecordStore,
        queue_store: QueueStore,
        blob_store: BlobStore,
        *,
        concurrency: ConcurrencySettings | None = None,
        diagnostics_settings: DiagnosticsSettings | None = None,
        page_size: int = 1000,
        owner: Any = None,
    ) -> None:
        """Initialize analyzer over three stores.

        Args:
            records: Table store
            queue_store: Queue store
            blob_store: Blob store
            concurrency: Fan-out limits
            diagnostics_settings: Health check thresholds
            page_size: Table scan page size
            owner: Object with an async ``close()`` that owns the stores
        """
        self._records = records
        self._queues = queue_store
        self._blobs = blob_store
        self._concurrency = concurrency or ConcurrencySettings()
        self._diagnostics = diagnostics_settings or DiagnosticsSettings()
        self._page_size = page_size
        self._owner = owner

    @classmethod
    def from_settings(cls, settings: DurascopeSettings) -> TaskHubAnalyzer:
        """Build an analyzer over Azure Storage clients."""
        from durascope.storage.azure import AzureStorage

        storage = AzureStorage.from_settings(settings.storage)
        return cls(
            storage.records,
            storage.queues,
            storage.blobs,
            concurrency=settings.concurrency,
            diagnostics_settings=settings.diagnostics,
            page_size=settings.server.page_size,
            owner=storage,
        )

    async def close(self) -> None:
        """Close storage clients, if this analyzer owns them."""
        if self._owner is not None:
            await self._owner.close()

    # === Task Hub Tools (discovery, aggregation, diagnostics modules) ===

    async def list_task_hubs(self) -> list[TaskHubDetail] | EmptyResult:
        hubs = await discovery.discover_task_hubs(
            self._records,
            self._queues,
            self._blobs,
            pool_size=self._concurrency.max_probe_concurrency,
        )
        if not hubs:
            return _empty("task_hubs", "No task hubs found in the storage account")
        return [dataclass_to_dict(hub) for hub in hubs]

    async def get_task_hub_details(self, task_hub: str) -> TaskHubDetail:
        hub = await discovery.describe_task_hub(self._records, self._queues, self._blobs, task_hub)
        detail: TaskHubDetail = dataclass_to_dict(hub)
        return detail

    async def get_orchestration_summary(self, task_hub: str) -> OrchestrationSummaryDetail:
        summary = await aggregation.summarize_task_hub(self._records, task_hub, page_size=self._page_size)
        detail: OrchestrationSummaryDetail = dataclass_to_dict(summary)
        return detail

    async def diagnose_task_hub(self, task_hub: str) -> DiagnosticReport:
        return await diagnostics.diagnose_task_hub(
            self._records,
            self._queues,
            self._blobs,
            task_hub,
            queue_backlog_threshold=self._diagnostics.queue_backlog_threshold,
            pool_size=self._concurrency.max_probe_concurrency,
            page_size=self._page_size,
        )

    # === Orchestration Tools (instances module) ===

    def _listing(
        self,
        task_hub: str,
        found: list[OrchestrationInstance],
        ignored_filters: list[str] | None = None,
    ) -> OrchestrationListReport | EmptyResult:
        if not found:
            return _empty("orchestrations", f"No orchestrations found in task hub '{task_hub}'", ignored_filters)
        report: OrchestrationListReport = {
            "task_hub": task_hub,
            "count": len(found),
            "orchestrations": [dataclass_to_dict(i) for i in found],
        }
        if ignored_filters:
            report["ignored_filters"] = ignored_filters
        return report

    async def list_orchestrations(
        self,
        task_hub: str,
        status: str | None = None,
        name: str | None = None,
        created_after: str | None = None,
        created_before: str | None = None,
        limit: int = 100,
    ) -> OrchestrationListReport | EmptyResult:
        """List instances. Malformed time filters are dropped and reported."""
        after = instances.parse_time_filter("created_after", created_after)
        before = instances.parse_time_filter("created_before", created_before)
        ignored = [
            field
            for field, raw, parsed in (("created_after", created_after, after), ("created_before", created_before, before))
            if raw is not None and raw.strip() and parsed is None
        ]
        found = await instances.list_instances(
            self._records,
            task_hub,
            status=status,
            name=name,
            created_after=after,
            created_before=before,
            limit=limit,
            page_size=self._page_size,
        )
        return self._listing(task_hub, found, ignored)

    async def get_orchestration(self, task_hub: str, instance_id: str) -> OrchestrationDetail | NotFoundResult:
        instance = await instances.get_instance(self._records, task_hub, instance_id)
        if instance is None:
            return _not_found("orchestration", f"Orchestration '{instance_id}' not found in task hub '{task_hub}'")
        detail: OrchestrationDetail = dataclass_to_dict(instance)
        return detail

    async def search_orchestrations(
        self, task_hub: str, instance_id_prefix: str, limit: int = 100
    ) -> OrchestrationListReport | EmptyResult:
        found = await instances.search_instances(
            self._records, task_hub, instance_id_prefix, limit=limit, page_size=self._page_size
        )
        return self._listing(task_hub, found)

    async def get_failed_orchestrations(self, task_hub: str, limit: int = 50) -> list[FailedOrchestrationRecord] | EmptyResult:
        failed = await instances.list_failed_instances(
            self._records,
            task_hub,
            limit=limit,
            pool_size=self._concurrency.max_history_fetches,
            page_size=self._page_size,
        )
        if not failed:
            return _empty("failed_orchestrations", f"No failed orchestrations in task hub '{task_hub}'")
        return [
            {
                "instance_id": f.instance.instance_id,
                "name": f.instance.name,
                "created_time": f.instance.created_time.isoformat() if f.instance.created_time else None,
                "last_updated_time": f.instance.last_updated_time.isoformat() if f.instance.last_updated_time else None,
                "error_message": f.error_message,
            }
            for f in failed
        ]

    async def list_running_orchestrations(self, task_hub: str, limit: int = 100) -> OrchestrationListReport | EmptyResult:
        return await self.list_orchestrations(task_hub, status=RuntimeStatus.RUNNING, limit=limit)

    async def list_pending_orchestrations(self, task_hub: str, limit: int = 100) -> OrchestrationListReport | EmptyResult:
        return await self.list_orchestrations(task_hub, status=RuntimeStatus.PENDING, limit=limit)

    # === History Tools (history module) ===

    async def _history(self, task_hub: str, instance_id: str, limit: int | None = None) -> list[HistoryEvent]:
        return await history.get_history(self._records, task_hub, instance_id, limit=limit, page_size=self._page_size)

    def _history_report(
        self, task_hub: str, instance_id: str, events: list[HistoryEvent], kind: str
    ) -> HistoryReport | EmptyResult:
        if not events:
            return _empty(kind, f"No {kind.replace('_', ' ')} found for orchestration '{instance_id}' in task hub '{task_hub}'")
        return {
            "task_hub": task_hub,
            "instance_id": instance_id,
            "count": len(events),
            "events": [dataclass_to_dict(e) for e in events],
        }

    async def get_orchestration_history(
        self, task_hub: str, instance_id: str, limit: int | None = None
    ) -> HistoryReport | EmptyResult:
        events = await self._history(task_hub, instance_id, limit)
        return self._history_report(task_hub, instance_id, events, "history")

    async def get_events_of_kind(self, task_hub: str, instance_id: str, kind: EventKind) -> HistoryReport | EmptyResult:
        events = history.events_of_kind(await self._history(task_hub, instance_id), {kind})
        return self._history_report(task_hub, instance_id, events, f"{kind.value}_events")

    async def get_failed_activities(self, task_hub: str, instance_id: str) -> FailedActivitiesReport | EmptyResult:
        failures = history.correlate_failures(await self._history(task_hub, instance_id))
        if not failures:
            return _empty("failed_activities", f"No failed activities found for orchestration '{instance_id}'")
        return {
            "task_hub": task_hub,
            "instance_id": instance_id,
            "count": len(failures),
            "failed_activities": [dataclass_to_dict(f) for f in failures],
        }

    async def get_history_summary(self, task_hub: str, instance_id: str) -> HistorySummaryReport:
        """Summary of an instance's history; all zeros when it has none."""
        summary = history.summarize_history(await self._history(task_hub, instance_id))
        return {
            "instance_id": instance_id,
            "total_events": summary.total_events,
            "event_counts": summary.event_counts,
            "start_time": summary.start_time.isoformat() if summary.start_time else None,
            "end_time": summary.end_time.isoformat() if summary.end_time else None,
            "duration_seconds": summary.duration.total_seconds() if summary.duration is not None else None,
            "final_status": summary.final_status,
            "activities_scheduled": summary.activities_scheduled,
            "activities_completed": summary.activities_completed,
            "activities_failed": summary.activities_failed,
            "timers_created": summary.timers_created,
            "external_events": summary.external_events,
            "sub_orchestrations_created": summary.sub_orchestrations_created,
        }

    # === Queue Tools (queues module) ===

    async def list_queues(self, task_hub: str) -> list[QueueRecord] | EmptyResult:
        records = await queues.list_task_hub_queues(
            self._queues, task_hub, pool_size=self._concurrency.max_probe_concurrency
        )
        if not records:
            return _empty("queues", f"No queues found for task hub '{task_hub}'")
        return records

    async def peek_queue_messages(self, queue_name: str, max_messages: int = MAX_PEEK_MESSAGES) -> PeekReport | EmptyResult:
        messages = await queues.peek_messages(self._queues, queue_name, max_messages)
        if not messages:
            return _empty("messages", f"No messages found in queue '{queue_name}'")
        return {
            "queue_name": queue_name,
            "count": len(messages),
            "messages": [dataclass_to_dict(m) for m in messages],
        }

    async def get_queue_depth(self, queue_name: str) -> QueueDepthReport:
        return await queues.get_queue_depth(self._queues, queue_name)

    async def get_all_queue_depths(self, task_hub: str) -> QueueDepthsReport | EmptyResult:
        report = await queues.get_all_queue_depths(
            self._queues, task_hub, pool_size=self._concurrency.max_probe_concurrency
        )
        if not report["queues"]:
            return _empty("queues", f"No queues found for task hub '{task_hub}'")
        return report

    # === Blob Tools (blobs module) ===

    async def list_containers(self, task_hub: str) -> ContainerListReport | EmptyResult:
        report = await blobs.list_task_hub_containers(self._blobs, task_hub)
        if not report["containers"]:
            return _empty("containers", f"No blob containers found for task hub '{task_hub}'")
        return report

    async def list_large_messages(self, task_hub: str, limit: int = 100) -> LargeMessageListReport | EmptyResult:
        report = await blobs.list_large_messages(self._blobs, task_hub, limit=limit)
        if not report["blobs"]:
            return _empty("large_messages", f"No large messages found for task hub '{task_hub}'")
        return report

    async def get_large_message_content(self, task_hub: str, blob_name: str) -> LargeMessageContent | NotFoundResult:
        content = await blobs.get_large_message_content(self._blobs, task_hub, blob_name)
        if content is None:
            return _not_found("large_message", f"Large message '{blob_name}' not found for task hub '{task_hub}'")
        return content
