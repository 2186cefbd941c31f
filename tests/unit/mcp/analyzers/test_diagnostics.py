# tests/unit/mcp/analyzers/test_diagnostics.py
"""Tests for the task hub health check."""

from __future__ import annotations

from typing import Any

import pytest

from durascope.mcp.analyzers.diagnostics import diagnose_task_hub
from durascope.storage.memory import MemoryBlobStore, MemoryQueueStore, MemoryRecordStore


def _get_problem(report: Any, problem_type: str) -> dict[str, Any] | None:
    for problem in report["problems"]:
        if problem["type"] == problem_type:
            return dict(problem)
    return None


@pytest.mark.asyncio
async def test_sample_hub_has_failures_and_unknown_status(populated: Any) -> None:
    report = await diagnose_task_hub(populated.records, populated.queues, populated.blobs, "MyHub")

    assert report["status"] == "WARNING"
    failed = _get_problem(report, "failed_orchestrations")
    assert failed is not None
    assert failed["count"] == 2
    unknown = _get_problem(report, "unknown_statuses")
    assert unknown is not None
    assert unknown["severity"] == "INFO"
    assert unknown["count"] == 1
    assert _get_problem(report, "missing_tables") is None
    assert _get_problem(report, "queue_backlog") is None
    assert report["summary"]["total_count"] == 6
    assert report["total_queue_messages"] == 3
    assert any("get_failed_orchestrations" in r for r in report["recommendations"])


@pytest.mark.asyncio
async def test_queue_backlog_flagged_at_threshold(populated: Any) -> None:
    report = await diagnose_task_hub(
        populated.records, populated.queues, populated.blobs, "MyHub", queue_backlog_threshold=2
    )

    backlog = _get_problem(report, "queue_backlog")
    assert backlog is not None
    assert backlog["queues"] == [{"queue_name": "myhub-control-01", "approximate_message_count": 2}]


@pytest.mark.asyncio
async def test_missing_hub_is_critical() -> None:
    report = await diagnose_task_hub(MemoryRecordStore(), MemoryQueueStore(), MemoryBlobStore(), "Ghost")

    assert report["status"] == "CRITICAL"
    tables = _get_problem(report, "missing_tables")
    assert tables is not None
    assert tables["resources"] == ["GhostInstances", "GhostHistory"]
    queues = _get_problem(report, "missing_queues")
    assert queues is not None
    assert queues["resources"] == ["ghost-control-*", "ghost-workitems"]
    assert report["summary"] is None


@pytest.mark.asyncio
async def test_healthy_hub_is_ok() -> None:
    records = MemoryRecordStore()
    records.insert("HubInstances", {"PartitionKey": "a", "RuntimeStatus": "Completed"})
    records.create_table("HubHistory")
    queues = MemoryQueueStore()
    queues.create_queue("hub-control-00")
    queues.create_queue("hub-workitems")

    report = await diagnose_task_hub(records, queues, MemoryBlobStore(), "Hub")

    assert report["status"] == "OK"
    assert report["problems"] == []
    assert report["recommendations"] == []
