# tests/conftest.py
"""Shared test fixtures.

Every test runs against the in-memory adapters in ``durascope.storage.memory``;
the Azure adapters have their own mock-based tests.

Fixtures:
- records / queue_store / blob_store: Empty stores
- populated: The three stores holding one task hub, "MyHub" (see below)
- analyzer: TaskHubAnalyzer over ``populated``

Sample task hub "MyHub":
- Instances: order-001 (Running), order-002 (Completed), order-003 (Failed),
  invoice-1 (Failed), ship-001 (Pending), odd-001 (status "Rewinding")
- History: order-003 has the ExecutionStarted / TaskScheduled("Ship") /
  TaskFailed("timeout") / ExecutionCompleted(Failed) log, inserted out of
  order; order-002 has a completed log touching every event bucket;
  invoice-1 failed in a sub-orchestration
- Queues: myhub-control-00 (empty), myhub-control-01 (2 messages),
  myhub-workitems (1 message), plus myhub2-workitems for a neighbor hub
- Containers: myhub-largemessages (one JSON blob, one text blob),
  myhub-leases, myhub2-leases

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import Phase, Verbosity, settings

from durascope.mcp.analyzer import TaskHubAnalyzer
from durascope.storage.memory import MemoryBlobStore, MemoryQueueStore, MemoryRecordStore

# =============================================================================
# Hypothesis Profiles
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Sample Data
# =============================================================================

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
HUB = "MyHub"


@dataclass
class Stores:
    records: MemoryRecordStore
    queues: MemoryQueueStore
    blobs: MemoryBlobStore


def _instance(instance_id: str, name: str, status: str, day: int) -> dict[str, object]:
    created = T0 + timedelta(days=day)
    return {
        "PartitionKey": instance_id,
        "RowKey": "",
        "Name": name,
        "RuntimeStatus": status,
        "Input": '{"id": "' + instance_id + '"}',
        "CreatedTime": created,
        "LastUpdatedTime": created + timedelta(minutes=5),
        "ExecutionId": f"exec-{instance_id}",
    }


def _event(instance_id: str, seq: str, event_type: str, **props: object) -> dict[str, object]:
    return {"PartitionKey": instance_id, "RowKey": seq, "EventType": event_type, **props}


def populate_sample_hub(stores: Stores) -> None:
    records = stores.records
    records.insert_many(
        f"{HUB}Instances",
        [
            _instance("order-001", "ProcessOrder", "Running", 0),
            _instance("order-002", "ProcessOrder", "Completed", 1),
            _instance("order-003", "ProcessOrder", "Failed", 2),
            _instance("invoice-1", "SendInvoice", "Failed", 3),
            _instance("ship-001", "Ship", "Pending", 4),
            _instance("odd-001", "Ship", "Rewinding", 5),
        ],
    )
    records.insert_many(
        f"{HUB}History",
        [
            # order-003, deliberately out of sequence order
            _event(
                "order-003",
                "0004",
                "ExecutionCompleted",
                OrchestrationStatus="Failed",
                Result="Orchestration failed: timeout",
                _Timestamp=T0 + timedelta(seconds=90),
            ),
            _event("order-003", "0001", "ExecutionStarted", Name="ProcessOrder", _Timestamp=T0),
            _event("order-003", "0003", "TaskFailed", TaskScheduledId=1, Reason="timeout"),
            _event("order-003", "0002", "TaskScheduled", Name="Ship", TaskScheduledId=1),
            # order-002
            _event("order-002", "0001", "ExecutionStarted", Name="ProcessOrder", _Timestamp=T0),
            _event("order-002", "0002", "TaskScheduled", Name="Charge", TaskScheduledId=0),
            _event("order-002", "0003", "TaskCompleted", TaskScheduledId=0, Result='"ok"'),
            _event("order-002", "0004", "TimerCreated", FireAt=T0 + timedelta(minutes=1)),
            _event("order-002", "0005", "TimerFired", FireAt=T0 + timedelta(minutes=1)),
            _event("order-002", "0006", "EventRaised", Name="Approval", Input="true"),
            _event(
                "order-002",
                "0007",
                "ExecutionCompleted",
                OrchestrationStatus="Completed",
                _Timestamp=T0 + timedelta(minutes=2),
            ),
            # invoice-1
            _event("invoice-1", "0001", "ExecutionStarted", Name="SendInvoice", _Timestamp=T0),
            _event("invoice-1", "0002", "SubOrchestrationInstanceCreated", Name="RenderPdf"),
            _event("invoice-1", "0003", "SubOrchestrationInstanceFailed", Reason="child crashed"),
        ],
    )

    stores.queues.create_queue("myhub-control-00")
    stores.queues.enqueue("myhub-control-01", '{"type": "ExecutionStarted"}')
    stores.queues.enqueue("myhub-control-01", '{"type": "TimerFired"}')
    stores.queues.enqueue("myhub-workitems", '{"type": "TaskScheduled"}')
    stores.queues.enqueue("myhub2-workitems", '{"type": "TaskScheduled"}')

    stores.blobs.upload_text("myhub-largemessages", "order-003/input.json", '{"items": [1, 2]}')
    stores.blobs.upload_text("myhub-largemessages", "order-003/note.txt", "not json")
    stores.blobs.create_container("myhub-leases")
    stores.blobs.create_container("myhub2-leases")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def records() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def queue_store() -> MemoryQueueStore:
    return MemoryQueueStore()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def populated(records: MemoryRecordStore, queue_store: MemoryQueueStore, blob_store: MemoryBlobStore) -> Stores:
    stores = Stores(records, queue_store, blob_store)
    populate_sample_hub(stores)
    return stores


@pytest.fixture
def analyzer(populated: Stores) -> TaskHubAnalyzer:
    return TaskHubAnalyzer(populated.records, populated.queues, populated.blobs)
