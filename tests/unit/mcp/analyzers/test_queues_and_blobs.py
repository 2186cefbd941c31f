# tests/unit/mcp/analyzers/test_queues_and_blobs.py
"""Tests for queue and large-message inspection."""

from __future__ import annotations

from typing import Any

import pytest

from durascope.contracts.enums import QueueType
from durascope.mcp.analyzers.blobs import (
    get_large_message_content,
    large_messages_container,
    list_large_messages,
    list_task_hub_containers,
)
from durascope.mcp.analyzers.queues import (
    get_all_queue_depths,
    get_queue_depth,
    hub_queue_names,
    list_task_hub_queues,
    peek_messages,
    queue_type,
)
from durascope.storage.memory import MemoryQueueStore


class TestQueueType:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("myhub-control-00", QueueType.CONTROL),
            ("myhub-control-15", QueueType.CONTROL),
            ("myhub-workitems", QueueType.WORK_ITEM),
            ("myhub-poison", QueueType.OTHER),
        ],
    )
    def test_inferred_from_name(self, name: str, expected: QueueType) -> None:
        assert queue_type(name) == expected


class TestQueues:
    @pytest.mark.asyncio
    async def test_hub_queue_names_exclude_neighbor_hub(self, populated: Any) -> None:
        assert await hub_queue_names(populated.queues, "MyHub") == ["myhub-control-00", "myhub-control-01", "myhub-workitems"]

    @pytest.mark.asyncio
    async def test_list_with_depth_and_type(self, populated: Any) -> None:
        records = await list_task_hub_queues(populated.queues, "MyHub", pool_size=2)
        assert records == [
            {"name": "myhub-control-00", "approximate_message_count": 0, "type": "Control"},
            {"name": "myhub-control-01", "approximate_message_count": 2, "type": "Control"},
            {"name": "myhub-workitems", "approximate_message_count": 1, "type": "WorkItem"},
        ]

    @pytest.mark.asyncio
    async def test_all_depths_total(self, populated: Any) -> None:
        report = await get_all_queue_depths(populated.queues, "MyHub")
        assert report["total_message_count"] == 3
        assert len(report["queues"]) == 3

    @pytest.mark.asyncio
    async def test_single_depth(self, populated: Any) -> None:
        assert await get_queue_depth(populated.queues, "myhub-control-01") == {
            "queue_name": "myhub-control-01",
            "approximate_message_count": 2,
        }

    @pytest.mark.asyncio
    async def test_peek_clamped(self, queue_store: MemoryQueueStore) -> None:
        for i in range(40):
            queue_store.enqueue("q", f"m{i}")
        assert len(await peek_messages(queue_store, "q", 500)) == 32
        assert len(await peek_messages(queue_store, "q", 0)) == 1

    @pytest.mark.asyncio
    async def test_peek_missing_queue(self, queue_store: MemoryQueueStore) -> None:
        assert await peek_messages(queue_store, "nope") == []


class TestBlobs:
    def test_container_name_is_lower_case(self) -> None:
        assert large_messages_container("MyHub") == "myhub-largemessages"

    @pytest.mark.asyncio
    async def test_containers_of_hub_only(self, populated: Any) -> None:
        report = await list_task_hub_containers(populated.blobs, "MyHub")
        assert report == {"task_hub": "MyHub", "containers": ["myhub-largemessages", "myhub-leases"]}

    @pytest.mark.asyncio
    async def test_list_large_messages(self, populated: Any) -> None:
        report = await list_large_messages(populated.blobs, "MyHub", limit=1)
        assert report["container"] == "myhub-largemessages"
        assert report["count"] == 1
        assert report["blobs"] == ["order-003/input.json"]

    @pytest.mark.asyncio
    async def test_large_messages_of_hub_without_container(self, populated: Any) -> None:
        assert (await list_large_messages(populated.blobs, "Ghost"))["blobs"] == []

    @pytest.mark.asyncio
    async def test_json_content(self, populated: Any) -> None:
        content = await get_large_message_content(populated.blobs, "MyHub", "order-003/input.json")
        assert content is not None
        assert content["content_type"] == "application/json"
        assert content["content"] == {"items": [1, 2]}
        assert content["size"] == len('{"items": [1, 2]}')

    @pytest.mark.asyncio
    async def test_text_content(self, populated: Any) -> None:
        content = await get_large_message_content(populated.blobs, "MyHub", "order-003/note.txt")
        assert content is not None
        assert content["content_type"] == "text/plain"
        assert content["content"] == "not json"

    @pytest.mark.asyncio
    async def test_missing_blob(self, populated: Any) -> None:
        assert await get_large_message_content(populated.blobs, "MyHub", "nope") is None
