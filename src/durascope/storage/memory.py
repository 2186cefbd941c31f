# src/durascope/storage/memory.py
"""In-memory storage adapters.

Used by the test suite and for running the server against a canned
task hub without an Azure account. Behavior mirrors the Azure adapters:
missing resources are empty, scans honor predicates and projections,
and scans yield to the event loop between pages.

Scans return records in insertion order, NOT key order. The table
service does not promise log order for history either, so callers must
sort whatever they need sorted.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from durascope.contracts.models import QueueMessage
from durascope.storage.predicates import Predicate
from durascope.storage.protocols import MAX_PEEK_MESSAGES, Record

_DEFAULT_PAGE_SIZE = 1000


class MemoryRecordStore:
    """Tables held as lists of entity dicts.

    Table names are case-insensitive, as in Azure Table storage; the
    spelling used at creation is the one listed.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[Record]] = {}
        self._names: dict[str, str] = {}

    def create_table(self, table: str) -> None:
        self._names.setdefault(table.lower(), table)
        self._tables.setdefault(table.lower(), [])

    def drop_table(self, table: str) -> None:
        self._names.pop(table.lower(), None)
        self._tables.pop(table.lower(), None)

    def insert(self, table: str, entity: dict[str, Any]) -> None:
        """Add an entity, creating the table if needed.

        ``PartitionKey`` is required; ``RowKey`` defaults to ``""`` and
        ``Timestamp`` to now.
        """
        if "PartitionKey" not in entity:
            raise ValueError("entity requires a PartitionKey")
        record: Record = {"RowKey": "", "Timestamp": datetime.now(UTC), **entity}
        self.create_table(table)
        self._tables[table.lower()].append(record)

    def insert_many(self, table: str, entities: Iterable[dict[str, Any]]) -> None:
        for entity in entities:
            self.insert(table, entity)

    async def list_tables(self) -> list[str]:
        await asyncio.sleep(0)
        return list(self._names.values())

    async def table_exists(self, table: str) -> bool:
        await asyncio.sleep(0)
        return table.lower() in self._tables

    async def scan(
        self,
        table: str,
        predicate: Predicate | None = None,
        *,
        select: Sequence[str] | None = None,
        page_size: int | None = None,
    ) -> AsyncGenerator[Record, None]:
        rows = list(self._tables.get(table.lower(), ()))
        page = page_size or _DEFAULT_PAGE_SIZE
        for start in range(0, len(rows), page):
            # page boundary: the Azure adapter awaits the next HTTP page here
            await asyncio.sleep(0)
            for row in rows[start : start + page]:
                if predicate is not None and not predicate.matches(row):
                    continue
                if select is None:
                    yield dict(row)
                else:
                    yield {name: row[name] for name in select if name in row}

    async def get_entity(self, table: str, partition_key: str, row_key: str) -> Record | None:
        await asyncio.sleep(0)
        for row in self._tables.get(table.lower(), ()):
            if row["PartitionKey"] == partition_key and row["RowKey"] == row_key:
                return dict(row)
        return None


class MemoryQueueStore:
    """Queues held as lists of messages."""

    def __init__(self) -> None:
        self._queues: dict[str, list[QueueMessage]] = {}

    def create_queue(self, queue: str) -> None:
        self._queues.setdefault(queue, [])

    def enqueue(self, queue: str, message_text: str, *, message_id: str | None = None) -> QueueMessage:
        messages = self._queues.setdefault(queue, [])
        now = datetime.now(UTC)
        message = QueueMessage(
            message_id=message_id or f"{queue}-{len(messages)}",
            queue_name=queue,
            message_text=message_text,
            inserted_on=now,
            expires_on=None,
            dequeue_count=0,
        )
        messages.append(message)
        return message

    async def list_queues(self, prefix: str) -> list[str]:
        await asyncio.sleep(0)
        return sorted(name for name in self._queues if name.startswith(prefix))

    async def peek(self, queue: str, max_count: int = MAX_PEEK_MESSAGES) -> list[QueueMessage]:
        await asyncio.sleep(0)
        return list(self._queues.get(queue, ())[: min(max_count, MAX_PEEK_MESSAGES)])

    async def approximate_depth(self, queue: str) -> int:
        await asyncio.sleep(0)
        return len(self._queues.get(queue, ()))


class MemoryBlobStore:
    """Containers held as name -> text dicts."""

    def __init__(self) -> None:
        self._containers: dict[str, dict[str, str]] = {}

    def create_container(self, container: str) -> None:
        self._containers.setdefault(container, {})

    def upload_text(self, container: str, blob: str, text: str) -> None:
        self._containers.setdefault(container, {})[blob] = text

    async def list_containers(self, prefix: str) -> list[str]:
        await asyncio.sleep(0)
        return sorted(name for name in self._containers if name.startswith(prefix))

    async def list_blobs(self, container: str, limit: int | None = None) -> list[str]:
        await asyncio.sleep(0)
        names = sorted(self._containers.get(container, {}))
        return names if limit is None else names[:limit]

    async def download_text(self, container: str, blob: str) -> str | None:
        await asyncio.sleep(0)
        return self._containers.get(container, {}).get(blob)
