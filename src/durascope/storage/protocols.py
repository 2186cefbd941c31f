# src/durascope/storage/protocols.py
"""Adapter protocols for the three storage substrates.

Analyzers depend only on these protocols. ``storage.azure`` implements
them over the async Azure SDK, ``storage.memory`` over plain dicts.

Contract shared by every implementation:
- A missing table, queue, container, entity or blob is NOT an error.
  It maps to ``None``, ``False``, ``[]`` or ``0``.
- Any other service failure raises ``StorageUnavailableError``.
- Every method is a suspension point; ``scan`` yields control between
  pages so a cancelled caller stops promptly.

Records are plain mappings of table property names to values, with
``PartitionKey``, ``RowKey`` and ``Timestamp`` present unless a ``select``
projection leaves them out.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from typing import Any, Protocol, runtime_checkable

from durascope.contracts.models import QueueMessage
from durascope.storage.predicates import Predicate

Record = dict[str, Any]

# Azure Queue storage returns at most 32 messages per peek
MAX_PEEK_MESSAGES = 32


@runtime_checkable
class RecordStore(Protocol):
    """Key-ordered partitioned table store."""

    async def list_tables(self) -> list[str]: ...

    async def table_exists(self, table: str) -> bool: ...

    def scan(
        self,
        table: str,
        predicate: Predicate | None = None,
        *,
        select: Sequence[str] | None = None,
        page_size: int | None = None,
    ) -> AsyncGenerator[Record, None]:
        """Stream matching records. A missing table yields nothing."""
        ...

    async def get_entity(self, table: str, partition_key: str, row_key: str) -> Record | None: ...


@runtime_checkable
class QueueStore(Protocol):
    """Queue service: enumerate, peek and approximate depth."""

    async def list_queues(self, prefix: str) -> list[str]: ...

    async def peek(self, queue: str, max_count: int = MAX_PEEK_MESSAGES) -> list[QueueMessage]: ...

    async def approximate_depth(self, queue: str) -> int: ...


@runtime_checkable
class BlobStore(Protocol):
    """Blob service: enumerate containers and blobs, download text."""

    async def list_containers(self, prefix: str) -> list[str]: ...

    async def list_blobs(self, container: str, limit: int | None = None) -> list[str]: ...

    async def download_text(self, container: str, blob: str) -> str | None: ...
