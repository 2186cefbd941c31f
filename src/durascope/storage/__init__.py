# src/durascope/storage/__init__.py
"""Storage adapters: protocols, predicates, Azure and in-memory stores.

``storage.azure`` is not imported here so the in-memory stores stay
usable without loading the Azure SDK.
"""

from durascope.storage.memory import MemoryBlobStore, MemoryQueueStore, MemoryRecordStore
from durascope.storage.predicates import PREFIX_SENTINEL, Clause, Predicate
from durascope.storage.protocols import MAX_PEEK_MESSAGES, BlobStore, QueueStore, Record, RecordStore

__all__ = [
    "MAX_PEEK_MESSAGES",
    "PREFIX_SENTINEL",
    "BlobStore",
    "Clause",
    "MemoryBlobStore",
    "MemoryQueueStore",
    "MemoryRecordStore",
    "Predicate",
    "QueueStore",
    "Record",
    "RecordStore",
]
