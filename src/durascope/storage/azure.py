# src/durascope/storage/azure.py
"""Azure Storage adapters over the async Azure SDK.

One adapter per substrate, each wrapping a service client:
- AzureRecordStore: azure.data.tables.aio.TableServiceClient
- AzureQueueStore:  azure.storage.queue.aio.QueueServiceClient
- AzureBlobStore:   azure.storage.blob.aio.BlobServiceClient

Error translation is uniform: ``ResourceNotFoundError`` becomes an empty
result at the call site, every other ``AzureError`` is re-raised as
``StorageUnavailableError`` with the SDK exception chained. No retries
here; the SDK pipeline's retry policy has already run by the time an
error reaches us.

``AzureStorage`` builds all three from ``StorageSettings`` and owns
their lifetime (and the credential's, for DefaultAzureCredential).
"""

from __future__ import annotations

import gzip
import zlib
from collections.abc import AsyncGenerator, Iterator, Sequence
from contextlib import contextmanager
from types import TracebackType
from typing import Any, Self

from azure.core.credentials import AzureSasCredential
from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.data.tables.aio import TableServiceClient
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient
from azure.storage.queue.aio import QueueServiceClient

from durascope.contracts.errors import StorageUnavailableError
from durascope.contracts.models import QueueMessage
from durascope.core.config import StorageSettings
from durascope.core.logging import get_logger
from durascope.storage.predicates import Predicate
from durascope.storage.protocols import MAX_PEEK_MESSAGES, Record

logger = get_logger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"


@contextmanager
def _translate_errors(resource: str) -> Iterator[None]:
    """Re-raise SDK failures as StorageUnavailableError.

    ResourceNotFoundError must be handled inside the block; one that
    escapes is translated like any other failure.
    """
    try:
        yield
    except AzureError as exc:
        status_code = exc.status_code if isinstance(exc, HttpResponseError) else None
        raise StorageUnavailableError(resource, exc.message or type(exc).__name__, status_code=status_code) from exc


def _to_record(entity: Any) -> Record:
    """Flatten a TableEntity into a plain record.

    The SDK moves the service ``Timestamp`` into ``entity.metadata``.
    A ``Timestamp`` property written by the engine wins over it.
    """
    record: Record = dict(entity)
    if record.get("Timestamp") is None:
        metadata = getattr(entity, "metadata", None) or {}
        record["Timestamp"] = metadata.get("timestamp")
    return record


class AzureRecordStore:
    """RecordStore over Azure Table storage."""

    def __init__(self, client: TableServiceClient) -> None:
        self._client = client

    async def list_tables(self) -> list[str]:
        with _translate_errors("tables"):
            return [table.name async for table in self._client.list_tables()]

    async def table_exists(self, table: str) -> bool:
        # Catalog scan instead of a read: works with read-only SAS scopes.
        # OData eq is case-sensitive but table names are not, so compare here.
        wanted = table.lower()
        with _translate_errors(table):
            async for item in self._client.list_tables():
                if item.name.lower() == wanted:
                    return True
        return False

    async def scan(
        self,
        table: str,
        predicate: Predicate | None = None,
        *,
        select: Sequence[str] | None = None,
        page_size: int | None = None,
    ) -> AsyncGenerator[Record, None]:
        table_client = self._client.get_table_client(table)
        kwargs: dict[str, Any] = {}
        if select is not None:
            kwargs["select"] = list(select)
        if page_size is not None:
            kwargs["results_per_page"] = page_size

        if predicate:
            query_filter, parameters = predicate.to_odata()
            pager = table_client.query_entities(query_filter, parameters=parameters, **kwargs)
        else:
            pager = table_client.list_entities(**kwargs)

        logger.debug("table_scan", table=table, predicate=predicate.to_odata()[0] if predicate else None)
        with _translate_errors(table):
            try:
                async for entity in pager:
                    yield _to_record(entity)
            except ResourceNotFoundError:
                logger.debug("table_not_found", table=table)

    async def get_entity(self, table: str, partition_key: str, row_key: str) -> Record | None:
        table_client = self._client.get_table_client(table)
        with _translate_errors(table):
            try:
                entity = await table_client.get_entity(partition_key=partition_key, row_key=row_key)
            except ResourceNotFoundError:
                logger.debug("entity_not_found", table=table, partition_key=partition_key)
                return None
        return _to_record(entity)

    async def close(self) -> None:
        await self._client.close()


class AzureQueueStore:
    """QueueStore over Azure Queue storage."""

    def __init__(self, client: QueueServiceClient) -> None:
        self._client = client

    async def list_queues(self, prefix: str) -> list[str]:
        with _translate_errors("queues"):
            return [queue.name async for queue in self._client.list_queues(name_starts_with=prefix)]

    async def peek(self, queue: str, max_count: int = MAX_PEEK_MESSAGES) -> list[QueueMessage]:
        queue_client = self._client.get_queue_client(queue)
        with _translate_errors(queue):
            try:
                messages = await queue_client.peek_messages(max_messages=min(max_count, MAX_PEEK_MESSAGES))
            except ResourceNotFoundError:
                logger.debug("queue_not_found", queue=queue)
                return []
        return [
            QueueMessage(
                message_id=message.id,
                queue_name=queue,
                message_text=message.content,
                inserted_on=message.inserted_on,
                expires_on=message.expires_on,
                dequeue_count=message.dequeue_count or 0,
            )
            for message in messages
        ]

    async def approximate_depth(self, queue: str) -> int:
        queue_client = self._client.get_queue_client(queue)
        with _translate_errors(queue):
            try:
                properties = await queue_client.get_queue_properties()
            except ResourceNotFoundError:
                logger.debug("queue_not_found", queue=queue)
                return 0
        return properties.approximate_message_count or 0

    async def close(self) -> None:
        await self._client.close()


def _decode_blob(data: bytes) -> str:
    """Large messages are usually gzip-compressed JSON.

    A payload that only looks gzipped is decoded as it stands.
    """
    if data[:2] == _GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error):
            logger.warning("blob_not_gzip", size=len(data))
    return data.decode("utf-8", errors="replace")


class AzureBlobStore:
    """BlobStore over Azure Blob storage."""

    def __init__(self, client: BlobServiceClient) -> None:
        self._client = client

    async def list_containers(self, prefix: str) -> list[str]:
        with _translate_errors("containers"):
            return [container.name async for container in self._client.list_containers(name_starts_with=prefix)]

    async def list_blobs(self, container: str, limit: int | None = None) -> list[str]:
        container_client = self._client.get_container_client(container)
        names: list[str] = []
        with _translate_errors(container):
            try:
                async for blob in container_client.list_blobs():
                    if limit is not None and len(names) >= limit:
                        break
                    names.append(blob.name)
            except ResourceNotFoundError:
                logger.debug("container_not_found", container=container)
                return []
        return names

    async def download_text(self, container: str, blob: str) -> str | None:
        blob_client = self._client.get_blob_client(container=container, blob=blob)
        with _translate_errors(f"{container}/{blob}"):
            try:
                downloader = await blob_client.download_blob()
                data = await downloader.readall()
            except ResourceNotFoundError:
                logger.debug("blob_not_found", container=container, blob=blob)
                return None
        return _decode_blob(data)

    async def close(self) -> None:
        await self._client.close()


class AzureStorage:
    """The three Azure adapters for one storage account.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(
        self,
        records: AzureRecordStore,
        queues: AzureQueueStore,
        blobs: AzureBlobStore,
        *,
        credential: DefaultAzureCredential | None = None,
    ) -> None:
        self.records = records
        self.queues = queues
        self.blobs = blobs
        self._credential = credential

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> AzureStorage:
        """Create clients using the configured auth method."""
        logger.info("storage_clients_created", auth_method=settings.auth_method, account=settings.account_name)

        if settings.auth_method == "connection_string":
            # validator guarantees connection_string is set in this branch
            conn_str = str(settings.connection_string)
            return cls(
                AzureRecordStore(TableServiceClient.from_connection_string(conn_str)),
                AzureQueueStore(QueueServiceClient.from_connection_string(conn_str)),
                AzureBlobStore(BlobServiceClient.from_connection_string(conn_str)),
            )

        if settings.auth_method == "sas_token":
            sas = str(settings.sas_token).lstrip("?")
            return cls(
                AzureRecordStore(TableServiceClient(settings.service_endpoint("table"), credential=AzureSasCredential(sas))),
                AzureQueueStore(QueueServiceClient(settings.service_endpoint("queue"), credential=AzureSasCredential(sas))),
                AzureBlobStore(BlobServiceClient(settings.service_endpoint("blob"), credential=AzureSasCredential(sas))),
            )

        credential = DefaultAzureCredential()
        return cls(
            AzureRecordStore(TableServiceClient(settings.service_endpoint("table"), credential=credential)),
            AzureQueueStore(QueueServiceClient(settings.service_endpoint("queue"), credential=credential)),
            AzureBlobStore(BlobServiceClient(settings.service_endpoint("blob"), credential=credential)),
            credential=credential,
        )

    async def close(self) -> None:
        await self.records.close()
        await self.queues.close()
        await self.blobs.close()
        if self._credential is not None:
            await self._credential.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
