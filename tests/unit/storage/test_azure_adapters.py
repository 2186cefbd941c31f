# tests/unit/storage/test_azure_adapters.py
"""Tests for the Azure Storage adapters against mocked SDK clients.

Covers the error contract at the substrate boundary:
  - ResourceNotFoundError maps to an empty/None/0 result
  - Any other AzureError becomes StorageUnavailableError, chained
  - Predicates reach the SDK as parameterized filters
"""

from __future__ import annotations

import gzip
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError, ServiceRequestError

from durascope.contracts.errors import StorageUnavailableError
from durascope.core.config import StorageSettings
from durascope.mcp.analyzers.discovery import describe_task_hub
from durascope.storage.azure import (
    AzureBlobStore,
    AzureQueueStore,
    AzureRecordStore,
    AzureStorage,
    _decode_blob,
    _to_record,
)
from durascope.storage.memory import MemoryBlobStore, MemoryQueueStore
from durascope.storage.predicates import Clause, Predicate


class _Pager:
    """Async iterator standing in for an SDK ``AsyncItemPaged``."""

    def __init__(self, items: list[Any], error: Exception | None = None) -> None:
        self._items = list(items)
        self._error = error

    def __aiter__(self) -> _Pager:
        return self

    async def __anext__(self) -> Any:
        if self._items:
            return self._items.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration


class _Entity(dict[str, Any]):
    """TableEntity look-alike: a dict with service metadata."""

    def __init__(self, *args: Any, metadata: dict[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.metadata = metadata or {}


def _http_error(status_code: int, message: str = "service error") -> HttpResponseError:
    error = HttpResponseError(message=message)
    error.status_code = status_code
    return error


class TestToRecord:
    def test_metadata_timestamp_fills_missing_timestamp(self) -> None:
        ts = datetime(2024, 1, 1, tzinfo=UTC)
        record = _to_record(_Entity({"PartitionKey": "a"}, metadata={"timestamp": ts}))
        assert record == {"PartitionKey": "a", "Timestamp": ts}

    def test_explicit_timestamp_property_wins(self) -> None:
        own = datetime(2023, 1, 1, tzinfo=UTC)
        record = _to_record(
            _Entity({"PartitionKey": "a", "Timestamp": own}, metadata={"timestamp": datetime(2024, 1, 1, tzinfo=UTC)})
        )
        assert record["Timestamp"] == own


class TestAzureRecordStore:
    @pytest.mark.asyncio
    async def test_list_tables(self) -> None:
        client = MagicMock()
        client.list_tables.return_value = _Pager([SimpleNamespace(name="HubInstances"), SimpleNamespace(name="HubHistory")])
        assert await AzureRecordStore(client).list_tables() == ["HubInstances", "HubHistory"]

    @pytest.mark.asyncio
    async def test_table_exists_scans_catalog(self) -> None:
        client = MagicMock()
        client.list_tables.return_value = _Pager([SimpleNamespace(name="Other"), SimpleNamespace(name="HubInstances")])
        assert await AzureRecordStore(client).table_exists("HubInstances")
        client.query_tables.assert_not_called()

    @pytest.mark.asyncio
    async def test_table_exists_false_when_catalog_empty(self) -> None:
        client = MagicMock()
        client.list_tables.return_value = _Pager([])
        assert not await AzureRecordStore(client).table_exists("Nope")

    @pytest.mark.asyncio
    async def test_table_exists_ignores_case(self) -> None:
        client = MagicMock()
        client.list_tables.side_effect = lambda: _Pager([SimpleNamespace(name="MyHubInstances")])
        store = AzureRecordStore(client)

        assert await store.table_exists("myhubInstances")
        assert await store.table_exists("MYHUBINSTANCES")
        assert not await store.table_exists("myhubHistory")

    @pytest.mark.asyncio
    async def test_table_exists_translates_service_errors(self) -> None:
        client = MagicMock()
        client.list_tables.return_value = _Pager([], _http_error(403, "AuthorizationFailure"))
        with pytest.raises(StorageUnavailableError):
            await AzureRecordStore(client).table_exists("HubInstances")

    @pytest.mark.asyncio
    async def test_describe_hub_with_differently_cased_tables(self) -> None:
        client = MagicMock()
        client.list_tables.side_effect = lambda: _Pager(
            [SimpleNamespace(name="MyHubInstances"), SimpleNamespace(name="myhubHistory")]
        )

        hub = await describe_task_hub(AzureRecordStore(client), MemoryQueueStore(), MemoryBlobStore(), "myhub")

        assert hub.has_instances_table
        assert hub.has_history_table

    @pytest.mark.asyncio
    async def test_scan_with_predicate_passes_parameters(self) -> None:
        client = MagicMock()
        table_client = client.get_table_client.return_value
        table_client.query_entities.return_value = _Pager([_Entity({"PartitionKey": "a"})])

        predicate = Predicate.all_of(Clause("RuntimeStatus", "eq", "Failed"))
        rows = [r async for r in AzureRecordStore(client).scan("HubInstances", predicate, select=["RuntimeStatus"], page_size=50)]

        assert rows == [{"PartitionKey": "a", "Timestamp": None}]
        table_client.query_entities.assert_called_once_with(
            "RuntimeStatus eq @p0",
            parameters={"p0": "Failed"},
            select=["RuntimeStatus"],
            results_per_page=50,
        )
        table_client.list_entities.assert_not_called()

    @pytest.mark.asyncio
    async def test_scan_without_predicate_lists_entities(self) -> None:
        client = MagicMock()
        table_client = client.get_table_client.return_value
        table_client.list_entities.return_value = _Pager([_Entity({"PartitionKey": "a"}), _Entity({"PartitionKey": "b"})])

        rows = [r async for r in AzureRecordStore(client).scan("T", Predicate())]

        assert [r["PartitionKey"] for r in rows] == ["a", "b"]
        table_client.list_entities.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_scan_of_missing_table_is_empty(self) -> None:
        client = MagicMock()
        client.get_table_client.return_value.list_entities.return_value = _Pager([], ResourceNotFoundError(message="TableNotFound"))
        assert [r async for r in AzureRecordStore(client).scan("Nope")] == []

    @pytest.mark.asyncio
    async def test_scan_failure_is_storage_unavailable(self) -> None:
        client = MagicMock()
        cause = _http_error(503, "server busy")
        client.get_table_client.return_value.list_entities.return_value = _Pager([_Entity({"PartitionKey": "a"})], cause)

        rows: list[dict[str, Any]] = []
        with pytest.raises(StorageUnavailableError, match="server busy") as exc_info:
            async for row in AzureRecordStore(client).scan("T"):
                rows.append(row)

        assert len(rows) == 1
        assert exc_info.value.resource == "T"
        assert exc_info.value.status_code == 503
        assert exc_info.value.__cause__ is cause

    @pytest.mark.asyncio
    async def test_get_entity_not_found_is_none(self) -> None:
        client = MagicMock()
        client.get_table_client.return_value.get_entity = AsyncMock(side_effect=ResourceNotFoundError(message="nf"))
        assert await AzureRecordStore(client).get_entity("T", "a", "") is None

    @pytest.mark.asyncio
    async def test_get_entity_passes_keys(self) -> None:
        client = MagicMock()
        get_entity = AsyncMock(return_value=_Entity({"PartitionKey": "a", "RowKey": ""}))
        client.get_table_client.return_value.get_entity = get_entity

        record = await AzureRecordStore(client).get_entity("T", "a", "")

        assert record is not None
        assert record["PartitionKey"] == "a"
        get_entity.assert_awaited_once_with(partition_key="a", row_key="")

    @pytest.mark.asyncio
    async def test_connection_failure_has_no_status_code(self) -> None:
        client = MagicMock()
        client.list_tables.return_value = _Pager([], ServiceRequestError(message="dns failure"))
        with pytest.raises(StorageUnavailableError) as exc_info:
            await AzureRecordStore(client).list_tables()
        assert exc_info.value.status_code is None


class TestAzureQueueStore:
    @pytest.mark.asyncio
    async def test_list_queues_by_prefix(self) -> None:
        client = MagicMock()
        client.list_queues.return_value = _Pager([SimpleNamespace(name="hub-workitems")])
        assert await AzureQueueStore(client).list_queues("hub-") == ["hub-workitems"]
        client.list_queues.assert_called_once_with(name_starts_with="hub-")

    @pytest.mark.asyncio
    async def test_peek_maps_messages(self) -> None:
        inserted = datetime(2024, 1, 1, tzinfo=UTC)
        client = MagicMock()
        peek = AsyncMock(
            return_value=[
                SimpleNamespace(id="m1", content="hello", inserted_on=inserted, expires_on=None, dequeue_count=None),
            ]
        )
        client.get_queue_client.return_value.peek_messages = peek

        messages = await AzureQueueStore(client).peek("hub-workitems", 100)

        assert len(messages) == 1
        assert messages[0].message_id == "m1"
        assert messages[0].queue_name == "hub-workitems"
        assert messages[0].message_text == "hello"
        assert messages[0].dequeue_count == 0
        peek.assert_awaited_once_with(max_messages=32)

    @pytest.mark.asyncio
    async def test_absent_queue(self) -> None:
        client = MagicMock()
        queue_client = client.get_queue_client.return_value
        queue_client.peek_messages = AsyncMock(side_effect=ResourceNotFoundError(message="QueueNotFound"))
        queue_client.get_queue_properties = AsyncMock(side_effect=ResourceNotFoundError(message="QueueNotFound"))

        store = AzureQueueStore(client)

        assert await store.peek("nope") == []
        assert await store.approximate_depth("nope") == 0

    @pytest.mark.asyncio
    async def test_depth(self) -> None:
        client = MagicMock()
        client.get_queue_client.return_value.get_queue_properties = AsyncMock(
            return_value=SimpleNamespace(approximate_message_count=7)
        )
        assert await AzureQueueStore(client).approximate_depth("q") == 7

    @pytest.mark.asyncio
    async def test_auth_failure_propagates(self) -> None:
        client = MagicMock()
        client.get_queue_client.return_value.get_queue_properties = AsyncMock(side_effect=_http_error(403, "AuthorizationFailure"))
        with pytest.raises(StorageUnavailableError) as exc_info:
            await AzureQueueStore(client).approximate_depth("q")
        assert exc_info.value.status_code == 403
        assert exc_info.value.resource == "q"


class TestAzureBlobStore:
    @pytest.mark.asyncio
    async def test_list_blobs_honors_limit(self) -> None:
        client = MagicMock()
        client.get_container_client.return_value.list_blobs.return_value = _Pager(
            [SimpleNamespace(name=n) for n in ("a", "b", "c")]
        )
        assert await AzureBlobStore(client).list_blobs("box", limit=2) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_list_blobs_of_missing_container(self) -> None:
        client = MagicMock()
        client.get_container_client.return_value.list_blobs.return_value = _Pager(
            [], ResourceNotFoundError(message="ContainerNotFound")
        )
        assert await AzureBlobStore(client).list_blobs("nope") == []

    @pytest.mark.asyncio
    async def test_download_plain_and_gzip(self) -> None:
        payload = '{"a": 1}'
        client = MagicMock()
        downloader = MagicMock()
        downloader.readall = AsyncMock(side_effect=[payload.encode(), gzip.compress(payload.encode())])
        client.get_blob_client.return_value.download_blob = AsyncMock(return_value=downloader)

        store = AzureBlobStore(client)

        assert await store.download_text("box", "plain") == payload
        assert await store.download_text("box", "zipped") == payload

    @pytest.mark.asyncio
    async def test_download_missing_blob_is_none(self) -> None:
        client = MagicMock()
        client.get_blob_client.return_value.download_blob = AsyncMock(side_effect=ResourceNotFoundError(message="BlobNotFound"))
        assert await AzureBlobStore(client).download_text("box", "missing") is None

    def test_undecodable_bytes_are_replaced(self) -> None:
        assert _decode_blob(b"ok\xff") == "ok\ufffd"

    @pytest.mark.parametrize(
        "payload",
        [
            b"\x1f\x8bnot really gzip",
            b"\x1f\x8b",
            gzip.compress(b'{"a": 1}')[:-6],
        ],
    )
    def test_false_gzip_magic_decoded_as_is(self, payload: bytes) -> None:
        assert _decode_blob(payload) == payload.decode("utf-8", errors="replace")


class TestAzureStorageFromSettings:
    def test_connection_string(self) -> None:
        settings = StorageSettings(connection_string="UseDevelopmentStorage=true")
        with (
            patch("durascope.storage.azure.TableServiceClient") as tables,
            patch("durascope.storage.azure.QueueServiceClient") as queues,
            patch("durascope.storage.azure.BlobServiceClient") as blobs,
        ):
            AzureStorage.from_settings(settings)

        tables.from_connection_string.assert_called_once_with("UseDevelopmentStorage=true")
        queues.from_connection_string.assert_called_once_with("UseDevelopmentStorage=true")
        blobs.from_connection_string.assert_called_once_with("UseDevelopmentStorage=true")

    def test_sas_token_strips_question_mark(self) -> None:
        settings = StorageSettings(account_name="acct", sas_token="?sv=2024&sig=abc")
        with (
            patch("durascope.storage.azure.TableServiceClient") as tables,
            patch("durascope.storage.azure.QueueServiceClient"),
            patch("durascope.storage.azure.BlobServiceClient"),
            patch("durascope.storage.azure.AzureSasCredential") as sas,
        ):
            AzureStorage.from_settings(settings)

        sas.assert_called_with("sv=2024&sig=abc")
        assert tables.call_args.args[0] == "https://acct.table.core.windows.net"

    @pytest.mark.asyncio
    async def test_default_credential_is_closed_with_clients(self) -> None:
        settings = StorageSettings(account_name="acct")
        with (
            patch("durascope.storage.azure.TableServiceClient") as tables,
            patch("durascope.storage.azure.QueueServiceClient") as queues,
            patch("durascope.storage.azure.BlobServiceClient") as blobs,
            patch("durascope.storage.azure.DefaultAzureCredential") as credential_cls,
        ):
            for client_cls in (tables, queues, blobs):
                client_cls.return_value.close = AsyncMock()
            credential_cls.return_value.close = AsyncMock()

            async with AzureStorage.from_settings(settings):
                pass

        tables.return_value.close.assert_awaited_once()
        queues.return_value.close.assert_awaited_once()
        blobs.return_value.close.assert_awaited_once()
        credential_cls.return_value.close.assert_awaited_once()
