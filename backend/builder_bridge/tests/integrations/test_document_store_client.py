"""
Unit tests for DocumentStoreClient.

Tests cover:
- Request shape (X-API-Key header, GraphQL variables, selection sets)
- Error classification (HTTP status, GraphQL errors, malformed bodies)
- Document validation at the client boundary
"""

import json

import httpx
import pytest
from unittest.mock import MagicMock, patch

from builder_bridge.integrations.document_store import (
    ALL_DATABASES,
    DocumentStoreClient,
    DocumentStoreError,
    Filter,
    StoreRecord,
    TicketDocument,
)

API_URL = "https://store.example.com/graphql"


@pytest.fixture
def store_client():
    """Create a document store client for testing."""
    return DocumentStoreClient(API_URL, "store-key")


def _recording_transport(requests: list, body: dict, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body)
    return httpx.MockTransport(handler)


def _mock_response(status_code: int = 200, body=None) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = json.dumps(body) if body is not None else ""
    mock_response.json.return_value = body
    return mock_response


class TestClientConstruction:

    def test_requires_api_url(self):
        with pytest.raises(ValueError):
            DocumentStoreClient("", "store-key")

    def test_sends_api_key_header(self):
        client = DocumentStoreClient(API_URL, "store-key")
        assert client._client.headers["X-API-Key"] == "store-key"


class TestQuery:
    """Tests for DocumentStoreClient.query."""

    @pytest.mark.asyncio
    async def test_query_sends_filters_and_selection(self):
        """Filters are sent as FilterInput objects and the selection covers the model."""
        requests: list = []
        body = {"data": {"query": [{"dbName": "acme_db", "storeId": "s1", "key": "store_s1"}]}}

        async with DocumentStoreClient(
            API_URL, "store-key", transport=_recording_transport(requests, body)
        ) as client:
            docs = await client.query(
                ALL_DATABASES, "StoreData", [Filter("ecomUrl", "acme.myshopify.com")], StoreRecord
            )

        assert docs == [StoreRecord(db_name="acme_db", store_id="s1", key="store_s1")]

        sent = json.loads(requests[0].content)
        assert requests[0].headers["X-API-Key"] == "store-key"
        assert sent["variables"] == {
            "db": "*",
            "col": "StoreData",
            "filter": [{"field": "ecomUrl", "op": "==", "value": "acme.myshopify.com"}],
        }
        assert "dbName storeId key" in sent["query"]

    @pytest.mark.asyncio
    async def test_null_query_result_is_empty(self, store_client):
        with patch.object(store_client._client, 'post', return_value=_mock_response(body={"data": {"query": None}})):
            docs = await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert docs == []

    @pytest.mark.asyncio
    async def test_timestamps_are_normalized_to_utc(self, store_client):
        body = {"data": {"query": [{
            "key": "t-1",
            "shop": "acme.myshopify.com",
            "used": False,
            "expiresAt": "2026-01-15T12:05:00",
        }]}}
        with patch.object(store_client._client, 'post', return_value=_mock_response(body=body)):
            docs = await store_client.query("General", "OneTimeTickets", [Filter("key", "t-1")], TicketDocument)

        assert docs[0].expires_at.tzinfo is not None
        assert docs[0].expires_at.utcoffset().total_seconds() == 0

    @pytest.mark.asyncio
    async def test_invalid_document_raises(self, store_client):
        """A document missing required fields is a store error, not a crash."""
        body = {"data": {"query": [{"key": "t-1"}]}}
        with patch.object(store_client._client, 'post', return_value=_mock_response(body=body)):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert "TicketDocument" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_list_result_raises(self, store_client):
        body = {"data": {"query": {"key": "t-1"}}}
        with patch.object(store_client._client, 'post', return_value=_mock_response(body=body)):
            with pytest.raises(DocumentStoreError):
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)


class TestWriteByKey:
    """Tests for DocumentStoreClient.write_by_key."""

    @pytest.mark.asyncio
    async def test_write_wraps_data_in_document(self):
        requests: list = []
        body = {"data": {"writeDocumentByKey": {"success": True, "key": "new-key", "message": None}}}

        async with DocumentStoreClient(
            API_URL, "store-key", transport=_recording_transport(requests, body)
        ) as client:
            result = await client.write_by_key("General", "ECommerceAppData", {"key": "", "command": "shopify-create"})

        assert result.success is True
        assert result.key == "new-key"

        sent = json.loads(requests[0].content)
        assert sent["variables"]["document"] == {"data": {"key": "", "command": "shopify-create"}}
        assert "writeDocumentByKey" in sent["query"]

    @pytest.mark.asyncio
    async def test_delete_sets_flag(self):
        requests: list = []
        body = {"data": {"writeDocumentByKey": {"success": True, "key": "t-1"}}}

        async with DocumentStoreClient(
            API_URL, "store-key", transport=_recording_transport(requests, body)
        ) as client:
            await client.write_by_key("General", "OneTimeTickets", {"key": "t-1"}, delete=True)

        sent = json.loads(requests[0].content)
        assert sent["variables"]["document"] == {"data": {"key": "t-1"}, "delete": True}

    @pytest.mark.asyncio
    async def test_rejected_write_raises(self, store_client):
        """success=false is an error carrying the server's message."""
        body = {"data": {"writeDocumentByKey": {"success": False, "message": "quota exceeded"}}}
        with patch.object(store_client._client, 'post', return_value=_mock_response(body=body)):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.write_by_key("General", "OneTimeTickets", {"key": "t-1"})

        assert str(exc_info.value) == "quota exceeded"

    @pytest.mark.asyncio
    async def test_missing_write_result_raises(self, store_client):
        with patch.object(store_client._client, 'post', return_value=_mock_response(body={"data": {}})):
            with pytest.raises(DocumentStoreError):
                await store_client.write_by_key("General", "OneTimeTickets", {"key": "t-1"})


class TestErrorClassification:
    """Tests for HTTP and GraphQL error handling."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
    async def test_retryable_status_codes(self, store_client, status_code):
        with patch.object(store_client._client, 'post', return_value=_mock_response(status_code, {"error": "x"})):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert exc_info.value.status_code == status_code
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 403])
    async def test_client_errors_are_not_retryable(self, store_client, status_code):
        with patch.object(store_client._client, 'post', return_value=_mock_response(status_code, {"error": "x"})):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_graphql_errors_raise_first_message(self, store_client):
        body = {"errors": [{"message": "Unknown collection"}, {"message": "second"}]}
        with patch.object(store_client._client, 'post', return_value=_mock_response(body=body)):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "Nope", [], TicketDocument)

        assert str(exc_info.value) == "Unknown collection"
        assert len(exc_info.value.errors) == 2

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, store_client):
        mock_response = _mock_response()
        mock_response.json.side_effect = ValueError("not json")

        with patch.object(store_client._client, 'post', return_value=mock_response):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert "invalid JSON" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, store_client):
        with patch.object(store_client._client, 'post', side_effect=httpx.ReadTimeout("slow")):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.query("General", "OneTimeTickets", [], TicketDocument)

        assert exc_info.value.retryable is True
        assert "timeout" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self, store_client):
        with patch.object(store_client._client, 'post', side_effect=httpx.ConnectError("refused")):
            with pytest.raises(DocumentStoreError) as exc_info:
                await store_client.write_by_key("General", "OneTimeTickets", {"key": "t-1"})

        assert exc_info.value.retryable is True
