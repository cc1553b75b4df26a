"""
GraphQL client for the remote document store.

The store exposes two operations over HTTP:
- query(dbName, collectionName, filter) -> [document]
- writeDocumentByKey(dbName, collectionName, document) -> {success, key, message}

Every request authenticates with the service API key in the X-API-Key
header. The client does not retry; errors are raised as DocumentStoreError
with a `retryable` hint so callers can decide.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from builder_bridge.integrations.document_store.models import StoreDocument, WriteResult

logger = logging.getLogger(__name__)

# Cross-database scan token, only used for the project-pointer lookup
ALL_DATABASES = "*"

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

WRITE_MUTATION = """
mutation writeDocumentByKey($db: String!, $col: String!, $document: DocumentInput!) {
    writeDocumentByKey(dbName: $db, collectionName: $col, document: $document) {
        success key message
    }
}
"""

QUERY_TEMPLATE = """
query($db: String!, $col: String!, $filter: [FilterInput!]) {
    query(dbName: $db, collectionName: $col, filter: $filter) {
        %s
    }
}
"""

DocumentT = TypeVar("DocumentT", bound=StoreDocument)


class DocumentStoreError(Exception):
    """Error communicating with the document store."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        errors: Optional[list] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.errors = errors or []


@dataclass(frozen=True)
class Filter:
    """One `field op value` condition; a filter list is a conjunction."""
    field: str
    value: Any
    op: str = "=="

    def to_input(self) -> dict:
        return {"field": self.field, "op": self.op, "value": self.value}


class DocumentStoreClient:
    """
    Async client for the document store GraphQL API.

    One instance is created at application startup and shared by all
    requests; httpx.AsyncClient is safe for concurrent use.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_url:
            raise ValueError("api_url is required")

        self.api_url = api_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers={
                "Content-Type": "application/json",
                "X-API-Key": api_key or "",
            },
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _execute_graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        Execute a GraphQL operation against the store.

        Returns:
            The `data` object of the response

        Raises:
            DocumentStoreError: On transport, HTTP or GraphQL errors
        """
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(self.api_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error("Document store timeout", extra={"error": str(e)})
            raise DocumentStoreError(f"Request timeout: {e}", retryable=True)
        except httpx.RequestError as e:
            logger.error("Document store request error", extra={"error": str(e)})
            raise DocumentStoreError(f"Request error: {e}", retryable=True)

        if response.status_code >= 400:
            logger.error("Document store HTTP error", extra={
                "status_code": response.status_code,
                "response_text": response.text[:500]
            })
            raise DocumentStoreError(
                f"API HTTP error: {response.status_code}",
                status_code=response.status_code,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )

        try:
            result = response.json()
        except ValueError:
            raise DocumentStoreError("Document store returned invalid JSON")

        if not isinstance(result, dict):
            raise DocumentStoreError("Document store returned a malformed response")

        errors = result.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            logger.error("Document store GraphQL errors", extra={"errors": errors})
            raise DocumentStoreError(message or "GraphQL error", errors=errors if isinstance(errors, list) else [errors])

        return result.get("data") or {}

    async def query(
        self,
        database: str,
        collection: str,
        filters: list[Filter],
        model: Type[DocumentT],
    ) -> list[DocumentT]:
        """
        Query a collection and validate each document against `model`.

        Args:
            database: Database name, or ALL_DATABASES for a cross-database scan
            collection: Collection name
            filters: Conjunction of conditions; fields may use dot notation
            model: Document model defining both the selection set and the shape

        Returns:
            Validated documents, in store order
        """
        data = await self._execute_graphql(
            QUERY_TEMPLATE % model.selection(),
            {
                "db": database,
                "col": collection,
                "filter": [f.to_input() for f in filters],
            },
        )

        docs = data.get("query")
        if docs is None:
            return []
        if not isinstance(docs, list):
            raise DocumentStoreError("Malformed query response: expected a list")

        try:
            return [model.model_validate(doc) for doc in docs]
        except ValidationError as e:
            logger.error("Document failed validation", extra={
                "collection": collection,
                "model": model.__name__,
                "error": str(e)
            })
            raise DocumentStoreError(f"Malformed {model.__name__} document in {collection}")

    async def write_by_key(
        self,
        database: str,
        collection: str,
        data: dict,
        delete: bool = False,
    ) -> WriteResult:
        """
        Upsert, create or delete one document by key.

        An empty `key` asks the server to mint one (returned in the result).
        A populated key merges `data` into the existing document. With
        delete=True only the key is needed.
        """
        document: dict = {"data": data}
        if delete:
            document["delete"] = True

        result = await self._execute_graphql(
            WRITE_MUTATION,
            {"db": database, "col": collection, "document": document},
        )

        raw = result.get("writeDocumentByKey")
        if not isinstance(raw, dict):
            raise DocumentStoreError("Malformed write response")

        try:
            write_result = WriteResult.model_validate(raw)
        except ValidationError:
            raise DocumentStoreError("Malformed write response")

        if not write_result.success:
            logger.warning("Document store write rejected", extra={
                "collection": collection,
                "store_message": write_result.message
            })
            raise DocumentStoreError(write_result.message or "Write rejected")

        return write_result
