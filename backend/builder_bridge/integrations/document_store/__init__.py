"""
Remote document store integration.
"""

from builder_bridge.integrations.document_store.client import (
    ALL_DATABASES,
    DocumentStoreClient,
    DocumentStoreError,
    Filter,
)
from builder_bridge.integrations.document_store.models import (
    AppDataDocument,
    AppDataPayload,
    SessionDocument,
    StoreDocument,
    StoreMetadata,
    StoreRecord,
    TicketDocument,
    WriteResult,
)

__all__ = [
    "ALL_DATABASES",
    "DocumentStoreClient",
    "DocumentStoreError",
    "Filter",
    "AppDataDocument",
    "AppDataPayload",
    "SessionDocument",
    "StoreDocument",
    "StoreMetadata",
    "StoreRecord",
    "TicketDocument",
    "WriteResult",
]
