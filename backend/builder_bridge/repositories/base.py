"""
Base repository over the remote document store.

Tenant scoping: every lookup that is not by an opaque key MUST filter on the
tenant's shop domain. No method here returns documents for more than one
shop.
"""

import logging
from typing import Optional

from builder_bridge.integrations.document_store import DocumentStoreClient

logger = logging.getLogger(__name__)

GENERAL_DB = "General"
SESSIONS_COLLECTION = "ShopifySessions"
APP_DATA_COLLECTION = "ECommerceAppData"
TICKETS_COLLECTION = "OneTimeTickets"
STORE_DATA_COLLECTION = "StoreData"


class TenantScopeError(ValueError):
    """Raised when a tenant-scoped operation is attempted without a shop."""
    pass


class BaseDocumentRepository:
    """Holds the shared store client and the collection this repository owns."""

    database: str = GENERAL_DB
    collection: str = ""

    def __init__(self, store: DocumentStoreClient):
        if store is None:
            raise ValueError("store client is required")
        self.store = store

    @staticmethod
    def _require_shop(shop: Optional[str], operation: str) -> str:
        if not shop:
            logger.error("Tenant-scoped operation without shop", extra={
                "operation": operation
            })
            raise TenantScopeError(f"shop is required for {operation}")
        return shop
