"""
ECommerceAppData repository: the builder's access-request records.

Records are append-only. Each configure action writes a new document with a
server-minted key; nothing updates a record in place. The store does not
enforce one record per shop, so readers take the most recent one.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from builder_bridge.integrations.document_store import (
    AppDataDocument,
    AppDataPayload,
    DocumentStoreError,
    Filter,
)
from builder_bridge.repositories.base import BaseDocumentRepository, APP_DATA_COLLECTION

logger = logging.getLogger(__name__)

ECOM_PLATFORM = "shopify"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class AppDataCommand(str, Enum):
    """Wire values of the `command` field read by the builder."""
    CREATE = "shopify-create"
    EDIT = "shopify_edit"


def is_create_command(command: Optional[str]) -> bool:
    """True for a fresh-provisioning record (including records written before the shopify- prefix)."""
    return command in (AppDataCommand.CREATE.value, "create")


def newest_first(docs: list[AppDataDocument]) -> list[AppDataDocument]:
    """Order by createdAt descending; records without a timestamp sort last, ties keep store order."""
    return sorted(docs, key=lambda d: d.created_at or _EPOCH, reverse=True)


class AppDataRepository(BaseDocumentRepository):
    """Access-request records keyed by the builder access key."""

    collection = APP_DATA_COLLECTION

    async def create(
        self,
        command: AppDataCommand,
        payload: AppDataPayload,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Append a new record and return its server-minted key.

        Raises:
            DocumentStoreError: If the write fails or no key comes back
        """
        self._require_shop(payload.shop, "app_data.create")
        timestamp = (now or datetime.now(timezone.utc)).isoformat()

        result = await self.store.write_by_key(
            self.database,
            self.collection,
            {
                "key": "",
                "ecomPlatform": ECOM_PLATFORM,
                "command": command.value,
                "createdAt": timestamp,
                "updatedAt": timestamp,
                "data": payload.to_document(exclude_none=True),
            },
        )
        if not result.key:
            raise DocumentStoreError("Document store did not return a key for the new record")

        logger.info("Created ECommerceAppData record", extra={
            "shop": payload.shop,
            "command": command.value,
        })
        return result.key

    async def find_by_key(self, key: str) -> Optional[AppDataDocument]:
        """Look up a record by access key. Empty keys never match."""
        if not key:
            return None
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("key", key)],
            AppDataDocument,
        )
        # Guard against a store that ignores the filter
        for doc in docs:
            if doc.key == key:
                return doc
        return None

    async def find_all_by_shop(self, shop: str) -> list[AppDataDocument]:
        """Every record for a shop, most recent first."""
        shop = self._require_shop(shop, "app_data.find_all_by_shop")
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("data.shop", shop)],
            AppDataDocument,
        )
        return newest_first([doc for doc in docs if doc.data.shop == shop])

    async def find_latest_by_shop(self, shop: str) -> Optional[AppDataDocument]:
        docs = await self.find_all_by_shop(shop)
        return docs[0] if docs else None

    async def delete_by_key(self, key: str) -> bool:
        try:
            await self.store.write_by_key(
                self.database, self.collection, {"key": key}, delete=True
            )
        except DocumentStoreError as e:
            logger.error("Error deleting ECommerceAppData record", extra={
                "error": str(e)
            })
            return False
        return True
