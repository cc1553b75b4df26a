"""
Provisioned-project lookups.

A tenant's 3D builder project lives in its own database. The only way to
find it from a shop domain is a cross-database scan of StoreData for the
document whose ecomUrl is the shop. That pointer, not any ECommerceAppData
record, is the source of truth for "does this tenant have a project".
"""

import logging
from typing import Optional

from builder_bridge.integrations.document_store import (
    ALL_DATABASES,
    Filter,
    StoreMetadata,
    StoreRecord,
)
from builder_bridge.repositories.base import BaseDocumentRepository, STORE_DATA_COLLECTION

logger = logging.getLogger(__name__)

METADATA_KEY = "metadata"


class StoreRepository(BaseDocumentRepository):
    """Project pointer and StoreData.metadata access."""

    collection = STORE_DATA_COLLECTION

    async def find_store_by_shop(self, shop: str) -> Optional[StoreRecord]:
        """
        Find the project database owning a shop domain.

        Raises:
            DocumentStoreError: If the scan fails; an outage is not "no project"
        """
        shop = self._require_shop(shop, "find_store_by_shop")
        docs = await self.store.query(
            ALL_DATABASES,
            self.collection,
            [Filter("ecomUrl", shop)],
            StoreRecord,
        )
        if not docs:
            return None
        if len(docs) > 1:
            logger.warning("Multiple projects found for shop, using the first", extra={
                "shop": shop,
                "db_names": [d.db_name for d in docs]
            })
        return docs[0]

    async def get_store_plan(self, db_name: str) -> Optional[str]:
        """
        Read paymentPlan from the project's metadata document.

        Returns:
            The stored plan, or None if the document or field is absent
        """
        docs = await self.store.query(
            db_name,
            self.collection,
            [Filter("key", METADATA_KEY)],
            StoreMetadata,
        )
        if not docs:
            return None
        return docs[0].payment_plan or None

    async def set_store_plan(self, db_name: str, plan: str) -> None:
        """Merge paymentPlan into the project's metadata document."""
        await self.store.write_by_key(
            db_name,
            self.collection,
            {"key": METADATA_KEY, "paymentPlan": plan},
        )
        logger.info("StoreData.metadata paymentPlan updated", extra={
            "db_name": db_name,
            "plan": plan
        })
