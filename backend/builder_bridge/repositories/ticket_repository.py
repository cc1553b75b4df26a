"""
One-time ticket repository.

Tickets are short-lived, single-use credentials bound to one shop. The
store has no conditional write, so the used flag transition is guarded by
TicketService's per-ticket lock, not here.
"""

import logging
from datetime import datetime
from typing import Optional

from builder_bridge.integrations.document_store import (
    DocumentStoreError,
    Filter,
    TicketDocument,
)
from builder_bridge.repositories.base import BaseDocumentRepository, TICKETS_COLLECTION

logger = logging.getLogger(__name__)


class TicketRepository(BaseDocumentRepository):
    collection = TICKETS_COLLECTION

    async def create(self, ticket: TicketDocument) -> TicketDocument:
        self._require_shop(ticket.shop, "ticket.create")
        await self.store.write_by_key(self.database, self.collection, ticket.to_document())
        return ticket

    async def find(self, ticket: str) -> Optional[TicketDocument]:
        if not ticket:
            return None
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("key", ticket)],
            TicketDocument,
        )
        for doc in docs:
            if doc.key == ticket:
                return doc
        return None

    async def find_by_shop(self, shop: str) -> list[TicketDocument]:
        shop = self._require_shop(shop, "ticket.find_by_shop")
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("shop", shop)],
            TicketDocument,
        )
        return [doc for doc in docs if doc.shop == shop]

    async def mark_used(self, ticket: str, used_at: datetime) -> None:
        """Merge used=true into the ticket document."""
        await self.store.write_by_key(
            self.database,
            self.collection,
            {"key": ticket, "used": True, "usedAt": used_at.isoformat()},
        )

    async def delete(self, ticket: str) -> bool:
        try:
            await self.store.write_by_key(
                self.database, self.collection, {"key": ticket}, delete=True
            )
        except DocumentStoreError as e:
            logger.error("Error deleting ticket", extra={"error": str(e)})
            return False
        return True
