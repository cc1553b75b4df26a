"""
Session storage backed by the remote document store.

Maps Shopify Session objects to ShopifySessions documents and back:
- offline sessions never carry user identity fields (they are written as null)
- the session id is the document key and is only ever used as the lookup key;
  the mutable payload never contains an id field
"""

import asyncio
import logging
from typing import Optional

from builder_bridge.integrations.document_store import (
    DocumentStoreError,
    Filter,
    SessionDocument,
)
from builder_bridge.platform.shopify_session import (
    AssociatedUser,
    OnlineAccessInfo,
    Session,
)
from builder_bridge.repositories.base import BaseDocumentRepository, SESSIONS_COLLECTION

logger = logging.getLogger(__name__)


def session_to_document(session: Session) -> SessionDocument:
    """Serialize a session; identity fields are null unless the session is online."""
    user = session.user if session.is_online else None

    return SessionDocument(
        key=session.id,
        shop=session.shop,
        state=session.state or "",
        is_online=session.is_online,
        scope=session.scope,
        expires=session.expires,
        access_token=session.access_token or "",
        user_id=user.id if user else None,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        email=user.email if user else None,
        account_owner=user.account_owner if user else False,
        locale=user.locale if user else None,
        collaborator=user.collaborator if user else False,
        email_verified=user.email_verified if user else False,
        refresh_token=session.refresh_token,
        refresh_token_expires=session.refresh_token_expires,
    )


def document_to_session(doc: SessionDocument) -> Session:
    """Rebuild a session; user identity is restored only if a user id was persisted."""
    online_access_info = None
    if doc.user_id is not None:
        online_access_info = OnlineAccessInfo(
            associated_user=AssociatedUser(
                id=int(doc.user_id),
                first_name=doc.first_name or "",
                last_name=doc.last_name or "",
                email=doc.email or "",
                account_owner=doc.account_owner,
                locale=doc.locale or "",
                collaborator=bool(doc.collaborator),
                email_verified=bool(doc.email_verified),
            ),
            associated_user_scope=doc.scope or "",
        )

    return Session(
        id=doc.key,
        shop=doc.shop,
        state=doc.state,
        is_online=doc.is_online,
        scope=doc.scope or None,
        expires=doc.expires,
        access_token=doc.access_token or None,
        online_access_info=online_access_info,
        refresh_token=doc.refresh_token or None,
        refresh_token_expires=doc.refresh_token_expires,
    )


class SessionRepository(BaseDocumentRepository):
    """Pluggable session storage with the Shopify SessionStorage interface."""

    collection = SESSIONS_COLLECTION

    async def store_session(self, session: Session) -> bool:
        """
        Upsert a session by id.

        Returns:
            True if the store accepted the write, False otherwise
        """
        document = session_to_document(session).to_document()
        try:
            await self.store.write_by_key(self.database, self.collection, document)
        except DocumentStoreError as e:
            logger.error("Error storing session", extra={
                "session_id": session.id,
                "shop": session.shop,
                "error": str(e)
            })
            return False
        return True

    async def load_session(self, session_id: str) -> Optional[Session]:
        """
        Load a session by id.

        Raises:
            DocumentStoreError: If the store cannot be queried
        """
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("key", session_id)],
            SessionDocument,
        )
        match = next((doc for doc in docs if doc.key == session_id), None)
        if match is None:
            return None
        return document_to_session(match)

    async def delete_session(self, session_id: str) -> bool:
        try:
            await self.store.write_by_key(
                self.database, self.collection, {"key": session_id}, delete=True
            )
        except DocumentStoreError as e:
            logger.error("Error deleting session", extra={
                "session_id": session_id,
                "error": str(e)
            })
            return False
        return True

    async def delete_sessions(self, session_ids: list[str]) -> bool:
        """
        Delete sessions concurrently, best-effort.

        Every delete is attempted even if some fail; failures are logged by
        delete_session. Returns True only if all deletes were accepted.
        """
        if not session_ids:
            return True

        results = await asyncio.gather(
            *(self.delete_session(session_id) for session_id in session_ids)
        )
        failed = [sid for sid, ok in zip(session_ids, results) if not ok]
        if failed:
            logger.warning("Some sessions could not be deleted", extra={
                "requested": len(session_ids),
                "failed": len(failed)
            })
            return False
        return True

    async def find_sessions_by_shop(self, shop: str) -> list[Session]:
        """
        List every session belonging to a shop.

        Raises:
            DocumentStoreError: If the store cannot be queried
        """
        shop = self._require_shop(shop, "find_sessions_by_shop")
        docs = await self.store.query(
            self.database,
            self.collection,
            [Filter("shop", shop)],
            SessionDocument,
        )
        return [document_to_session(doc) for doc in docs]
