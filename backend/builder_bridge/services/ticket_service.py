"""
One-time ticket path of the credential exchange.

A ticket is a short-lived, single-use credential bound to one shop. The
dashboard creates it; an external page exchanges it exactly once for the
shop's credential bundle.

SECURITY:
- A ticket is never exchanged twice, including by concurrent requests
- An expired ticket is invalid regardless of its used flag and is deleted
- Unknown, used and expired tickets all return the same generic 401
- validate_ticket() reports validity without marking the ticket used

The document store has no conditional write, so check-then-mark runs under
a per-ticket lock held in this process.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from builder_bridge.config.settings import Settings
from builder_bridge.integrations.document_store import DocumentStoreError, TicketDocument
from builder_bridge.platform.audit import (
    AuditAction,
    AuditOutcome,
    ClientInfo,
    credential_fingerprint,
    log_audit_event,
)
from builder_bridge.platform.shopify_session import Session
from builder_bridge.repositories.session_repository import SessionRepository
from builder_bridge.repositories.store_repository import StoreRepository
from builder_bridge.repositories.ticket_repository import TicketRepository
from builder_bridge.services.errors import (
    InvalidCredentialError,
    MissingFieldError,
    TicketExpiredError,
    UpstreamFailureError,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KeyedLocks:
    """
    asyncio locks created on demand per key.

    Single-process only. A lock is dropped once nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass(frozen=True)
class BuilderData:
    db_name: str
    store_id: Optional[str] = None


@dataclass(frozen=True)
class TicketCredentials:
    """Credential bundle released by a successful ticket exchange."""
    shop: str
    access_token: str
    api_key: str
    builder_data: Optional[BuilderData] = None


class TicketService:
    """Creates and exchanges one-time tickets."""

    def __init__(
        self,
        settings: Settings,
        tickets: TicketRepository,
        sessions: SessionRepository,
        stores: StoreRepository,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.settings = settings
        self.tickets = tickets
        self.sessions = sessions
        self.stores = stores
        self.clock = clock or utc_now
        self.locks = locks or KeyedLocks()

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.ticket_ttl_seconds)

    async def create_ticket(self, shop: str, client: Optional[ClientInfo] = None) -> TicketDocument:
        """
        Mint a ticket for a shop, expiring after the configured TTL.

        Raises:
            UpstreamFailureError: The ticket could not be stored
        """
        await self.purge_expired_tickets(shop)

        now = self.clock()
        ticket = TicketDocument(
            key=str(uuid.uuid4()),
            shop=shop,
            used=False,
            expires_at=now + self.ttl,
            created_at=now,
        )
        try:
            await self.tickets.create(ticket)
        except DocumentStoreError as e:
            logger.error("Error creating ticket", extra={"shop": shop, "error": str(e)})
            raise UpstreamFailureError("Document store unavailable") from e

        log_audit_event(
            AuditAction.TICKET_CREATED,
            shop=shop,
            client=client,
            resource_type="ticket",
            resource_id=credential_fingerprint(ticket.key),
            metadata={"expires_at": ticket.expires_at.isoformat()},
        )
        return ticket

    async def exchange_ticket(
        self,
        ticket: Optional[str],
        client: Optional[ClientInfo] = None,
    ) -> TicketCredentials:
        """
        Consume a ticket and return its shop's credential bundle.

        Raises:
            MissingFieldError: No ticket was sent
            InvalidCredentialError: Ticket unknown or already used, or the shop
                has no offline session (the ticket stays consumed)
            TicketExpiredError: Ticket expired; it has been deleted
            UpstreamFailureError: The document store failed
        """
        if not ticket:
            self._exchange_failed(None, None, client, "missing_ticket")
            raise MissingFieldError("ticket")

        ticket_fp = credential_fingerprint(ticket)
        try:
            async with self.locks.hold(ticket):
                doc = await self.tickets.find(ticket)
                if doc is None or doc.used:
                    self._exchange_failed(ticket_fp, None, client, "invalid_ticket")
                    raise InvalidCredentialError("Unknown or used ticket")

                now = self.clock()
                if doc.expires_at < now:
                    await self.tickets.delete(doc.key)
                    self._exchange_failed(ticket_fp, doc.shop, client, "ticket_expired")
                    raise TicketExpiredError("Ticket expired")

                await self.tickets.mark_used(doc.key, now)

            credentials = await self._build_credentials(doc.shop)
        except DocumentStoreError as e:
            logger.error("Ticket exchange failed", extra={"ticket_fp": ticket_fp, "error": str(e)})
            self._exchange_failed(ticket_fp, None, client, "upstream_failure", AuditOutcome.FAILURE)
            raise UpstreamFailureError("Document store unavailable") from e

        if credentials is None:
            logger.warning("Ticket exchanged but shop has no offline session", extra={
                "shop": doc.shop
            })
            self._exchange_failed(ticket_fp, doc.shop, client, "no_offline_session")
            raise InvalidCredentialError("No offline session for ticket shop")

        logger.info("Ticket exchanged", extra={
            "shop": credentials.shop,
            "ip_address": client.ip_address if client else None,
        })
        log_audit_event(
            AuditAction.TICKET_EXCHANGED,
            shop=credentials.shop,
            client=client,
            resource_type="ticket",
            resource_id=ticket_fp,
            metadata={"has_project": credentials.builder_data is not None},
        )
        return credentials

    async def validate_ticket(self, ticket: Optional[str]) -> bool:
        """
        Check a ticket without consuming it.

        Unknown and used tickets are invalid. An expired ticket is invalid
        and is deleted. A valid ticket is left unused.

        Raises:
            MissingFieldError: No ticket was sent
            UpstreamFailureError: The document store failed
        """
        if not ticket:
            raise MissingFieldError("ticket")

        try:
            async with self.locks.hold(ticket):
                doc = await self.tickets.find(ticket)
                if doc is None or doc.used:
                    return False
                if doc.expires_at < self.clock():
                    await self.tickets.delete(doc.key)
                    logger.info("Deleted expired ticket on validation", extra={"shop": doc.shop})
                    return False
        except DocumentStoreError as e:
            logger.error("Ticket validation failed", extra={
                "ticket_fp": credential_fingerprint(ticket),
                "error": str(e)
            })
            raise UpstreamFailureError("Document store unavailable") from e
        return True

    async def _build_credentials(self, shop: str) -> Optional[TicketCredentials]:
        session = await self.sessions.load_session(Session.offline_id(shop))
        if session is None or not session.access_token:
            return None

        store = await self.stores.find_store_by_shop(shop)
        builder_data = BuilderData(db_name=store.db_name, store_id=store.store_id) if store else None

        return TicketCredentials(
            shop=shop,
            access_token=session.access_token,
            api_key=self.settings.shopify_api_key,
            builder_data=builder_data,
        )

    @staticmethod
    def _exchange_failed(
        ticket_fp: Optional[str],
        shop: Optional[str],
        client: Optional[ClientInfo],
        error_code: str,
        outcome: AuditOutcome = AuditOutcome.DENIED,
    ) -> None:
        if outcome == AuditOutcome.DENIED:
            logger.warning("Invalid ticket attempt", extra={
                "ticket_fp": ticket_fp,
                "reason": error_code,
                "ip_address": client.ip_address if client else None,
            })
        log_audit_event(
            AuditAction.TICKET_EXCHANGE_FAILED,
            shop=shop,
            client=client,
            resource_type="ticket",
            resource_id=ticket_fp,
            outcome=outcome,
            error_code=error_code,
        )

    async def purge_expired_tickets(self, shop: str) -> int:
        """
        Delete a shop's expired or used tickets. Best-effort.

        Returns:
            Number of tickets deleted
        """
        try:
            docs = await self.tickets.find_by_shop(shop)
        except DocumentStoreError as e:
            logger.warning("Could not list tickets for purge", extra={"shop": shop, "error": str(e)})
            return 0

        now = self.clock()
        stale = [doc for doc in docs if doc.used or doc.expires_at < now]
        deleted = 0
        for doc in stale:
            if await self.tickets.delete(doc.key):
                deleted += 1

        if stale:
            logger.info("Purged stale tickets", extra={
                "shop": shop,
                "stale": len(stale),
                "deleted": deleted
            })
        return deleted
