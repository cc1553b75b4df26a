"""
Tenant lifecycle: uninstall cleanup and session scope refresh.

Both are driven by Shopify webhooks, which retry until acknowledged, so
nothing here raises. Offboarding is idempotent; running it again on a clean
tenant is a no-op and is how a partial failure gets retried.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from builder_bridge.integrations.document_store import DocumentStoreError
from builder_bridge.platform.audit import AuditAction, AuditOutcome, log_audit_event
from builder_bridge.repositories.app_data_repository import AppDataRepository
from builder_bridge.repositories.session_repository import SessionRepository
from builder_bridge.repositories.ticket_repository import TicketRepository

logger = logging.getLogger(__name__)


@dataclass
class OffboardReport:
    """What offboard() removed and which steps failed."""
    shop: str
    sessions_deleted: int = 0
    records_deleted: int = 0
    tickets_deleted: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class LifecycleService:
    """Cleans up after uninstall and keeps stored sessions in step with granted scopes."""

    def __init__(
        self,
        sessions: SessionRepository,
        app_data: AppDataRepository,
        tickets: TicketRepository,
    ):
        self.sessions = sessions
        self.app_data = app_data
        self.tickets = tickets

    async def offboard(self, shop: str) -> OffboardReport:
        """
        Remove every session, access-request record and ticket of a shop.

        Best-effort: each step runs even if an earlier one failed.
        """
        report = OffboardReport(shop=shop)

        try:
            sessions = await self.sessions.find_sessions_by_shop(shop)
            session_ids = [s.id for s in sessions]
            if await self.sessions.delete_sessions(session_ids):
                report.sessions_deleted = len(session_ids)
            else:
                report.failures.append("sessions")
        except DocumentStoreError as e:
            logger.error("Could not list sessions for offboarding", extra={
                "shop": shop,
                "error": str(e)
            })
            report.failures.append("sessions")

        try:
            records = await self.app_data.find_all_by_shop(shop)
            for record in records:
                if await self.app_data.delete_by_key(record.key):
                    report.records_deleted += 1
            if report.records_deleted < len(records):
                report.failures.append("app_data")
        except DocumentStoreError as e:
            logger.error("Could not list access requests for offboarding", extra={
                "shop": shop,
                "error": str(e)
            })
            report.failures.append("app_data")

        try:
            tickets = await self.tickets.find_by_shop(shop)
            for ticket in tickets:
                if await self.tickets.delete(ticket.key):
                    report.tickets_deleted += 1
            if report.tickets_deleted < len(tickets):
                report.failures.append("tickets")
        except DocumentStoreError as e:
            logger.error("Could not list tickets for offboarding", extra={
                "shop": shop,
                "error": str(e)
            })
            report.failures.append("tickets")

        if report.complete:
            logger.info("Tenant offboarded", extra={
                "shop": shop,
                "sessions_deleted": report.sessions_deleted,
                "records_deleted": report.records_deleted,
                "tickets_deleted": report.tickets_deleted,
            })
        else:
            logger.warning("Tenant offboarding incomplete", extra={
                "shop": shop,
                "failures": report.failures
            })

        log_audit_event(
            AuditAction.TENANT_OFFBOARDED,
            shop=shop,
            source="webhook",
            outcome=AuditOutcome.SUCCESS if report.complete else AuditOutcome.FAILURE,
            metadata={
                "sessions_deleted": report.sessions_deleted,
                "records_deleted": report.records_deleted,
                "tickets_deleted": report.tickets_deleted,
                "failures": report.failures,
            },
        )
        return report

    async def update_scopes(self, session_id: str, scopes: Optional[Iterable[str]]) -> bool:
        """
        Set a stored session's scope to the granted scopes.

        Returns:
            True if the session was updated; False if it does not exist or
            could not be read or written
        """
        try:
            session = await self.sessions.load_session(session_id)
        except DocumentStoreError as e:
            logger.error("Could not load session for scope update", extra={
                "session_id": session_id,
                "error": str(e)
            })
            return False

        if session is None:
            logger.info("No session to update scopes for", extra={"session_id": session_id})
            return False

        session.scope = ",".join(scopes or [])
        if not await self.sessions.store_session(session):
            return False

        log_audit_event(
            AuditAction.SESSION_SCOPES_UPDATED,
            shop=session.shop,
            source="webhook",
            resource_type="session",
            resource_id=session_id,
            metadata={"scope": session.scope},
        )
        return True
