"""Repository layer over the remote document store, scoped by shop."""

from builder_bridge.repositories.base import (
    BaseDocumentRepository,
    TenantScopeError,
    GENERAL_DB,
)
from builder_bridge.repositories.session_repository import SessionRepository
from builder_bridge.repositories.app_data_repository import (
    AppDataCommand,
    AppDataRepository,
    is_create_command,
)
from builder_bridge.repositories.store_repository import StoreRepository
from builder_bridge.repositories.ticket_repository import TicketRepository

__all__ = [
    "BaseDocumentRepository",
    "TenantScopeError",
    "GENERAL_DB",
    "SessionRepository",
    "AppDataCommand",
    "AppDataRepository",
    "is_create_command",
    "StoreRepository",
    "TicketRepository",
]
