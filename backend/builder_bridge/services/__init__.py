"""
Business logic services.
"""

from builder_bridge.services.credential_service import CredentialService, TenantState
from builder_bridge.services.ticket_service import TicketService
from builder_bridge.services.plan_service import PlanResolver
from builder_bridge.services.billing_service import BillingService
from builder_bridge.services.lifecycle_service import LifecycleService

__all__ = [
    "CredentialService",
    "TenantState",
    "TicketService",
    "PlanResolver",
    "BillingService",
    "LifecycleService",
]
