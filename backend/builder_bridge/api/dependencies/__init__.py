"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from builder_bridge.api.dependencies.services import (
    get_authenticator,
    get_billing_service,
    get_client_info,
    get_credential_service,
    get_lifecycle_service,
    get_plan_resolver,
    get_settings,
    get_ticket_service,
    require_admin,
)

__all__ = [
    "get_authenticator",
    "get_billing_service",
    "get_client_info",
    "get_credential_service",
    "get_lifecycle_service",
    "get_plan_resolver",
    "get_settings",
    "get_ticket_service",
    "require_admin",
]
