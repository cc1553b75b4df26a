"""
Service providers for route handlers.

Everything is built once in the application lifespan and stored on
app.state; these dependencies only hand it out. Tests replace them through
app.dependency_overrides or by putting fakes on app.state.
"""

import logging

from fastapi import Depends, HTTPException, Request, status

from builder_bridge.config.settings import Settings
from builder_bridge.platform.audit import ClientInfo, extract_client_info
from builder_bridge.platform.shopify_auth import AdminContext, ShopifyAdminAuthenticator
from builder_bridge.services.billing_service import BillingService
from builder_bridge.services.credential_service import CredentialService
from builder_bridge.services.errors import UnauthenticatedError
from builder_bridge.services.lifecycle_service import LifecycleService
from builder_bridge.services.plan_service import PlanResolver
from builder_bridge.services.ticket_service import TicketService

logger = logging.getLogger(__name__)


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        logger.error("Application dependency not initialized", extra={"dependency": name})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready"
        )
    return value


def get_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_authenticator(request: Request) -> ShopifyAdminAuthenticator:
    return _state(request, "authenticator")


def get_credential_service(request: Request) -> CredentialService:
    return _state(request, "credential_service")


def get_ticket_service(request: Request) -> TicketService:
    return _state(request, "ticket_service")


def get_plan_resolver(request: Request) -> PlanResolver:
    return _state(request, "plan_resolver")


def get_billing_service(request: Request) -> BillingService:
    return _state(request, "billing_service")


def get_lifecycle_service(request: Request) -> LifecycleService:
    return _state(request, "lifecycle_service")


def get_client_info(request: Request) -> ClientInfo:
    return extract_client_info(request)


async def require_admin(
    request: Request,
    authenticator: ShopifyAdminAuthenticator = Depends(get_authenticator),
) -> AdminContext:
    """
    Authenticated admin context for the request.

    Raises:
        UnauthenticatedError: No valid session token, or no access token for the shop
        HTTPException: 503/500 as raised by the authenticator
    """
    try:
        return await authenticator.authenticate(request)
    except HTTPException as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            raise UnauthenticatedError(e.detail) from e
        raise
