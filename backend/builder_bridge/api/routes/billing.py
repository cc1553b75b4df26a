"""
Billing routes: plan upgrade requests and the Shopify return callback.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse

from builder_bridge.api.dependencies import get_billing_service, get_client_info, require_admin
from builder_bridge.api.errors import protocol_error_response
from builder_bridge.api.schemas import BillingErrorResponse, UpgradeRequest, UpgradeResponse
from builder_bridge.platform.audit import ClientInfo
from builder_bridge.platform.shopify_auth import AdminContext
from builder_bridge.services.billing_service import BillingFailure, BillingService
from builder_bridge.services.errors import InvalidPlanError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post(
    "/upgrade-request",
    response_model=UpgradeResponse,
    responses={500: {"model": BillingErrorResponse}},
)
async def upgrade_request(
    body: Optional[UpgradeRequest] = None,
    admin: AdminContext = Depends(require_admin),
    service: BillingService = Depends(get_billing_service),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Start a plan upgrade.

    Returns the Shopify confirmation URL; the dashboard navigates the top
    frame to it. Billing failures return {error, details} with status 500.
    """
    plan = body.plan if body else None
    try:
        outcome = await service.request_upgrade(admin, plan, client=client)
    except InvalidPlanError as e:
        logger.warning("Invalid plan requested", extra={"shop": admin.shop, "plan": plan})
        return protocol_error_response(e)

    if isinstance(outcome, BillingFailure):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=BillingErrorResponse(error=outcome.message, details=outcome.details).model_dump(mode="json"),
        )

    return UpgradeResponse(confirmation_url=outcome.confirmation_url)


@router.get("/callback")
async def billing_callback(
    shop: Optional[str] = Query(None, description="Shop domain"),
    plan: Optional[str] = Query(None, description="Shopify subscription name"),
    ts: Optional[str] = Query(None, description="Return URL issue time"),
    sig: Optional[str] = Query(None, description="Return URL signature"),
    service: BillingService = Depends(get_billing_service),
):
    """
    Shopify sends the merchant here after they approve or decline a charge.

    The confirmed plan is persisted if the tenant has a project, then the
    merchant is sent back into the embedded app. An unsigned plan is not
    trusted; Shopify is queried instead.
    """
    logger.info("Billing callback received", extra={"shop": shop, "plan": plan})
    redirect_url = await service.handle_callback(shop, plan, timestamp=ts, signature=sig)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)
