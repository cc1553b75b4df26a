"""
Dashboard state for the embedded admin page.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from builder_bridge.api.dependencies import (
    get_credential_service,
    get_plan_resolver,
    get_settings,
    require_admin,
)
from builder_bridge.api.schemas import DashboardResponse, MerchantConfigResponse
from builder_bridge.config.settings import Settings
from builder_bridge.integrations.document_store import DocumentStoreError
from builder_bridge.platform.shopify_auth import AdminContext
from builder_bridge.services.credential_service import CredentialService
from builder_bridge.services.plan_service import PlanResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    admin: AdminContext = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    credentials: CredentialService = Depends(get_credential_service),
    plans: PlanResolver = Depends(get_plan_resolver),
):
    """Everything the dashboard renders: plan, project status and the latest access request."""
    try:
        resolution = await plans.current_plan(admin.shop, admin)
        latest = await credentials.latest_access_request(admin.shop)
        tenant_state = await credentials.tenant_state(admin.shop)
    except DocumentStoreError as e:
        logger.error("Error loading dashboard state", extra={
            "shop": admin.shop,
            "error": str(e)
        })
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )

    merchant_config = None
    if latest is not None:
        merchant_config = MerchantConfigResponse(
            email=latest.data.email,
            access_key=latest.key,
            created_at=latest.created_at,
        )

    return DashboardResponse(
        shop=admin.shop,
        user_email=admin.user_email,
        builder_url=settings.builder_url,
        current_plan=resolution.plan,
        plan_source=resolution.source,
        tenant_state=tenant_state.value,
        is_existing_store=resolution.store is not None,
        store_db_name=resolution.store.db_name if resolution.store else None,
        merchant_config=merchant_config,
    )
