"""
Billing and dashboard response models.
"""

from datetime import datetime
from typing import Any, Optional

from builder_bridge.api.schemas.base import CamelModel


class UpgradeRequest(CamelModel):
    plan: Optional[str] = None


class UpgradeResponse(CamelModel):
    confirmation_url: str


class BillingErrorResponse(CamelModel):
    error: str
    details: Optional[Any] = None


class MerchantConfigResponse(CamelModel):
    """The tenant's latest access request, as shown on the dashboard."""
    email: Optional[str] = None
    access_key: str
    created_at: Optional[datetime] = None


class DashboardResponse(CamelModel):
    shop: str
    user_email: str
    builder_url: str
    current_plan: str
    plan_source: str
    tenant_state: str
    is_existing_store: bool
    store_db_name: Optional[str] = None
    merchant_config: Optional[MerchantConfigResponse] = None
