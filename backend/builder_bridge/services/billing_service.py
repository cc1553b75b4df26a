"""
Billing flows: plan upgrade requests and the Shopify return callback.

request_upgrade() returns a BillingOutcome instead of raising on Shopify
failures; the caller is an authenticated admin and gets the failure detail.
handle_callback() always produces a redirect and never raises. The plan named
in the return URL is only trusted when the URL carries a fresh signature
made by return_url(); otherwise Shopify is asked directly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from urllib.parse import quote, urlencode

from builder_bridge.config.billing_plans import BillingPlanCatalog
from builder_bridge.config.settings import Settings
from builder_bridge.integrations.shopify import BillingInterval, ShopifyAPIError
from builder_bridge.platform.audit import AuditAction, ClientInfo, log_audit_event
from builder_bridge.platform.shopify_auth import AdminContext
from builder_bridge.platform.shopify_session import is_valid_shop_domain, normalize_shop_domain
from builder_bridge.platform.signed_urls import callback_signature, verify_callback_signature
from builder_bridge.services.errors import InvalidPlanError
from builder_bridge.services.plan_service import PlanResolver
from builder_bridge.services.ticket_service import Clock, utc_now

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"

# Lifetime of a signed billing return URL
CALLBACK_MAX_AGE_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class BillingRedirect:
    """Merchant must approve the charge at confirmation_url."""
    confirmation_url: str


@dataclass(frozen=True)
class BillingFailure:
    message: str
    details: Any = field(default=None)


BillingOutcome = Union[BillingRedirect, BillingFailure]


class BillingService:
    """Starts plan upgrades and records confirmed plans."""

    def __init__(
        self,
        settings: Settings,
        catalog: BillingPlanCatalog,
        plans: PlanResolver,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.catalog = catalog
        self.plans = plans
        self.clock = clock or utc_now

    def return_url(self, shop: str, shopify_plan_name: str) -> str:
        """Callback URL carrying the chosen plan, signed with the app secret."""
        timestamp = int(self.clock().timestamp())
        signature = callback_signature(self.settings.shopify_api_secret, shop, shopify_plan_name, timestamp)
        query = urlencode(
            {"shop": shop, "plan": shopify_plan_name, "ts": timestamp, "sig": signature},
            quote_via=quote,
        )
        return f"{self.settings.app_url}/billing/callback?{query}"

    def admin_app_url(self, shop: str) -> str:
        return f"https://{shop}/admin/apps/{self.settings.shopify_app_handle}/app"

    async def request_upgrade(
        self,
        admin: AdminContext,
        plan: Optional[str],
        client: Optional[ClientInfo] = None,
    ) -> BillingOutcome:
        """
        Create a Shopify subscription for a billable plan.

        Raises:
            InvalidPlanError: The plan is unknown or not billable
        """
        billing_plan = self.catalog.billable(plan or "")
        if billing_plan is None:
            raise InvalidPlanError(plan or "")

        return_url = self.return_url(admin.shop, billing_plan.shopify_name)
        test = self.settings.billing_test_mode
        logger.info("Requesting plan upgrade", extra={
            "shop": admin.shop,
            "plan": billing_plan.key,
            "test": test,
        })

        try:
            async with admin.billing_client() as client_api:
                result = await client_api.create_subscription(
                    name=billing_plan.shopify_name,
                    price_amount=billing_plan.amount,
                    return_url=return_url,
                    currency_code=billing_plan.currency_code,
                    interval=BillingInterval(billing_plan.interval),
                    trial_days=billing_plan.trial_days,
                    test=test,
                )
        except ShopifyAPIError as e:
            logger.error("Billing request failed", extra={
                "shop": admin.shop,
                "plan": billing_plan.key,
                "status_code": e.status_code,
                "error": str(e),
            })
            return BillingFailure(message=str(e) or "Billing request failed", details=e.response)

        if not result.success:
            logger.error("Billing request rejected", extra={
                "shop": admin.shop,
                "plan": billing_plan.key,
                "user_errors": result.user_errors,
            })
            return BillingFailure(message="Billing request failed", details=result.user_errors or None)

        log_audit_event(
            AuditAction.BILLING_UPGRADE_REQUESTED,
            shop=admin.shop,
            client=client,
            resource_type="plan",
            resource_id=billing_plan.key,
            metadata={"test": test},
        )
        return BillingRedirect(confirmation_url=result.confirmation_url)

    def is_signed_hint(
        self,
        shop: str,
        plan_hint: Optional[str],
        timestamp: Optional[str],
        signature: Optional[str],
    ) -> bool:
        return verify_callback_signature(
            self.settings.shopify_api_secret,
            shop,
            plan_hint,
            timestamp,
            signature,
            now=self.clock(),
            max_age_seconds=CALLBACK_MAX_AGE_SECONDS,
        )

    async def handle_callback(
        self,
        shop: Optional[str],
        plan_hint: Optional[str],
        timestamp: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> str:
        """
        Record the plan confirmed by a billing redirect and return where to send the merchant.

        A shop that is not a myshopify.com domain goes to the login page. A
        shop without a project keeps the plan only in Shopify until its next
        create record is written.
        """
        if not shop:
            return LOGIN_PATH

        shop = normalize_shop_domain(shop)
        if not is_valid_shop_domain(shop):
            logger.warning("Billing callback for invalid shop domain", extra={"shop": shop})
            return LOGIN_PATH

        if plan_hint and not self.is_signed_hint(shop, plan_hint, timestamp, signature):
            logger.warning("Ignoring unsigned billing plan hint", extra={"shop": shop, "plan_hint": plan_hint})
            plan_hint = None

        plan = await self.plans.resolve_callback_plan(shop, plan_hint)
        if plan is not None and await self.plans.persist_plan(shop, plan):
            log_audit_event(
                AuditAction.BILLING_PLAN_CHANGED,
                shop=shop,
                resource_type="plan",
                resource_id=plan,
            )

        return self.admin_app_url(shop)
