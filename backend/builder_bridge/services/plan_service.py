"""
Plan resolution.

A tenant's entitlement tier comes from one of three sources:
- the billing redirect hint (a Shopify subscription name in the return URL)
- the live Shopify billing query (activeSubscriptions)
- the persisted paymentPlan in the project's StoreData.metadata

Which source wins depends on the flow: once a project exists its persisted
plan is authoritative for rendering; before that the live billing state is
used and is baked into the next create record.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from builder_bridge.config.billing_plans import BillingPlanCatalog
from builder_bridge.integrations.document_store import DocumentStoreError, StoreRecord
from builder_bridge.integrations.shopify import ShopifyAPIError
from builder_bridge.platform.shopify_auth import AdminContext, ShopifyAdminAuthenticator
from builder_bridge.repositories.store_repository import StoreRepository

logger = logging.getLogger(__name__)

SOURCE_STORE_METADATA = "store_metadata"
SOURCE_BILLING = "billing"


@dataclass(frozen=True)
class PlanResolution:
    """The plan shown for a tenant, where it came from, and its project if any."""
    plan: str
    source: str
    store: Optional[StoreRecord] = None


class PlanResolver:
    """Maps billing state and stored metadata to an internal plan."""

    def __init__(
        self,
        stores: StoreRepository,
        catalog: BillingPlanCatalog,
        authenticator: ShopifyAdminAuthenticator,
    ):
        self.stores = stores
        self.catalog = catalog
        self.authenticator = authenticator

    def plan_from_subscription_name(self, name: Optional[str]) -> str:
        return self.catalog.plan_for_subscription(name)

    async def billing_plan(self, admin: AdminContext) -> str:
        """
        Plan implied by the shop's active subscriptions.

        Best-effort: if Shopify cannot be queried the default plan is returned.
        """
        try:
            subscriptions = await admin.billing_check()
        except ShopifyAPIError as e:
            logger.warning("Billing check failed, using default plan", extra={
                "shop": admin.shop,
                "error": str(e)
            })
            return self.catalog.default_plan

        if not subscriptions:
            return self.catalog.default_plan
        return self.plan_from_subscription_name(subscriptions[0].name)

    async def stored_plan(self, store: StoreRecord) -> str:
        """
        Persisted plan of a provisioned project; absent metadata means the default plan.

        Raises:
            DocumentStoreError: If the metadata cannot be read
        """
        plan = await self.stores.get_store_plan(store.db_name)
        return plan or self.catalog.default_plan

    async def current_plan(self, shop: str, admin: AdminContext) -> PlanResolution:
        """
        Plan to show on the dashboard.

        Raises:
            DocumentStoreError: If the project lookup fails
        """
        store = await self.stores.find_store_by_shop(shop)
        if store is not None:
            return PlanResolution(
                plan=await self.stored_plan(store),
                source=SOURCE_STORE_METADATA,
                store=store,
            )
        return PlanResolution(plan=await self.billing_plan(admin), source=SOURCE_BILLING)

    async def plan_for_new_project(self, admin: AdminContext) -> str:
        """Plan to bake into a create record."""
        return await self.billing_plan(admin)

    async def resolve_callback_plan(self, shop: str, plan_hint: Optional[str]) -> Optional[str]:
        """
        Plan confirmed by a billing redirect.

        The hint must already be verified by the caller (BillingService checks
        the return URL signature). It wins when it names a known subscription.
        Otherwise the shop's active subscriptions are queried with its offline
        session. Returns None when neither source yields an answer.
        """
        if plan_hint and plan_hint in self.catalog.shopify_names:
            plan = self.plan_from_subscription_name(plan_hint)
            logger.info("Billing confirmed via return URL", extra={"shop": shop, "plan": plan})
            return plan

        try:
            admin = await self.authenticator.for_shop(shop)
            if admin is None:
                logger.warning("No offline session for billing callback", extra={"shop": shop})
                return None
            subscriptions = await admin.billing_check()
        except (ShopifyAPIError, DocumentStoreError) as e:
            logger.error("Billing callback query failed", extra={
                "shop": shop,
                "error": str(e)
            })
            return None

        plan = (
            self.plan_from_subscription_name(subscriptions[0].name)
            if subscriptions
            else self.catalog.default_plan
        )
        logger.info("Billing confirmed via Shopify query", extra={"shop": shop, "plan": plan})
        return plan

    async def persist_plan(self, shop: str, plan: str) -> bool:
        """
        Write the plan to the tenant's project metadata.

        Returns:
            True if written; False if no project exists yet or the write failed
        """
        try:
            store = await self.stores.find_store_by_shop(shop)
            if store is None:
                logger.info("No project yet, plan will be carried by the next create record", extra={
                    "shop": shop,
                    "plan": plan
                })
                return False
            await self.stores.set_store_plan(store.db_name, plan)
        except DocumentStoreError as e:
            logger.error("Failed to persist plan", extra={
                "shop": shop,
                "plan": plan,
                "error": str(e)
            })
            return False
        return True
