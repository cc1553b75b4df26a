"""
Billing plan catalogue loader.

Loads the closed set of entitlement tiers from config/billing_plans.yml and
maps between internal plan identifiers ("basic") and the Shopify
subscription names the Billing API reports ("Basic Plan").

Consumers:
  - PlanResolver: subscription name -> internal plan
  - BillingService: internal plan -> subscription definition

Usage:
    from builder_bridge.config.billing_plans import load_billing_plans

    catalog = load_billing_plans()
    catalog.plan_for_subscription("Premium Plan")  # "premium"
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

FREEMIUM = "freemium"
BASIC = "basic"
PREMIUM = "premium"

# Used when the YAML file cannot be found
_FALLBACK_PLANS: Dict[str, Dict[str, Any]] = {
    FREEMIUM: {"display_name": "Freemium", "billable": False},
    BASIC: {
        "display_name": "Basic",
        "shopify_name": "Basic Plan",
        "billable": True,
        "amount": 19.00,
        "currency_code": "USD",
        "interval": "EVERY_30_DAYS",
    },
    PREMIUM: {
        "display_name": "Premium",
        "shopify_name": "Premium Plan",
        "billable": True,
        "amount": 49.00,
        "currency_code": "USD",
        "interval": "EVERY_30_DAYS",
    },
}


@dataclass(frozen=True)
class BillingPlan:
    """One entitlement tier."""
    key: str
    display_name: str
    billable: bool
    shopify_name: Optional[str] = None
    amount: float = 0.0
    currency_code: str = "USD"
    interval: str = "EVERY_30_DAYS"
    trial_days: int = 0


class BillingPlanCatalog:
    """Lookup table over the configured plans."""

    def __init__(self, plans: Dict[str, BillingPlan], default_plan: str = FREEMIUM):
        if default_plan not in plans:
            raise ValueError(f"default plan {default_plan!r} is not defined")
        self._plans = plans
        self.default_plan = default_plan
        self._by_shopify_name = {
            plan.shopify_name: plan.key
            for plan in plans.values()
            if plan.shopify_name
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "BillingPlanCatalog":
        plans = {}
        for key, config in (raw.get("plans") or {}).items():
            plans[key] = BillingPlan(
                key=key,
                display_name=config.get("display_name", key.title()),
                billable=bool(config.get("billable", False)),
                shopify_name=config.get("shopify_name"),
                amount=float(config.get("amount", 0.0)),
                currency_code=config.get("currency_code", "USD"),
                interval=config.get("interval", "EVERY_30_DAYS"),
                trial_days=int(config.get("trial_days", 0)),
            )
        return cls(plans, default_plan=raw.get("default_plan", FREEMIUM))

    def get(self, key: str) -> Optional[BillingPlan]:
        return self._plans.get(key)

    def billable(self, key: str) -> Optional[BillingPlan]:
        """Return the plan if it can be purchased through Shopify Billing."""
        plan = self._plans.get(key)
        if plan and plan.billable and plan.shopify_name:
            return plan
        return None

    def plan_for_subscription(self, subscription_name: Optional[str]) -> str:
        """Map a Shopify subscription name to an internal plan; unknown names map to the default."""
        if not subscription_name:
            return self.default_plan
        return self._by_shopify_name.get(subscription_name, self.default_plan)

    @property
    def keys(self) -> list[str]:
        return list(self._plans.keys())

    @property
    def shopify_names(self) -> list[str]:
        return list(self._by_shopify_name.keys())


def _resolve_path(config_path: Optional[str]) -> Optional[Path]:
    if config_path:
        return Path(config_path)

    candidates = [
        Path(__file__).parent.parent.parent / "config" / "billing_plans.yml",
        Path(os.getcwd()) / "config" / "billing_plans.yml",
        Path(os.getcwd()) / "backend" / "config" / "billing_plans.yml",
    ]
    for p in candidates:
        resolved = p.resolve()
        if resolved.exists():
            return resolved
    return None


def load_billing_plans(config_path: Optional[str] = None) -> BillingPlanCatalog:
    """
    Load the plan catalogue from YAML.

    Falls back to the built-in catalogue when no file is found; a path that
    was given explicitly but does not exist is an error.
    """
    path = _resolve_path(config_path)
    if path is None:
        logger.warning("billing_plans.yml not found, using fallback plans")
        return BillingPlanCatalog.from_dict({"plans": _FALLBACK_PLANS})

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    catalog = BillingPlanCatalog.from_dict(raw)
    logger.info(
        "Loaded billing plans from %s: %s", path, catalog.keys
    )
    return catalog
