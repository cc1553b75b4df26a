"""
Configuration: environment settings and the billing plan catalogue.
"""

from builder_bridge.config.settings import Settings
from builder_bridge.config.billing_plans import (
    BillingPlan,
    BillingPlanCatalog,
    load_billing_plans,
    FREEMIUM,
    BASIC,
    PREMIUM,
)

__all__ = [
    "Settings",
    "BillingPlan",
    "BillingPlanCatalog",
    "load_billing_plans",
    "FREEMIUM",
    "BASIC",
    "PREMIUM",
]
