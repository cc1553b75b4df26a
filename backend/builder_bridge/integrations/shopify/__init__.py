"""
Shopify integration module.
"""

from builder_bridge.integrations.shopify.billing_client import (
    BillingInterval,
    CreateSubscriptionResult,
    ShopifyAPIError,
    ShopifyBillingClient,
    ShopifySubscription,
)

__all__ = [
    "BillingInterval",
    "CreateSubscriptionResult",
    "ShopifyAPIError",
    "ShopifyBillingClient",
    "ShopifySubscription",
]
