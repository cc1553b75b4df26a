"""
Shopify Admin GraphQL client for the two billing calls Builder Bridge makes.

- get_active_subscriptions(): the installation's paid plan, read by
  PlanResolver when no project metadata exists yet
- create_subscription(): starts an upgrade; the merchant approves the charge
  at the confirmation URL and Shopify sends them to /billing/callback

One client per shop, authenticated with the shop's offline token. Use it as
an async context manager or call close().
"""

import logging
from typing import Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-10"

SUBSCRIPTION_FIELDS = "id name status createdAt currentPeriodEnd trialDays test"

CREATE_SUBSCRIPTION_MUTATION = """
mutation appSubscriptionCreate(
    $name: String!
    $returnUrl: URL!
    $lineItems: [AppSubscriptionLineItemInput!]!
    $trialDays: Int
    $test: Boolean
    $replacementBehavior: AppSubscriptionReplacementBehavior
) {
    appSubscriptionCreate(
        name: $name
        returnUrl: $returnUrl
        lineItems: $lineItems
        trialDays: $trialDays
        test: $test
        replacementBehavior: $replacementBehavior
    ) {
        appSubscription { %s }
        confirmationUrl
        userErrors { field message }
    }
}
""" % SUBSCRIPTION_FIELDS

ACTIVE_SUBSCRIPTIONS_QUERY = """
query activeSubscriptions {
    currentAppInstallation {
        activeSubscriptions { %s }
    }
}
""" % SUBSCRIPTION_FIELDS

# Status codes with a dedicated message; anything else >= 400 is generic.
STATUS_MESSAGES = {
    401: "Authentication failed - access token may be invalid or expired",
    402: "Store is frozen or payment required",
    429: "Rate limited - please retry after a delay",
}


class BillingInterval(str, Enum):
    EVERY_30_DAYS = "EVERY_30_DAYS"
    ANNUAL = "ANNUAL"


@dataclass
class ShopifySubscription:
    id: str  # GraphQL GID
    name: str
    status: str
    created_at: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_days: int = 0
    test: bool = False


@dataclass
class CreateSubscriptionResult:
    """Outcome of appSubscriptionCreate; user errors are data, not exceptions."""
    confirmation_url: str
    app_subscription: Optional[ShopifySubscription] = None
    user_errors: list = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.confirmation_url) and not self.user_errors


class ShopifyAPIError(Exception):
    """Transport, HTTP or GraphQL failure talking to the Admin API."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _subscription_from_node(node: dict) -> ShopifySubscription:
    return ShopifySubscription(
        id=node.get("id", ""),
        name=node.get("name", ""),
        status=node.get("status", ""),
        created_at=_parse_timestamp(node.get("createdAt")),
        current_period_end=_parse_timestamp(node.get("currentPeriodEnd")),
        trial_days=node.get("trialDays") or 0,
        test=node.get("test", False),
    )


def _recurring_line_item(amount: float, currency_code: str, interval: BillingInterval) -> dict:
    return {
        "plan": {
            "appRecurringPricingDetails": {
                "price": {"amount": amount, "currencyCode": currency_code},
                "interval": interval.value,
            }
        }
    }


class ShopifyBillingClient:
    """Billing calls for one shop. The access token is never logged."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not shop_domain:
            raise ValueError("shop_domain is required")
        if not access_token:
            raise ValueError("access_token is required")

        self.shop_domain = shop_domain.replace("https://", "").replace("http://", "").rstrip("/")
        self.api_version = api_version
        self.graphql_url = f"https://{self.shop_domain}/admin/api/{api_version}/graphql.json"
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0),
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": access_token,
            },
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _post(self, query: str, variables: Optional[dict] = None) -> dict:
        """POST one GraphQL document and return its `data`, or raise ShopifyAPIError."""
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(self.graphql_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error("Shopify billing request timed out", extra={"shop_domain": self.shop_domain})
            raise ShopifyAPIError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            logger.error(
                "Shopify billing request failed",
                extra={"shop_domain": self.shop_domain, "error": str(e)},
            )
            raise ShopifyAPIError(f"Request error: {e}") from e

        status_code = response.status_code
        if status_code >= 400:
            message = STATUS_MESSAGES.get(status_code, f"Shopify API error: {status_code}")
            log = logger.warning if status_code == 429 else logger.error
            log(message, extra={"shop_domain": self.shop_domain, "status_code": status_code})
            raise ShopifyAPIError(message, status_code=status_code)

        body = response.json()
        if "errors" in body:
            logger.error(
                "Shopify billing GraphQL errors",
                extra={"shop_domain": self.shop_domain, "graphql_errors": body["errors"]},
            )
            raise ShopifyAPIError(f"GraphQL errors: {body['errors']}", response=body)

        return body.get("data") or {}

    async def create_subscription(
        self,
        name: str,
        price_amount: float,
        return_url: str,
        currency_code: str = "USD",
        interval: BillingInterval = BillingInterval.EVERY_30_DAYS,
        trial_days: int = 0,
        test: bool = False,
        replacement_behavior: str = "APPLY_IMMEDIATELY",
    ) -> CreateSubscriptionResult:
        variables = {
            "name": name,
            "returnUrl": return_url,
            "lineItems": [_recurring_line_item(price_amount, currency_code, interval)],
            "trialDays": trial_days,
            "test": test,
            "replacementBehavior": replacement_behavior,
        }
        logger.info(
            "Requesting Shopify subscription",
            extra={
                "shop_domain": self.shop_domain,
                "plan_name": name,
                "price_amount": price_amount,
                "interval": interval.value,
                "test_charge": test,
            },
        )

        data = await self._post(CREATE_SUBSCRIPTION_MUTATION, variables)
        created = data.get("appSubscriptionCreate") or {}

        user_errors = created.get("userErrors") or []
        if user_errors:
            logger.warning(
                "Shopify rejected subscription",
                extra={"shop_domain": self.shop_domain, "user_errors": user_errors},
            )

        node = created.get("appSubscription")
        return CreateSubscriptionResult(
            confirmation_url=created.get("confirmationUrl") or "",
            app_subscription=_subscription_from_node(node) if node else None,
            user_errors=user_errors,
        )

    async def get_active_subscriptions(self) -> list[ShopifySubscription]:
        """Active subscriptions in Shopify's order; empty when there is no installation."""
        data = await self._post(ACTIVE_SUBSCRIPTIONS_QUERY)
        installation = data.get("currentAppInstallation") or {}
        return [_subscription_from_node(node) for node in installation.get("activeSubscriptions") or []]
