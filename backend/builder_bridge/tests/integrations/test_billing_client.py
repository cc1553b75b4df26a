"""
Unit tests for ShopifyBillingClient.

Tests cover:
- Subscription creation (success, user errors)
- Active subscription listing
- Error classification
"""

import json
import logging

import pytest
from unittest.mock import MagicMock, patch

import httpx

from builder_bridge.integrations.shopify import (
    BillingInterval,
    CreateSubscriptionResult,
    ShopifyAPIError,
    ShopifyBillingClient,
)


@pytest.fixture
def billing_client():
    """Create a billing client for testing."""
    return ShopifyBillingClient(
        shop_domain="test-store.myshopify.com",
        access_token="test-token"
    )


def _ok(data: dict) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"data": data}
    return mock_response


class TestClientConstruction:

    def test_normalizes_shop_domain(self):
        client = ShopifyBillingClient("https://test-store.myshopify.com/", "tok")

        assert client.shop_domain == "test-store.myshopify.com"
        assert client.graphql_url == "https://test-store.myshopify.com/admin/api/2024-10/graphql.json"

    def test_requires_access_token(self):
        with pytest.raises(ValueError):
            ShopifyBillingClient("test-store.myshopify.com", "")

    def test_access_token_header(self, billing_client):
        assert billing_client._client.headers["X-Shopify-Access-Token"] == "test-token"


class TestCreateSubscriptionResult:

    def test_success_requires_url_and_no_errors(self):
        assert CreateSubscriptionResult(confirmation_url="https://x").success is True
        assert CreateSubscriptionResult(confirmation_url="").success is False
        assert CreateSubscriptionResult(
            confirmation_url="https://x",
            user_errors=[{"field": ["name"], "message": "bad"}],
        ).success is False


class TestCreateSubscription:

    @pytest.mark.asyncio
    async def test_success(self, billing_client):
        """Confirmation URL and subscription are parsed from the mutation result."""
        mock_response = _ok({
            "appSubscriptionCreate": {
                "appSubscription": {
                    "id": "gid://shopify/AppSubscription/1",
                    "name": "Basic Plan",
                    "status": "PENDING",
                    "createdAt": "2026-01-15T12:00:00Z",
                    "currentPeriodEnd": None,
                    "trialDays": 0,
                    "test": True,
                },
                "confirmationUrl": "https://test-store.myshopify.com/admin/charges/1/confirm",
                "userErrors": [],
            }
        })

        with patch.object(billing_client._client, 'post', return_value=mock_response) as mock_post:
            result = await billing_client.create_subscription(
                name="Basic Plan",
                price_amount=19.00,
                return_url="https://bridge.example.com/billing/callback?shop=test-store.myshopify.com",
                test=True,
            )

        assert result.success is True
        assert result.confirmation_url.endswith("/confirm")
        assert result.app_subscription.name == "Basic Plan"
        assert result.app_subscription.created_at.tzinfo is not None

        variables = mock_post.call_args.kwargs["json"]["variables"]
        pricing = variables["lineItems"][0]["plan"]["appRecurringPricingDetails"]
        assert pricing["price"] == {"amount": 19.00, "currencyCode": "USD"}
        assert pricing["interval"] == BillingInterval.EVERY_30_DAYS.value
        assert variables["test"] is True

    @pytest.mark.asyncio
    async def test_user_errors(self, billing_client):
        mock_response = _ok({
            "appSubscriptionCreate": {
                "appSubscription": None,
                "confirmationUrl": None,
                "userErrors": [{"field": ["price"], "message": "Price is invalid"}],
            }
        })

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            result = await billing_client.create_subscription(
                name="Basic Plan", price_amount=-1, return_url="https://x"
            )

        assert result.success is False
        assert result.confirmation_url == ""
        assert result.user_errors[0]["message"] == "Price is invalid"


class TestGetActiveSubscriptions:

    @pytest.mark.asyncio
    async def test_lists_subscriptions_in_order(self, billing_client):
        mock_response = _ok({
            "currentAppInstallation": {
                "activeSubscriptions": [
                    {"id": "gid://1", "name": "Premium Plan", "status": "ACTIVE"},
                    {"id": "gid://2", "name": "Basic Plan", "status": "ACTIVE"},
                ]
            }
        })

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            subscriptions = await billing_client.get_active_subscriptions()

        assert [s.name for s in subscriptions] == ["Premium Plan", "Basic Plan"]

    @pytest.mark.asyncio
    async def test_no_installation_is_empty(self, billing_client):
        with patch.object(billing_client._client, 'post', return_value=_ok({"currentAppInstallation": None})):
            assert await billing_client.get_active_subscriptions() == []


class TestErrorHandling:

    @pytest.mark.asyncio
    async def test_401_error(self, billing_client):
        """Test 401 authentication error."""
        mock_response = MagicMock()
        mock_response.status_code = 401

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            with pytest.raises(ShopifyAPIError) as exc_info:
                await billing_client.get_active_subscriptions()

        assert exc_info.value.status_code == 401
        assert "Authentication failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_402_frozen_store(self, billing_client):
        mock_response = MagicMock()
        mock_response.status_code = 402

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            with pytest.raises(ShopifyAPIError) as exc_info:
                await billing_client.get_active_subscriptions()

        assert exc_info.value.status_code == 402

    @pytest.mark.asyncio
    async def test_429_rate_limited(self, billing_client):
        mock_response = MagicMock()
        mock_response.status_code = 429

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            with pytest.raises(ShopifyAPIError) as exc_info:
                await billing_client.get_active_subscriptions()

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_graphql_errors_keep_response(self, billing_client):
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"errors": [{"message": "Access denied"}]}

        with patch.object(billing_client._client, 'post', return_value=mock_response):
            with pytest.raises(ShopifyAPIError) as exc_info:
                await billing_client.get_active_subscriptions()

        assert exc_info.value.response == {"errors": [{"message": "Access denied"}]}

    @pytest.mark.asyncio
    async def test_timeout(self, billing_client):
        with patch.object(billing_client._client, 'post', side_effect=httpx.ConnectTimeout("slow")):
            with pytest.raises(ShopifyAPIError) as exc_info:
                await billing_client.get_active_subscriptions()

        assert "timeout" in str(exc_info.value).lower()


class TestLoggingAtInfo:
    """The client must log through a configured INFO handler without error."""

    @pytest.mark.asyncio
    async def test_create_subscription_logs_at_info(self, caplog):
        caplog.set_level(logging.INFO)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"appSubscriptionCreate": {
                "appSubscription": {"id": "gid://shopify/AppSubscription/7", "name": "Premium Plan", "status": "PENDING"},
                "confirmationUrl": "https://test-store.myshopify.com/admin/charges/7/confirm",
                "userErrors": [],
            }}})

        async with ShopifyBillingClient(
            "test-store.myshopify.com", "test-token", transport=httpx.MockTransport(handler)
        ) as client:
            result = await client.create_subscription(
                name="Premium Plan", price_amount=49.00, return_url="https://x", test=True
            )

        assert result.success is True
        assert seen[0]["variables"]["name"] == "Premium Plan"
        record = next(r for r in caplog.records if r.getMessage() == "Requesting Shopify subscription")
        assert record.plan_name == "Premium Plan"
        assert record.name == "builder_bridge.integrations.shopify.billing_client"

    @pytest.mark.asyncio
    async def test_user_errors_log_at_info(self, caplog):
        caplog.set_level(logging.INFO)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"appSubscriptionCreate": {
                "appSubscription": None,
                "confirmationUrl": None,
                "userErrors": [{"field": ["price"], "message": "Price is invalid"}],
            }}})

        async with ShopifyBillingClient(
            "test-store.myshopify.com", "test-token", transport=httpx.MockTransport(handler)
        ) as client:
            result = await client.create_subscription(name="Basic Plan", price_amount=-1, return_url="https://x")

        assert result.success is False
        assert any(r.getMessage() == "Shopify rejected subscription" for r in caplog.records)
