"""
Tests for billing return URL signatures and shop domain validation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from builder_bridge.platform.shopify_session import is_valid_shop_domain
from builder_bridge.platform.signed_urls import callback_signature, verify_callback_signature

SECRET = "test-api-secret"
SHOP = "acme.myshopify.com"
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
ISSUED = int(NOW.timestamp())


def verify(plan="Basic Plan", ts=str(ISSUED), sig=None, shop=SHOP, now=NOW, secret=SECRET):
    if sig is None:
        sig = callback_signature(SECRET, SHOP, "Basic Plan", ISSUED)
    return verify_callback_signature(secret, shop, plan, ts, sig, now=now, max_age_seconds=3600)


class TestCallbackSignature:

    def test_valid(self):
        assert verify() is True

    def test_bound_to_plan_and_shop(self):
        assert verify(plan="Premium Plan") is False
        assert verify(shop="globex.myshopify.com") is False

    def test_bound_to_secret(self):
        assert verify(secret="other-secret") is False

    def test_age_limits(self):
        assert verify(now=NOW + timedelta(seconds=3600)) is True
        assert verify(now=NOW + timedelta(seconds=3601)) is False
        assert verify(now=NOW - timedelta(seconds=1)) is False

    @pytest.mark.parametrize("ts,sig", [(None, "x"), ("", "x"), ("not-a-number", "x"), (str(ISSUED), "")])
    def test_missing_or_malformed_parts(self, ts, sig):
        assert verify(ts=ts, sig=sig) is False

    def test_missing_plan(self):
        assert verify(plan=None) is False


class TestShopDomain:

    @pytest.mark.parametrize("shop", ["acme.myshopify.com", "acme-2.myshopify.com", "9shop.myshopify.com"])
    def test_valid(self, shop):
        assert is_valid_shop_domain(shop)

    @pytest.mark.parametrize("shop", [
        None,
        "",
        "evil.example",
        "evil.example/phish?",
        "acme.myshopify.com.evil.example",
        "acme.myshopify.com/admin",
        "-acme.myshopify.com",
        "ACME.myshopify.com",
    ])
    def test_invalid(self, shop):
        assert not is_valid_shop_domain(shop)
