#!/usr/bin/env python3
"""
Script to send signed Shopify lifecycle webhooks to a local server.

Usage:
    # Start your server first
    python main.py

    # Then run this script
    python scripts/send_webhook.py --event app_uninstalled --shop acme.myshopify.com
    python scripts/send_webhook.py --event scopes_update --scopes read_products,write_products
    python scripts/send_webhook.py --event invalid_signature
"""

import argparse
import base64
import hashlib
import hmac
import json
import os

import httpx

DEFAULT_SECRET = os.getenv("SHOPIFY_API_SECRET", "test_webhook_secret")
DEFAULT_BASE_URL = os.getenv("TEST_BASE_URL", "http://localhost:8000")


def generate_hmac(payload: bytes, secret: str) -> str:
    """Generate HMAC-SHA256 signature for webhook payload."""
    computed = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256
    ).digest()
    return base64.b64encode(computed).decode("utf-8")


def send_webhook(
    base_url: str,
    endpoint: str,
    payload: dict,
    topic: str,
    shop_domain: str,
    secret: str,
) -> httpx.Response:
    """Send one webhook and print the response."""
    url = f"{base_url}{endpoint}"
    payload_bytes = json.dumps(payload).encode("utf-8")

    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": shop_domain,
        "X-Shopify-Hmac-Sha256": generate_hmac(payload_bytes, secret),
    }

    print(f"\n{'='*60}")
    print(f"Sending webhook: {topic}")
    print(f"URL: {url}")
    print(f"Shop: {shop_domain}")
    print(f"Payload: {json.dumps(payload, indent=2)}")
    print(f"{'='*60}\n")

    response = httpx.post(url, content=payload_bytes, headers=headers)
    print(f"Response Status: {response.status_code}")
    print(f"Response Body: {response.text}")
    return response


def app_uninstalled(args) -> httpx.Response:
    payload = {
        "id": 12345,
        "name": "Test Store",
        "domain": args.shop,
        "myshopify_domain": args.shop,
    }
    return send_webhook(args.base_url, "/webhooks/app/uninstalled", payload, "app/uninstalled", args.shop, args.secret)


def scopes_update(args) -> httpx.Response:
    current = [scope.strip() for scope in args.scopes.split(",") if scope.strip()]
    payload = {"id": 12345, "previous": [], "current": current}
    return send_webhook(args.base_url, "/webhooks/app/scopes_update", payload, "app/scopes_update", args.shop, args.secret)


def invalid_signature(args) -> httpx.Response:
    """Sign with the wrong secret; the server must answer 401."""
    response = send_webhook(
        args.base_url,
        "/webhooks/app/uninstalled",
        {"id": 12345, "domain": args.shop},
        "app/uninstalled",
        args.shop,
        args.secret + "-forged",
    )
    if response.status_code == 401:
        print("\nInvalid signature correctly rejected")
    else:
        print("\nWARNING: invalid signature was NOT rejected")
    return response


EVENTS = {
    "app_uninstalled": app_uninstalled,
    "scopes_update": scopes_update,
    "invalid_signature": invalid_signature,
}


def main():
    parser = argparse.ArgumentParser(description="Send signed Shopify webhooks to a local server")
    parser.add_argument("--event", choices=list(EVENTS.keys()), required=True)
    parser.add_argument("--shop", default="test-store.myshopify.com")
    parser.add_argument("--scopes", default="read_products")
    parser.add_argument(
        "--secret",
        default=DEFAULT_SECRET,
        help="Webhook secret (default: SHOPIFY_API_SECRET env var)"
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="Base URL of your server (default: http://localhost:8000)"
    )

    args = parser.parse_args()
    try:
        EVENTS[args.event](args)
    except httpx.RequestError as e:
        print(f"Error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
