"""
Shopify webhook authentication.

SECURITY: All webhooks MUST verify HMAC signature before processing.
Shopify signs webhooks with the app's API secret.

Documentation: https://shopify.dev/docs/apps/webhooks/configuration/https
"""

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import HTTPException, Request, status

from builder_bridge.platform.shopify_session import Session, normalize_shop_domain

logger = logging.getLogger(__name__)

TOPIC_APP_UNINSTALLED = "app/uninstalled"
TOPIC_APP_SCOPES_UPDATE = "app/scopes_update"


@dataclass
class WebhookContext:
    """A verified webhook delivery."""
    shop: str
    topic: Optional[str]
    payload: dict = field(default_factory=dict)
    webhook_id: Optional[str] = None
    api_version: Optional[str] = None

    @property
    def session_id(self) -> str:
        """Id of the shop's offline session, the one webhooks act on."""
        return Session.offline_id(self.shop)


def verify_shopify_webhook(
    data: bytes,
    hmac_header: Optional[str],
    api_secret: str
) -> bool:
    """
    Verify Shopify webhook HMAC signature.

    Args:
        data: Raw request body bytes
        hmac_header: X-Shopify-Hmac-Sha256 header value
        api_secret: Shopify app API secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not hmac_header or not api_secret:
        return False

    computed_hmac = hmac.new(
        api_secret.encode("utf-8"),
        data,
        hashlib.sha256
    )
    computed_digest = base64.b64encode(computed_hmac.digest()).decode("utf-8")

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(computed_digest, hmac_header)


async def authenticate_webhook(request: Request, api_secret: str) -> WebhookContext:
    """
    Verify a webhook request and parse it.

    Raises:
        HTTPException: 401 on missing/invalid signature, 400 on missing shop
            or invalid JSON, 503 when no API secret is configured
    """
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")
    if not hmac_header:
        logger.warning("Missing HMAC header in webhook")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing HMAC signature"
        )

    shop_domain = request.headers.get("X-Shopify-Shop-Domain")
    if not shop_domain:
        logger.warning("Missing shop domain header in webhook")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing shop domain"
        )

    if not api_secret:
        logger.error("SHOPIFY_API_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification not configured"
        )

    body = await request.body()

    if not verify_shopify_webhook(body, hmac_header, api_secret):
        logger.warning("Invalid webhook HMAC", extra={
            "shop_domain": shop_domain
        })
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid HMAC signature"
        )

    try:
        payload = json.loads(body) if body else {}
    except json.JSONDecodeError:
        logger.error("Invalid JSON in webhook body")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON body"
        )

    return WebhookContext(
        shop=normalize_shop_domain(shop_domain),
        topic=request.headers.get("X-Shopify-Topic"),
        payload=payload if isinstance(payload, dict) else {},
        webhook_id=request.headers.get("X-Shopify-Webhook-Id"),
        api_version=request.headers.get("X-Shopify-API-Version"),
    )
