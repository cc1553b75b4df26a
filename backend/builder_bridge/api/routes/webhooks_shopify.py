"""
Shopify webhook handlers for app lifecycle events.

SECURITY: All webhooks MUST verify HMAC signature before processing.
Shopify signs webhooks with the app's API secret.

Handlers always acknowledge a verified webhook with 200; Shopify retries
anything else, and cleanup failures are logged instead.

Documentation: https://shopify.dev/docs/apps/webhooks/configuration/https
"""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from builder_bridge.api.dependencies import get_lifecycle_service, get_settings
from builder_bridge.config.settings import Settings
from builder_bridge.platform.webhooks import (
    TOPIC_APP_SCOPES_UPDATE,
    TOPIC_APP_UNINSTALLED,
    WebhookContext,
    authenticate_webhook,
)
from builder_bridge.services.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/app", tags=["webhooks"])


def _check_topic(webhook: WebhookContext, expected: str) -> None:
    if webhook.topic and webhook.topic != expected:
        logger.warning("Webhook topic does not match endpoint", extra={
            "shop_domain": webhook.shop,
            "topic": webhook.topic,
            "expected": expected,
        })


class WebhookResponse(BaseModel):
    """Standard webhook response."""
    received: bool = True
    message: str = "Webhook processed"


@router.post("/uninstalled", response_model=WebhookResponse)
async def handle_app_uninstalled(
    request: Request,
    settings: Settings = Depends(get_settings),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Handle app/uninstalled webhook from Shopify.

    Removes the shop's sessions, access-request records and tickets.
    SECURITY: Verifies HMAC signature before processing.
    """
    webhook = await authenticate_webhook(request, settings.shopify_api_secret)
    _check_topic(webhook, TOPIC_APP_UNINSTALLED)

    logger.info("App uninstalled webhook received", extra={
        "shop_domain": webhook.shop,
        "topic": webhook.topic,
        "webhook_id": webhook.webhook_id,
    })

    report = await lifecycle.offboard(webhook.shop)
    if not report.complete:
        return WebhookResponse(message=f"Cleanup incomplete: {', '.join(report.failures)}")

    return WebhookResponse(message="Shop data removed")


@router.post("/scopes_update", response_model=WebhookResponse)
async def handle_scopes_update(
    request: Request,
    settings: Settings = Depends(get_settings),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Handle app/scopes_update webhook from Shopify.

    Payload: {"current": ["read_products", ...]}. The shop's offline
    session scope is replaced with the granted list.
    """
    webhook = await authenticate_webhook(request, settings.shopify_api_secret)
    _check_topic(webhook, TOPIC_APP_SCOPES_UPDATE)

    current = webhook.payload.get("current")
    if not isinstance(current, list):
        logger.warning("Scopes update webhook missing current scopes", extra={
            "shop_domain": webhook.shop,
            "payload_keys": list(webhook.payload.keys()),
        })
        return WebhookResponse(message="Missing current scopes")

    updated = await lifecycle.update_scopes(webhook.session_id, [str(s) for s in current])

    logger.info("Scopes update webhook processed", extra={
        "shop_domain": webhook.shop,
        "updated": updated,
    })
    return WebhookResponse(message="Scopes updated" if updated else "No session to update")
