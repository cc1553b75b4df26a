"""
HMAC signatures for URLs this app hands to Shopify and later receives back.

The billing return URL carries the plan the merchant chose. Shopify redirects
the merchant there without any authentication of its own, so the plan is
only trusted when the URL carries a signature made with the app secret.

SECURITY: comparisons are constant-time; signatures older than max_age are
rejected even when valid.
"""

import hashlib
import hmac
from datetime import datetime
from typing import Optional


def callback_signature(secret: str, shop: str, plan: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 over shop, plan and issue time."""
    message = f"{shop}|{plan}|{timestamp}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_callback_signature(
    secret: str,
    shop: str,
    plan: Optional[str],
    timestamp: Optional[str],
    signature: Optional[str],
    now: datetime,
    max_age_seconds: int,
) -> bool:
    if not (secret and plan and timestamp and signature):
        return False

    try:
        issued_at = int(timestamp)
    except ValueError:
        return False

    age = int(now.timestamp()) - issued_at
    if age < 0 or age > max_age_seconds:
        return False

    expected = callback_signature(secret, shop, plan, issued_at)
    return hmac.compare_digest(expected, signature)
