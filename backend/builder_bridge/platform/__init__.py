"""
Platform-level modules for request authentication and security.

- shopify_session: Shopify session model and session token verification
- shopify_auth: Admin request authentication and token exchange
- webhooks: Webhook HMAC verification
- audit: Audit logging
- secrets: Secret redaction for logs
"""

from builder_bridge.platform.shopify_session import (
    Session,
    ShopifySessionContext,
    ShopifySessionTokenVerifier,
    normalize_shop_domain,
)

from builder_bridge.platform.webhooks import (
    WebhookContext,
    authenticate_webhook,
    verify_shopify_webhook,
)

from builder_bridge.platform.audit import (
    AuditAction,
    AuditEvent,
    AuditOutcome,
    ClientInfo,
    PIIRedactor,
    credential_fingerprint,
    extract_client_info,
    log_audit_event,
    write_audit_event,
)

from builder_bridge.platform.secrets import (
    SecretRedactingFilter,
    fingerprint,
    redact_secrets,
)

__all__ = [
    "Session",
    "ShopifySessionContext",
    "ShopifySessionTokenVerifier",
    "normalize_shop_domain",
    "WebhookContext",
    "authenticate_webhook",
    "verify_shopify_webhook",
    "AuditAction",
    "AuditEvent",
    "AuditOutcome",
    "ClientInfo",
    "PIIRedactor",
    "credential_fingerprint",
    "extract_client_info",
    "log_audit_event",
    "write_audit_event",
    "SecretRedactingFilter",
    "fingerprint",
    "redact_secrets",
]
