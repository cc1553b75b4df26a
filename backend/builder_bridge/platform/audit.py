"""
Audit logging for Builder Bridge.

CRITICAL SECURITY REQUIREMENTS:
- Every credential action (configure, resolve, ticket create/exchange) MUST
  write an audit event, on success and on failure
- Events must include: shop, action, timestamp, IP, user_agent, metadata
- PII fields MUST be redacted before the event is emitted
- Access keys and tickets appear only as fingerprints, never in full
- A failure to emit MUST fall back to a secondary logger, never the request

Events are emitted as structured records on the "audit" logger; the log
pipeline is the sink.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, FrozenSet, Optional

from fastapi import Request

from builder_bridge.platform.secrets import fingerprint

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")
fallback_logger = logging.getLogger("audit.fallback")


class AuditAction(str, Enum):
    """
    Enumeration of all auditable actions.

    Add new actions here as features are developed.
    """
    # Access-key path
    CREDENTIAL_CONFIGURED = "credential.configured"
    CREDENTIAL_CONFIGURE_FAILED = "credential.configure_failed"
    CREDENTIAL_RESOLVED = "credential.resolved"
    CREDENTIAL_RESOLVE_FAILED = "credential.resolve_failed"

    # Ticket path
    TICKET_CREATED = "ticket.created"
    TICKET_EXCHANGED = "ticket.exchanged"
    TICKET_EXCHANGE_FAILED = "ticket.exchange_failed"

    # Billing events
    BILLING_UPGRADE_REQUESTED = "billing.upgrade_requested"
    BILLING_PLAN_CHANGED = "billing.plan_changed"

    # Lifecycle events
    TENANT_OFFBOARDED = "tenant.offboarded"
    SESSION_SCOPES_UPDATED = "session.scopes_updated"


class AuditOutcome(str, Enum):
    """Outcome of the audited action."""
    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"


class PIIRedactor:
    """
    Redacts PII fields from audit metadata before it is emitted.

    Redacted fields are replaced with "[REDACTED]" to maintain
    structure while removing sensitive data.
    """

    REDACTED_FIELDS: FrozenSet[str] = frozenset({
        # Authentication
        "email",
        "token",
        "ticket",
        "key",
        "access_key",
        "accesskey",
        "access_token",
        "accesstoken",
        "refresh_token",
        "api_key",
        "apikey",
        "api_secret",
        "password",
        "secret",
        "credential",
        "credentials",
        # Personal identifiers
        "first_name",
        "last_name",
        "phone",
    })

    REDACTION_MARKER = "[REDACTED]"

    @classmethod
    def redact(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Recursively redact PII from a dictionary.

        Returns:
            New dictionary with PII fields redacted
        """
        if not isinstance(data, dict):
            return data
        return cls._redact_dict(data)

    @classmethod
    def _redact_dict(cls, d: dict[str, Any]) -> dict[str, Any]:
        result = {}
        for key, value in d.items():
            lower_key = str(key).lower()
            if lower_key in cls.REDACTED_FIELDS:
                result[key] = cls._redact_value(lower_key, value)
            elif isinstance(value, dict):
                result[key] = cls._redact_dict(value)
            elif isinstance(value, list):
                result[key] = cls._redact_list(value)
            else:
                result[key] = value
        return result

    @classmethod
    def _redact_value(cls, key: str, value: Any) -> str:
        """Redact a single value, with partial redaction for email."""
        if value is None:
            return cls.REDACTION_MARKER
        # Partial redaction for email (show domain)
        if key == "email" and isinstance(value, str) and "@" in value:
            return f"***@{value.split('@', 1)[1]}"
        return cls.REDACTION_MARKER

    @classmethod
    def _redact_list(cls, lst: list[Any]) -> list[Any]:
        result = []
        for item in lst:
            if isinstance(item, dict):
                result.append(cls._redact_dict(item))
            elif isinstance(item, list):
                result.append(cls._redact_list(item))
            else:
                result.append(item)
        return result


@dataclass
class AuditEvent:
    """
    Audit event data structure.

    `resource_id` must already be a fingerprint when the resource is a
    credential; see credential_fingerprint().
    """
    shop: Optional[str]
    action: AuditAction
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "api"  # api, webhook, system
    outcome: AuditOutcome = AuditOutcome.SUCCESS
    error_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serializable form with PII redacted."""
        return {
            "shop": self.shop,
            "action": self.action.value if isinstance(self.action, AuditAction) else self.action,
            "timestamp": self.timestamp.isoformat(),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "metadata": PIIRedactor.redact(self.metadata),
            "correlation_id": self.correlation_id,
            "source": self.source,
            "outcome": self.outcome.value if isinstance(self.outcome, AuditOutcome) else self.outcome,
            "error_code": self.error_code,
        }


@dataclass(frozen=True)
class ClientInfo:
    """Best-effort identity of the caller, attached to audit events."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def extract_client_info(request: Request) -> ClientInfo:
    """
    Extract client IP and user agent from request.

    Handles X-Forwarded-For for proxied requests.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (client IP)
        ip_address = forwarded_for.split(",")[0].strip() or None
    else:
        ip_address = request.client.host if request.client else None

    return ClientInfo(
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )


def credential_fingerprint(value: Optional[str]) -> Optional[str]:
    """Fingerprint an access key or ticket for use as an audit resource id."""
    if not value:
        return None
    return f"fp:{fingerprint(value)}"


def write_audit_event(event: AuditEvent) -> str:
    """
    Emit an audit event on the audit logger.

    Never raises; on failure the event goes to the fallback logger.

    Returns:
        The correlation_id of the event
    """
    try:
        entry = event.to_dict()
        level = logging.INFO if event.outcome == AuditOutcome.SUCCESS else logging.WARNING
        audit_logger.log(level, entry["action"], extra={"audit_entry": json.dumps(entry)})
    except Exception as e:
        _write_fallback_log(event, str(e))
    return event.correlation_id


def _write_fallback_log(event: AuditEvent, error_reason: str) -> None:
    """Write a minimal audit record when the full event cannot be serialized."""
    fallback_logger.error("Audit log fallback", extra={
        "shop": event.shop,
        "action": event.action.value if isinstance(event.action, AuditAction) else str(event.action),
        "outcome": event.outcome.value if isinstance(event.outcome, AuditOutcome) else str(event.outcome),
        "correlation_id": event.correlation_id,
        "fallback_reason": error_reason,
    })


def log_audit_event(
    action: AuditAction,
    shop: Optional[str],
    client: Optional[ClientInfo] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    outcome: AuditOutcome = AuditOutcome.SUCCESS,
    error_code: Optional[str] = None,
    source: str = "api",
) -> str:
    """
    Build and emit an audit event.

    Example:
        log_audit_event(
            AuditAction.CREDENTIAL_RESOLVED,
            shop="acme.myshopify.com",
            client=client,
            resource_type="access_key",
            resource_id=credential_fingerprint(key),
        )
    """
    client = client or ClientInfo()
    return write_audit_event(AuditEvent(
        shop=shop,
        action=action,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
        resource_type=resource_type,
        resource_id=resource_id,
        metadata=metadata or {},
        source=source,
        outcome=outcome,
        error_code=error_code,
    ))
