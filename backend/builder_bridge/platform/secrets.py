"""
Secret redaction for logs.

CRITICAL SECURITY REQUIREMENTS:
- Access tokens, API keys, builder access keys and tickets MUST NOT reach logs
- Any variable name containing token/secret/key MUST be redacted from logs
- When a credential must be correlated across log lines, log its fingerprint

Usage:
    from builder_bridge.platform.secrets import redact_secrets, fingerprint

    safe_data = redact_secrets({"access_token": "shpat_123", "shop": "a.myshopify.com"})
    logger.info("Access key issued", extra={"key_fp": fingerprint(access_key)})
"""

import hashlib
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

# Patterns for detecting secrets in logs
SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key)", re.IGNORECASE),
    re.compile(r"(access[_-]?key)", re.IGNORECASE),
    re.compile(r"(secret)", re.IGNORECASE),
    re.compile(r"(access[_-]?token)", re.IGNORECASE),
    re.compile(r"(refresh[_-]?token)", re.IGNORECASE),
    re.compile(r"(session[_-]?token)", re.IGNORECASE),
    re.compile(r"(subject[_-]?token)", re.IGNORECASE),
    re.compile(r"(bearer[_-]?token)", re.IGNORECASE),
    re.compile(r"(password)", re.IGNORECASE),
    re.compile(r"(authorization)", re.IGNORECASE),
    re.compile(r"(^ticket$)", re.IGNORECASE),
    re.compile(r"(credentials)", re.IGNORECASE),
]

# Common secret value patterns to redact
SECRET_VALUE_PATTERNS = [
    re.compile(r"(Bearer\s+[a-zA-Z0-9._-]+)"),  # Bearer tokens
    re.compile(r"(shpat_[a-fA-F0-9]{32,})"),  # Shopify access tokens
    re.compile(r"(shpua_[a-fA-F0-9]{32,})"),  # Shopify online access tokens
    re.compile(r"(shpss_[a-zA-Z0-9]{24,})"),  # Shopify shared secrets
]

REDACTED_VALUE = "[REDACTED]"


def is_secret_key(key: str) -> bool:
    """True if the key name suggests it holds a secret."""
    return any(pattern.search(key) for pattern in SECRET_PATTERNS)


def redact_value(value: Any) -> Any:
    """Replace known secret value patterns inside a string."""
    if not isinstance(value, str):
        return value

    result = value
    for pattern in SECRET_VALUE_PATTERNS:
        result = pattern.sub(REDACTED_VALUE, result)

    return result


def redact_secrets(data: Any, _depth: int = 0) -> Any:
    """
    Recursively redact secrets from a data structure.

    Returns:
        Copy of data with secrets redacted
    """
    if _depth > 10:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_secret_key(key):
                result[key] = REDACTED_VALUE
            else:
                result[key] = redact_secrets(value, _depth + 1)
        return result

    if isinstance(data, list):
        return [redact_secrets(item, _depth + 1) for item in data]

    if isinstance(data, str):
        return redact_value(data)

    return data


def fingerprint(secret: str) -> str:
    """Stable, non-reversible short identifier for correlating a credential in logs."""
    if not secret:
        return ""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:12]


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts secrets from log records.

    Usage:
        handler.addFilter(SecretRedactingFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = redact_secrets(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_value(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key in list(record.__dict__.keys()):
            if is_secret_key(key):
                setattr(record, key, REDACTED_VALUE)
            elif isinstance(record.__dict__[key], (dict, list)):
                setattr(record, key, redact_secrets(record.__dict__[key]))

        return True
