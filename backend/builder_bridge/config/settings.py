"""
Runtime settings for Builder Bridge.

All values come from environment variables and are read once at startup.
The resulting Settings object is stored on app.state and injected into
services; nothing reads os.environ after the app is built.

Usage:
    from builder_bridge.config.settings import Settings

    settings = Settings.from_env()
    settings.document_store_url  # "https://store.example.com/graphql"
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SHOPIFY_API_VERSION = "2024-10"
DEFAULT_TICKET_TTL_SECONDS = 300
DEFAULT_BUILDER_URL = "https://www.mersivx.com"
SHOPIFY_ADMIN_ORIGIN = "https://admin.shopify.com"


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""
    shopify_api_key: str = ""
    shopify_api_secret: str = ""
    shopify_app_handle: str = "builder-bridge"
    shopify_api_version: str = DEFAULT_SHOPIFY_API_VERSION
    app_url: str = ""
    document_store_url: str = ""
    document_store_api_key: str = ""
    document_store_timeout_seconds: float = 30.0
    builder_url: str = DEFAULT_BUILDER_URL
    environment: str = "development"
    ticket_ttl_seconds: int = DEFAULT_TICKET_TTL_SECONDS
    billing_plans_path: Optional[str] = None
    cors_origins: tuple = field(default_factory=lambda: ("http://localhost:3000",))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def billing_test_mode(self) -> bool:
        """Shopify test charges are used everywhere except production."""
        return not self.is_production

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shopify_api_key and self.shopify_api_secret)

    @property
    def document_store_configured(self) -> bool:
        return bool(self.document_store_url)

    def missing(self) -> list[str]:
        """Names of required environment variables that are not set."""
        required = {
            "SHOPIFY_API_KEY": self.shopify_api_key,
            "SHOPIFY_API_SECRET": self.shopify_api_secret,
            "APP_URL": self.app_url,
            "DOCUMENT_STORE_URL": self.document_store_url,
            "DOCUMENT_STORE_API_KEY": self.document_store_api_key,
        }
        return [name for name, value in required.items() if not value]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        cors_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
        if SHOPIFY_ADMIN_ORIGIN not in cors_origins:
            cors_origins.append(SHOPIFY_ADMIN_ORIGIN)

        try:
            ticket_ttl = int(os.getenv("TICKET_TTL_SECONDS", DEFAULT_TICKET_TTL_SECONDS))
        except ValueError:
            logger.warning("Invalid TICKET_TTL_SECONDS, using default", extra={
                "default": DEFAULT_TICKET_TTL_SECONDS
            })
            ticket_ttl = DEFAULT_TICKET_TTL_SECONDS

        try:
            timeout = float(os.getenv("DOCUMENT_STORE_TIMEOUT_SECONDS", "30"))
        except ValueError:
            timeout = 30.0

        return cls(
            shopify_api_key=os.getenv("SHOPIFY_API_KEY", ""),
            shopify_api_secret=os.getenv("SHOPIFY_API_SECRET", ""),
            shopify_app_handle=os.getenv("SHOPIFY_APP_HANDLE", "builder-bridge"),
            shopify_api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_SHOPIFY_API_VERSION),
            app_url=os.getenv("APP_URL", "").rstrip("/"),
            document_store_url=os.getenv("DOCUMENT_STORE_URL", ""),
            document_store_api_key=os.getenv("DOCUMENT_STORE_API_KEY", ""),
            document_store_timeout_seconds=timeout,
            builder_url=os.getenv("BUILDER_URL", DEFAULT_BUILDER_URL),
            environment=os.getenv("ENV", "development"),
            ticket_ttl_seconds=ticket_ttl,
            billing_plans_path=os.getenv("BILLING_PLANS_PATH") or None,
            cors_origins=tuple(cors_origins),
        )
