# API routes
from builder_bridge.api.routes import health
from builder_bridge.api.routes import credentials
from builder_bridge.api.routes import billing
from builder_bridge.api.routes import dashboard
from builder_bridge.api.routes import webhooks_shopify

__all__ = ["health", "credentials", "billing", "dashboard", "webhooks_shopify"]
