"""
FastAPI application entry point for Builder Bridge.

The document store client, repositories, services and the Shopify
authenticator are built once in the lifespan and stored on app.state.
Route handlers receive them through the providers in api.dependencies.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from builder_bridge.api.errors import protocol_error_response
from builder_bridge.api.routes import billing, credentials, dashboard, health, webhooks_shopify
from builder_bridge.config.billing_plans import BillingPlanCatalog, load_billing_plans
from builder_bridge.config.settings import Settings
from builder_bridge.integrations.document_store import DocumentStoreClient
from builder_bridge.platform.secrets import SecretRedactingFilter
from builder_bridge.platform.shopify_auth import BillingClientFactory, ShopifyAdminAuthenticator
from builder_bridge.repositories import (
    AppDataRepository,
    SessionRepository,
    StoreRepository,
    TicketRepository,
)
from builder_bridge.services.billing_service import BillingService
from builder_bridge.services.credential_service import CredentialService
from builder_bridge.services.errors import CredentialProtocolError
from builder_bridge.services.lifecycle_service import LifecycleService
from builder_bridge.services.plan_service import PlanResolver
from builder_bridge.services.ticket_service import Clock, TicketService

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)


def init_app_state(
    app: FastAPI,
    settings: Settings,
    store: DocumentStoreClient,
    catalog: BillingPlanCatalog,
    clock: Optional[Clock] = None,
    billing_client_factory: Optional[BillingClientFactory] = None,
) -> None:
    """Wire repositories and services onto app.state."""
    sessions = SessionRepository(store)
    app_data = AppDataRepository(store)
    stores = StoreRepository(store)
    tickets = TicketRepository(store)

    authenticator = ShopifyAdminAuthenticator(
        settings,
        sessions,
        billing_client_factory=billing_client_factory,
    )
    plan_resolver = PlanResolver(stores, catalog, authenticator)

    app.state.settings = settings
    app.state.document_store = store
    app.state.plan_catalog = catalog
    app.state.authenticator = authenticator
    app.state.plan_resolver = plan_resolver
    app.state.credential_service = CredentialService(settings, app_data, stores, plan_resolver)
    app.state.ticket_service = TicketService(settings, tickets, sessions, stores, clock=clock)
    app.state.billing_service = BillingService(settings, catalog, plan_resolver, clock=clock)
    app.state.lifecycle_service = LifecycleService(sessions, app_data, tickets)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStoreClient] = None,
    catalog: Optional[BillingPlanCatalog] = None,
    clock: Optional[Clock] = None,
    billing_client_factory: Optional[BillingClientFactory] = None,
) -> FastAPI:
    """
    Build the application.

    Production passes nothing and everything comes from the environment.
    Tests pass explicit settings and a fake store; a store passed in is not
    closed on shutdown.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting Builder Bridge API", extra={"environment": settings.environment})

        missing = settings.missing()
        if missing:
            logger.warning(
                f"Builder Bridge not fully configured (missing: {missing}). "
                "Affected endpoints will return 503 or 500."
            )

        app.state.settings = settings
        owns_store = store is None
        document_store = store
        if document_store is None and settings.document_store_configured:
            document_store = DocumentStoreClient(
                settings.document_store_url,
                settings.document_store_api_key,
                timeout=settings.document_store_timeout_seconds,
            )

        if document_store is None:
            logger.error("DOCUMENT_STORE_URL is not set. Credential endpoints will return 503.")
        else:
            init_app_state(
                app,
                settings,
                document_store,
                catalog or load_billing_plans(settings.billing_plans_path),
                clock=clock,
                billing_client_factory=billing_client_factory,
            )

        yield

        # Shutdown
        if owns_store and document_store is not None:
            await document_store.close()
        logger.info("Shutting down Builder Bridge API")

    app = FastAPI(
        title="Builder Bridge API",
        description="Credential broker between Shopify admin sessions and the 3D builder",
        version="1.0.0",
        lifespan=lifespan
    )

    # Include Shopify Admin in CORS origins for embedding
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health route (no authentication)
    app.include_router(health.router)
    app.include_router(credentials.router)
    app.include_router(billing.router)
    app.include_router(dashboard.router)
    app.include_router(webhooks_shopify.router)

    @app.exception_handler(CredentialProtocolError)
    async def protocol_exception_handler(request: Request, exc: CredentialProtocolError):
        """Protocol errors raised outside a route body, e.g. by require_admin."""
        return protocol_error_response(exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions with proper logging."""
        logger.error(
            "Unhandled exception",
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )

    return app


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
