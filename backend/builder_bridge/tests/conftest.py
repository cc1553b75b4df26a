"""
Root test configuration and fixtures.

Services are wired against MockDocumentStore and FakeBillingClient; no test
talks to the network. Shopify session tokens are real HS256 JWTs signed with
the test API secret.
"""

import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from builder_bridge.config.billing_plans import load_billing_plans
from builder_bridge.config.settings import Settings
from builder_bridge.platform.shopify_auth import AdminContext, ShopifyAdminAuthenticator
from builder_bridge.platform.shopify_session import Session
from builder_bridge.repositories import (
    AppDataRepository,
    SessionRepository,
    StoreRepository,
    TicketRepository,
)
from builder_bridge.services.billing_service import BillingService
from builder_bridge.services.credential_service import CredentialService
from builder_bridge.services.lifecycle_service import LifecycleService
from builder_bridge.services.plan_service import PlanResolver
from builder_bridge.services.ticket_service import TicketService
from builder_bridge.tests.mocks import FakeBillingClient, FakeClock, MockDocumentStore

# Set test environment
os.environ.setdefault("ENV", "test")

TEST_API_KEY = "test-api-key"
TEST_API_SECRET = "test-api-secret"
TEST_APP_URL = "https://bridge.example.com"
ACME = "acme.myshopify.com"
GLOBEX = "globex.myshopify.com"


def create_shopify_token(
    shop_domain: str,
    api_key: str = TEST_API_KEY,
    api_secret: str = TEST_API_SECRET,
    user_id: str = "42",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Create a Shopify session token for testing."""
    now = datetime.now(timezone.utc)

    payload = {
        "iss": f"https://{shop_domain}/admin",
        "dest": f"https://{shop_domain}",
        "aud": api_key,
        "sub": user_id,
        "exp": int((now + expires_in).timestamp()),
        "nbf": int(now.timestamp()),
        "iat": int(now.timestamp()),
        "jti": "test-jti",
        "sid": "test-session-id"
    }

    return jwt.encode(payload, api_secret, algorithm="HS256")


def auth_headers(shop_domain: str, **kwargs) -> dict:
    return {"Authorization": f"Bearer {create_shopify_token(shop_domain, **kwargs)}"}


def offline_session(shop: str, access_token: str = "shpat_offline", scope: str = "read_products") -> Session:
    return Session(
        id=Session.offline_id(shop),
        shop=shop,
        state="",
        is_online=False,
        scope=scope,
        access_token=access_token,
    )


def make_settings(**overrides) -> Settings:
    values = dict(
        shopify_api_key=TEST_API_KEY,
        shopify_api_secret=TEST_API_SECRET,
        shopify_app_handle="builder-bridge",
        app_url=TEST_APP_URL,
        document_store_url="https://store.example.com/graphql",
        document_store_api_key="store-key",
        environment="test",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def catalog():
    return load_billing_plans()


@pytest.fixture
def store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def billing() -> FakeBillingClient:
    return FakeBillingClient()


@pytest.fixture
def sessions(store) -> SessionRepository:
    return SessionRepository(store)


@pytest.fixture
def app_data(store) -> AppDataRepository:
    return AppDataRepository(store)


@pytest.fixture
def stores(store) -> StoreRepository:
    return StoreRepository(store)


@pytest.fixture
def tickets(store) -> TicketRepository:
    return TicketRepository(store)


@pytest.fixture
def authenticator(settings, sessions, billing) -> ShopifyAdminAuthenticator:
    return ShopifyAdminAuthenticator(settings, sessions, billing_client_factory=billing.factory)


@pytest.fixture
def plan_resolver(stores, catalog, authenticator) -> PlanResolver:
    return PlanResolver(stores, catalog, authenticator)


@pytest.fixture
def credential_service(settings, app_data, stores, plan_resolver) -> CredentialService:
    return CredentialService(settings, app_data, stores, plan_resolver)


@pytest.fixture
def ticket_service(settings, tickets, sessions, stores, clock) -> TicketService:
    return TicketService(settings, tickets, sessions, stores, clock=clock)


@pytest.fixture
def billing_service(settings, catalog, plan_resolver, clock) -> BillingService:
    return BillingService(settings, catalog, plan_resolver, clock=clock)


@pytest.fixture
def lifecycle_service(sessions, app_data, tickets) -> LifecycleService:
    return LifecycleService(sessions, app_data, tickets)


@pytest.fixture
def make_admin(billing):
    """Factory for AdminContext objects bound to the fake billing client."""
    def _make(shop: str = ACME, access_token: str = "shpat_offline") -> AdminContext:
        return AdminContext(
            shop=shop,
            session=offline_session(shop, access_token),
            billing_client_factory=billing.factory,
        )
    return _make


@pytest.fixture
def app(settings, store, catalog, clock, billing):
    from main import create_app

    return create_app(
        settings=settings,
        store=store,
        catalog=catalog,
        clock=clock,
        billing_client_factory=billing.factory,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
