"""
Admin request authentication for the embedded dashboard.

authenticate(request) verifies the App Bridge session token, then loads the
shop's offline session to obtain the Admin API access token. When no offline
session is stored yet (first load after install), the session token is
exchanged for an offline access token and the new session is persisted.

The resulting AdminContext is the only way route handlers reach Shopify:
it exposes the shop, the access token, and a billing check bound to them.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from builder_bridge.config.settings import Settings
from builder_bridge.integrations.document_store import DocumentStoreError
from builder_bridge.integrations.shopify import ShopifyBillingClient, ShopifySubscription
from builder_bridge.platform.shopify_session import (
    Session,
    ShopifySessionContext,
    ShopifySessionTokenVerifier,
    normalize_shop_domain,
)
from builder_bridge.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

TOKEN_EXCHANGE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:token-exchange"
ID_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:id_token"
OFFLINE_ACCESS_TOKEN_TYPE = "urn:shopify:params:oauth:token-type:offline-access-token"

BillingClientFactory = Callable[[str, str], ShopifyBillingClient]


class TokenExchangeError(Exception):
    """Raised when Shopify refuses to exchange a session token."""
    pass


@dataclass
class AdminContext:
    """An authenticated admin request: shop, offline session and billing access."""
    shop: str
    session: Session
    billing_client_factory: BillingClientFactory
    online_session: Optional[Session] = None
    session_token: Optional[str] = field(default=None, repr=False)

    @property
    def access_token(self) -> str:
        return self.session.access_token or ""

    @property
    def user_email(self) -> str:
        user = self.online_session.user if self.online_session else None
        return user.email if user else ""

    def billing_client(self) -> ShopifyBillingClient:
        return self.billing_client_factory(self.shop, self.access_token)

    async def billing_check(self) -> list[ShopifySubscription]:
        """
        Active subscriptions of this app installation.

        Raises:
            ShopifyAPIError: If Shopify cannot be queried
        """
        async with self.billing_client() as client:
            return await client.get_active_subscriptions()


class ShopifyAdminAuthenticator:
    """Builds AdminContext objects from requests or shop domains."""

    def __init__(
        self,
        settings: Settings,
        sessions: SessionRepository,
        billing_client_factory: Optional[BillingClientFactory] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.sessions = sessions
        self.verifier = (
            ShopifySessionTokenVerifier(settings.shopify_api_key, settings.shopify_api_secret)
            if settings.shopify_configured
            else None
        )
        self.billing_client_factory = billing_client_factory or self._default_billing_client
        self._transport = transport

    def _default_billing_client(self, shop: str, access_token: str) -> ShopifyBillingClient:
        return ShopifyBillingClient(
            shop,
            access_token,
            api_version=self.settings.shopify_api_version,
            transport=self._transport,
        )

    async def authenticate(self, request: Request) -> AdminContext:
        """
        Authenticate an embedded-admin request.

        Raises:
            HTTPException: 401 if the session token is missing/invalid or no
                access token can be obtained; 503 if Shopify auth is not configured;
                500 if the session store is unreachable
        """
        if self.verifier is None:
            logger.error("Shopify API credentials not configured")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication not configured"
            )

        credentials: Optional[HTTPAuthorizationCredentials] = await security(request)
        if not credentials or not credentials.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing or invalid authorization token"
            )

        token_ctx = self.verifier.verify_session_token(credentials.credentials)
        shop = token_ctx.shop_domain

        try:
            offline = await self.sessions.load_session(Session.offline_id(shop))
        except DocumentStoreError as e:
            logger.error("Session store unavailable during authentication", extra={
                "shop": shop,
                "error": str(e)
            })
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )

        if offline is None or not offline.access_token:
            try:
                offline = await self.exchange_session_token(shop, token_ctx.token)
            except TokenExchangeError as e:
                logger.warning("Token exchange failed", extra={
                    "shop": shop,
                    "error": str(e)
                })
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Unauthorized"
                )
            if not await self.sessions.store_session(offline):
                logger.warning("Offline session obtained but not persisted", extra={"shop": shop})

        return AdminContext(
            shop=shop,
            session=offline,
            billing_client_factory=self.billing_client_factory,
            online_session=await self._load_online_session(token_ctx),
            session_token=token_ctx.token,
        )

    async def _load_online_session(self, token_ctx: ShopifySessionContext) -> Optional[Session]:
        """Best-effort lookup of the user's online session (only used for the user's email)."""
        if not token_ctx.user_id:
            return None
        try:
            return await self.sessions.load_session(
                Session.online_id(token_ctx.shop_domain, token_ctx.user_id)
            )
        except DocumentStoreError as e:
            logger.warning("Could not load online session", extra={
                "shop": token_ctx.shop_domain,
                "error": str(e)
            })
            return None

    async def for_shop(self, shop: str) -> Optional[AdminContext]:
        """
        Admin context for a shop without an incoming session token.

        Used by flows Shopify redirects to directly (billing callback).
        Returns None when the shop has no usable offline session.

        Raises:
            DocumentStoreError: If the session store cannot be queried
        """
        shop = normalize_shop_domain(shop)
        offline = await self.sessions.load_session(Session.offline_id(shop))
        if offline is None or not offline.access_token:
            return None
        return AdminContext(
            shop=shop,
            session=offline,
            billing_client_factory=self.billing_client_factory,
        )

    async def exchange_session_token(self, shop: str, session_token: str) -> Session:
        """
        Exchange an App Bridge session token for an offline access token.

        Returns:
            A new offline Session (not yet persisted)

        Raises:
            TokenExchangeError: If Shopify rejects the exchange
        """
        url = f"https://{shop}/admin/oauth/access_token"
        payload = {
            "client_id": self.settings.shopify_api_key,
            "client_secret": self.settings.shopify_api_secret,
            "grant_type": TOKEN_EXCHANGE_GRANT_TYPE,
            "subject_token": session_token,
            "subject_token_type": ID_TOKEN_TYPE,
            "requested_token_type": OFFLINE_ACCESS_TOKEN_TYPE,
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
                token_data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Token exchange rejected", extra={
                "shop_domain": shop,
                "status_code": e.response.status_code,
            })
            raise TokenExchangeError(f"Token exchange failed: {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error("Token exchange request error", extra={
                "shop_domain": shop,
                "error": str(e)
            })
            raise TokenExchangeError(f"Token exchange request error: {e}")
        except ValueError:
            raise TokenExchangeError("Token response is not valid JSON")

        access_token = token_data.get("access_token")
        if not access_token:
            raise TokenExchangeError("Token response missing access_token")

        logger.info("Token exchange successful", extra={"shop_domain": shop})

        return Session(
            id=Session.offline_id(shop),
            shop=shop,
            state="",
            is_online=False,
            scope=token_data.get("scope"),
            access_token=access_token,
        )
