"""
Shopify sessions and session token verification for the embedded app.

Two kinds of "session" meet here:
- Session tokens: short-lived JWTs that App Bridge attaches to every request
  from the embedded dashboard, signed by Shopify with the app's API secret.
- Sessions: the OAuth sessions the app persists. The offline session
  (id "offline_{shop}") carries the shop-level access token; online sessions
  (id "{shop}_{user_id}") also carry the associated user's identity.

Documentation: https://shopify.dev/docs/apps/auth/oauth/session-tokens
"""

import logging
import re
from typing import Optional
from dataclasses import dataclass
from datetime import datetime

import jwt
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

# Allowed clock skew between Shopify and this server
SESSION_TOKEN_LEEWAY_SECONDS = 10

SHOP_DOMAIN_PATTERN = re.compile(r"[a-z0-9][a-z0-9-]*\.myshopify\.com")


def normalize_shop_domain(shop: str) -> str:
    """Strip protocol and trailing slash: 'https://a.myshopify.com/' -> 'a.myshopify.com'."""
    return shop.replace("https://", "").replace("http://", "").rstrip("/").lower()


def is_valid_shop_domain(shop: Optional[str]) -> bool:
    """True only for a bare '<name>.myshopify.com' host."""
    return bool(shop) and SHOP_DOMAIN_PATTERN.fullmatch(shop) is not None


@dataclass
class AssociatedUser:
    """The staff member behind an online session."""
    id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    account_owner: bool = False
    locale: str = ""
    collaborator: bool = False
    email_verified: bool = False


@dataclass
class OnlineAccessInfo:
    associated_user: AssociatedUser
    associated_user_scope: str = ""
    expires_in: int = 0


@dataclass
class Session:
    """A persisted Shopify OAuth session."""
    id: str
    shop: str
    state: str = ""
    is_online: bool = False
    scope: Optional[str] = None
    expires: Optional[datetime] = None
    access_token: Optional[str] = None
    online_access_info: Optional[OnlineAccessInfo] = None
    refresh_token: Optional[str] = None
    refresh_token_expires: Optional[datetime] = None

    @staticmethod
    def offline_id(shop: str) -> str:
        return f"offline_{normalize_shop_domain(shop)}"

    @staticmethod
    def online_id(shop: str, user_id) -> str:
        return f"{normalize_shop_domain(shop)}_{user_id}"

    @property
    def user(self) -> Optional[AssociatedUser]:
        if self.online_access_info is None:
            return None
        return self.online_access_info.associated_user


@dataclass
class ShopifySessionContext:
    """Context extracted from a verified Shopify session token."""
    shop_domain: str
    user_id: Optional[str]
    session_id: Optional[str]
    token: str


class ShopifySessionTokenVerifier:
    """
    Verifies Shopify session tokens (JWTs).

    Session tokens are signed with HS256 using the app's API secret.
    """

    def __init__(self, api_key: str, api_secret: str):
        if not api_key:
            raise ValueError("SHOPIFY_API_KEY is required")
        if not api_secret:
            raise ValueError("SHOPIFY_API_SECRET is required")

        self.api_key = api_key
        self.api_secret = api_secret

    def verify_session_token(self, token: str) -> ShopifySessionContext:
        """
        Verify Shopify session token and extract context.

        Raises:
            HTTPException: 401 if the token is invalid, expired, or for another app
        """
        try:
            payload = jwt.decode(
                token,
                self.api_secret,
                algorithms=["HS256"],
                audience=self.api_key,
                leeway=SESSION_TOKEN_LEEWAY_SECONDS,
                options={
                    "verify_signature": True,
                    "verify_aud": True,
                    "verify_exp": True,
                    "verify_iat": False,
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token has expired"
            )
        except jwt.InvalidAudienceError:
            logger.warning("Session token invalid audience")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token has invalid audience"
            )
        except jwt.InvalidSignatureError:
            logger.warning("Session token invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token signature is invalid"
            )
        except jwt.InvalidTokenError as e:
            logger.warning("Session token rejected", extra={"error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token is malformed"
            )

        # 'dest' holds the shop URL, e.g. "https://mystore.myshopify.com"
        dest = payload.get("dest")
        if not dest:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session token missing 'dest' claim"
            )

        shop_domain = normalize_shop_domain(dest)

        logger.debug("Session token verified", extra={"shop_domain": shop_domain})

        return ShopifySessionContext(
            shop_domain=shop_domain,
            user_id=payload.get("sub"),
            session_id=payload.get("sid"),
            token=token,
        )
