"""
Persistent access-key path of the credential exchange.

configure() is called from the embedded dashboard by an authenticated admin
and mints a fresh access key; resolve() is called by the 3D builder with
nothing but that key and returns the tenant's credential bundle.

Tenant lifecycle, as seen from this service:

    UNPROVISIONED --configure--> PENDING_CREATE --(project created)--> PROVISIONED
          ^                                                               |
          +------------------------- offboard -----------------------------+

SECURITY:
- A key resolves only to the shop recorded in its own AppDataRecord
- Unknown keys and store outages are indistinguishable to the caller
- Every resolve attempt is audited with the caller's IP
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from builder_bridge.config.settings import Settings
from builder_bridge.integrations.document_store import (
    AppDataDocument,
    AppDataPayload,
    DocumentStoreError,
)
from builder_bridge.platform.audit import (
    AuditAction,
    AuditOutcome,
    ClientInfo,
    credential_fingerprint,
    log_audit_event,
)
from builder_bridge.platform.shopify_auth import AdminContext
from builder_bridge.repositories.app_data_repository import (
    AppDataCommand,
    AppDataRepository,
    is_create_command,
)
from builder_bridge.repositories.store_repository import StoreRepository
from builder_bridge.services.errors import (
    InvalidCredentialError,
    MissingFieldError,
    UpstreamFailureError,
)
from builder_bridge.services.plan_service import PlanResolver

logger = logging.getLogger(__name__)


class TenantState(str, Enum):
    UNPROVISIONED = "unprovisioned"
    PENDING_CREATE = "pending_create"
    PROVISIONED = "provisioned"
    OFFBOARDED = "offboarded"


@dataclass(frozen=True)
class ConfigureResult:
    access_key: str
    is_new: bool


@dataclass(frozen=True)
class ResolvedCredentials:
    """Credential bundle handed to the builder for an access key."""
    shop: str
    db_name: Optional[str]
    access_token: Optional[str]
    api_key: Optional[str]
    email: Optional[str]
    payment_mode: str
    plan: str
    is_new: bool


class CredentialService:
    """Issues and resolves builder access keys."""

    def __init__(
        self,
        settings: Settings,
        app_data: AppDataRepository,
        stores: StoreRepository,
        plans: PlanResolver,
    ):
        self.settings = settings
        self.app_data = app_data
        self.stores = stores
        self.plans = plans

    async def configure(
        self,
        admin: AdminContext,
        email: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> ConfigureResult:
        """
        Mint a new access key for the admin's shop.

        A provisioned tenant gets an edit record pointing at its project and
        any email is ignored. An unprovisioned tenant must supply an email and
        gets a create record carrying its credentials and current plan.

        Raises:
            MissingFieldError: No project exists and no email was given
            UpstreamFailureError: The document store failed
        """
        shop = admin.shop
        try:
            store = await self.stores.find_store_by_shop(shop)

            if store is not None:
                command = AppDataCommand.EDIT
                payload = AppDataPayload(shop=shop, db_name=store.db_name)
            else:
                if not email:
                    raise MissingFieldError("email")
                payment_mode = await self.plans.plan_for_new_project(admin)
                command = AppDataCommand.CREATE
                payload = AppDataPayload(
                    shop=shop,
                    access_token=admin.access_token,
                    api_key=self.settings.shopify_api_key,
                    email=email,
                    payment_mode=payment_mode,
                )

            access_key = await self.app_data.create(command, payload)
        except DocumentStoreError as e:
            logger.error("Configure failed", extra={"shop": shop, "error": str(e)})
            log_audit_event(
                AuditAction.CREDENTIAL_CONFIGURE_FAILED,
                shop=shop,
                client=client,
                outcome=AuditOutcome.FAILURE,
                error_code="upstream_failure",
            )
            raise UpstreamFailureError("Document store unavailable") from e

        is_new = command == AppDataCommand.CREATE
        log_audit_event(
            AuditAction.CREDENTIAL_CONFIGURED,
            shop=shop,
            client=client,
            resource_type="access_key",
            resource_id=credential_fingerprint(access_key),
            metadata={
                "command": command.value,
                "is_new": is_new,
                "db_name": payload.db_name,
                "payment_mode": payload.payment_mode,
            },
        )
        return ConfigureResult(access_key=access_key, is_new=is_new)

    async def resolve(self, key: Optional[str], client: Optional[ClientInfo] = None) -> ResolvedCredentials:
        """
        Resolve an access key to its credential bundle. Read-only.

        Raises:
            MissingFieldError: No key was sent
            InvalidCredentialError: No record matches the key
            UpstreamFailureError: The document store failed
        """
        if not key:
            logger.warning("Resolve without access key", extra={
                "ip_address": client.ip_address if client else None,
            })
            log_audit_event(
                AuditAction.CREDENTIAL_RESOLVE_FAILED,
                shop=None,
                client=client,
                resource_type="access_key",
                outcome=AuditOutcome.DENIED,
                error_code="missing_key",
            )
            raise MissingFieldError("access key")

        key_fp = credential_fingerprint(key)
        try:
            record = await self.app_data.find_by_key(key)
            if record is None:
                logger.warning("Invalid access key attempt", extra={
                    "key_fp": key_fp,
                    "ip_address": client.ip_address if client else None,
                })
                log_audit_event(
                    AuditAction.CREDENTIAL_RESOLVE_FAILED,
                    shop=None,
                    client=client,
                    resource_type="access_key",
                    resource_id=key_fp,
                    outcome=AuditOutcome.DENIED,
                    error_code="invalid_key",
                )
                raise InvalidCredentialError("Unknown access key")

            resolved = await self._build_credentials(record)
        except DocumentStoreError as e:
            logger.error("Resolve failed", extra={"key_fp": key_fp, "error": str(e)})
            log_audit_event(
                AuditAction.CREDENTIAL_RESOLVE_FAILED,
                shop=None,
                client=client,
                resource_type="access_key",
                resource_id=key_fp,
                outcome=AuditOutcome.FAILURE,
                error_code="upstream_failure",
            )
            raise UpstreamFailureError("Document store unavailable") from e

        logger.info("Builder resolved access key", extra={
            "shop": resolved.shop,
            "ip_address": client.ip_address if client else None,
        })
        log_audit_event(
            AuditAction.CREDENTIAL_RESOLVED,
            shop=resolved.shop,
            client=client,
            resource_type="access_key",
            resource_id=key_fp,
            metadata={"db_name": resolved.db_name, "plan": resolved.plan, "is_new": resolved.is_new},
        )
        return resolved

    async def _build_credentials(self, record: AppDataDocument) -> ResolvedCredentials:
        data = record.data
        db_name = data.db_name
        if not db_name:
            # Records written before dbName was embedded
            store = await self.stores.find_store_by_shop(data.shop)
            db_name = store.db_name if store else None

        plan = self.plans.catalog.default_plan
        if db_name:
            plan = await self.stores.get_store_plan(db_name) or plan

        return ResolvedCredentials(
            shop=data.shop,
            db_name=db_name,
            access_token=data.access_token,
            api_key=data.api_key,
            email=data.email,
            payment_mode=plan,
            plan=plan,
            is_new=is_create_command(record.command),
        )

    async def latest_access_request(self, shop: str) -> Optional[AppDataDocument]:
        """
        The tenant's most recent access-request record.

        Raises:
            DocumentStoreError: If the store cannot be queried
        """
        return await self.app_data.find_latest_by_shop(shop)

    async def tenant_state(self, shop: str) -> TenantState:
        """
        Where the tenant stands in the provisioning lifecycle.

        An offboarded tenant has no records left and reads as UNPROVISIONED,
        which is where a re-install starts.

        Raises:
            DocumentStoreError: If the store cannot be queried
        """
        if await self.stores.find_store_by_shop(shop) is not None:
            return TenantState.PROVISIONED
        latest = await self.app_data.find_latest_by_shop(shop)
        if latest is not None and is_create_command(latest.command):
            return TenantState.PENDING_CREATE
        return TenantState.UNPROVISIONED
