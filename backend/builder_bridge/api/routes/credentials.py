"""
Credential exchange routes.

- /credential/configure and /credential/ticket/create are called by the
  embedded dashboard and require a Shopify session token
- /credential/resolve, /credential/ticket/exchange and
  /credential/ticket/validate are public; the key or ticket in the body is
  the only credential
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from builder_bridge.api.dependencies import (
    get_client_info,
    get_credential_service,
    get_ticket_service,
    require_admin,
)
from builder_bridge.api.errors import protocol_error_response
from builder_bridge.api.schemas import (
    CamelModel,
    ConfigureRequest,
    ConfigureResponse,
    ResolveRequest,
    ResolveResponse,
    TicketCreateResponse,
    TicketExchangeRequest,
    TicketExchangeResponse,
    TicketValidateRequest,
    TicketValidateResponse,
)
from builder_bridge.platform.audit import ClientInfo
from builder_bridge.platform.shopify_auth import AdminContext
from builder_bridge.services.credential_service import CredentialService
from builder_bridge.services.errors import CredentialProtocolError
from builder_bridge.services.ticket_service import TicketService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credential", tags=["credentials"])


async def read_body(request: Request, model: type[CamelModel]) -> Optional[CamelModel]:
    """
    Parse an optional JSON body into model.

    Empty, non-JSON and ill-typed bodies all return None; the service then
    reports the missing field without echoing what was sent.
    """
    raw = await request.body()
    if not raw:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        logger.info("Malformed credential request body", extra={
            "path": request.url.path,
            "error_count": e.error_count(),
        })
        return None


def json_body(model: type[CamelModel]) -> dict:
    """openapi_extra documenting a body the route parses itself."""
    return {
        "requestBody": {
            "content": {"application/json": {"schema": model.model_json_schema()}},
        },
    }


@router.post("/configure", response_model=ConfigureResponse)
async def configure(
    body: Optional[ConfigureRequest] = None,
    admin: AdminContext = Depends(require_admin),
    service: CredentialService = Depends(get_credential_service),
    client: ClientInfo = Depends(get_client_info),
):
    """
    Issue a new builder access key for the authenticated shop.

    New tenants must send an email; provisioned tenants need no body.
    """
    email = body.email if body else None
    try:
        result = await service.configure(admin, email=email, client=client)
    except CredentialProtocolError as e:
        return protocol_error_response(e)

    return ConfigureResponse(access_key=result.access_key, is_new=result.is_new)


@router.post("/resolve", response_model=ResolveResponse, openapi_extra=json_body(ResolveRequest))
async def resolve(
    request: Request,
    service: CredentialService = Depends(get_credential_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Resolve an access key to the tenant's credential bundle (called by the builder)."""
    body = await read_body(request, ResolveRequest)
    try:
        creds = await service.resolve(body.key if body else None, client=client)
    except CredentialProtocolError as e:
        return protocol_error_response(e)

    return ResolveResponse.from_credentials(creds)


@router.post("/ticket/create", response_model=TicketCreateResponse)
async def create_ticket(
    admin: AdminContext = Depends(require_admin),
    service: TicketService = Depends(get_ticket_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Mint a one-time ticket for the authenticated shop."""
    try:
        ticket = await service.create_ticket(admin.shop, client=client)
    except CredentialProtocolError as e:
        return protocol_error_response(e)

    return TicketCreateResponse(ticket=ticket.key)


@router.post(
    "/ticket/exchange",
    response_model=TicketExchangeResponse,
    openapi_extra=json_body(TicketExchangeRequest),
)
async def exchange_ticket(
    request: Request,
    service: TicketService = Depends(get_ticket_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Exchange a one-time ticket for credentials. A ticket works exactly once."""
    body = await read_body(request, TicketExchangeRequest)
    try:
        creds = await service.exchange_ticket(body.ticket if body else None, client=client)
    except CredentialProtocolError as e:
        return protocol_error_response(e)

    return TicketExchangeResponse.from_credentials(creds)


@router.post(
    "/ticket/validate",
    response_model=TicketValidateResponse,
    openapi_extra=json_body(TicketValidateRequest),
)
async def validate_ticket(
    request: Request,
    service: TicketService = Depends(get_ticket_service),
):
    """Report whether a ticket could still be exchanged. Does not consume it."""
    body = await read_body(request, TicketValidateRequest)
    try:
        valid = await service.validate_ticket(body.ticket if body else None)
    except CredentialProtocolError as e:
        return protocol_error_response(e)

    return TicketValidateResponse(valid=valid)
