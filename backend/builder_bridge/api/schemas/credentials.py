"""
Credential exchange request/response models.

Request fields are optional at the schema level so that a missing field is
reported as "<Field> required" with status 400, not as a validation error.
The public routes parse their bodies themselves; a body that does not fit
the model counts as a missing field.
"""

from typing import Optional

from builder_bridge.api.schemas.base import CamelModel
from builder_bridge.services.credential_service import ResolvedCredentials
from builder_bridge.services.ticket_service import TicketCredentials


class ConfigureRequest(CamelModel):
    email: Optional[str] = None


class ConfigureResponse(CamelModel):
    access_key: str
    is_new: bool


class ResolveRequest(CamelModel):
    key: Optional[str] = None


class ResolveResponse(CamelModel):
    shop: str
    db_name: Optional[str] = None
    access_token: Optional[str] = None
    api_key: Optional[str] = None
    email: Optional[str] = None
    payment_mode: str
    plan: str
    is_new: bool

    @classmethod
    def from_credentials(cls, creds: ResolvedCredentials) -> "ResolveResponse":
        return cls(
            shop=creds.shop,
            db_name=creds.db_name,
            access_token=creds.access_token,
            api_key=creds.api_key,
            email=creds.email,
            payment_mode=creds.payment_mode,
            plan=creds.plan,
            is_new=creds.is_new,
        )


class TicketCreateResponse(CamelModel):
    ticket: str


class TicketExchangeRequest(CamelModel):
    ticket: Optional[str] = None


class TicketValidateRequest(CamelModel):
    ticket: Optional[str] = None


class TicketValidateResponse(CamelModel):
    valid: bool


class BuilderDataResponse(CamelModel):
    db_name: str
    store_id: Optional[str] = None


class TicketExchangeResponse(CamelModel):
    shop: str
    access_token: str
    api_key: str
    builder_data: Optional[BuilderDataResponse] = None

    @classmethod
    def from_credentials(cls, creds: TicketCredentials) -> "TicketExchangeResponse":
        builder_data = None
        if creds.builder_data is not None:
            builder_data = BuilderDataResponse(
                db_name=creds.builder_data.db_name,
                store_id=creds.builder_data.store_id,
            )
        return cls(
            shop=creds.shop,
            access_token=creds.access_token,
            api_key=creds.api_key,
            builder_data=builder_data,
        )
