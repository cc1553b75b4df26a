"""
API schemas package.

Contains Pydantic models for request/response validation.
"""

from builder_bridge.api.schemas.base import CamelModel
from builder_bridge.api.schemas.credentials import (
    ConfigureRequest,
    ConfigureResponse,
    ResolveRequest,
    ResolveResponse,
    TicketCreateResponse,
    TicketExchangeRequest,
    TicketExchangeResponse,
    TicketValidateRequest,
    TicketValidateResponse,
    BuilderDataResponse,
)
from builder_bridge.api.schemas.billing import (
    UpgradeRequest,
    UpgradeResponse,
    BillingErrorResponse,
    MerchantConfigResponse,
    DashboardResponse,
)

__all__ = [
    "CamelModel",
    "ConfigureRequest",
    "ConfigureResponse",
    "ResolveRequest",
    "ResolveResponse",
    "TicketCreateResponse",
    "TicketExchangeRequest",
    "TicketExchangeResponse",
    "TicketValidateRequest",
    "TicketValidateResponse",
    "BuilderDataResponse",
    "UpgradeRequest",
    "UpgradeResponse",
    "BillingErrorResponse",
    "MerchantConfigResponse",
    "DashboardResponse",
]
