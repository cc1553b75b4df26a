"""
Typed document shapes for the remote document store.

Every document returned by a query is validated against one of these models
at the client boundary, so repositories and services never branch on raw
GraphQL dicts. Field names are snake_case in Python and camelCase on the
wire (alias generator), matching the collections' existing documents.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional, Union, get_args, get_origin

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timestamps written by other services are sometimes naive; treat them as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


def _nested_document(annotation) -> Optional[type]:
    """Return the StoreDocument subclass wrapped by an annotation, if any."""
    if isinstance(annotation, type) and issubclass(annotation, StoreDocument):
        return annotation
    if get_origin(annotation) is Union:
        for arg in get_args(annotation):
            nested = _nested_document(arg)
            if nested is not None:
                return nested
    return None


class StoreDocument(BaseModel):
    """Base class for documents read from or written to the store."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def selection(cls) -> str:
        """GraphQL selection set covering every field of the model."""
        parts = []
        for name, info in cls.model_fields.items():
            alias = info.alias or name
            nested = _nested_document(info.annotation)
            if nested is not None:
                parts.append(f"{alias} {{ {nested.selection()} }}")
            else:
                parts.append(alias)
        return " ".join(parts)

    def to_document(self, exclude_none: bool = False) -> dict:
        """Serialize to the wire shape used by writeDocumentByKey."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=exclude_none)


class SessionDocument(StoreDocument):
    """ShopifySessions collection. `key` is the Shopify session id."""
    key: str
    shop: str
    state: str = ""
    is_online: bool = False
    scope: Optional[str] = None
    expires: Optional[UtcDatetime] = None
    access_token: Optional[str] = None
    user_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    account_owner: bool = False
    locale: Optional[str] = None
    collaborator: Optional[bool] = None
    email_verified: Optional[bool] = None
    refresh_token: Optional[str] = None
    refresh_token_expires: Optional[UtcDatetime] = None


class AppDataPayload(StoreDocument):
    """The `data` sub-document of an ECommerceAppData record."""
    shop: str
    db_name: Optional[str] = None
    access_token: Optional[str] = None
    api_key: Optional[str] = None
    email: Optional[str] = None
    payment_mode: Optional[str] = None


class AppDataDocument(StoreDocument):
    """ECommerceAppData collection. `key` is the builder access key."""
    key: str
    ecom_platform: str = "shopify"
    command: str
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    data: AppDataPayload


class TicketDocument(StoreDocument):
    """OneTimeTickets collection. `key` is the ticket itself."""
    key: str
    shop: str
    used: bool = False
    used_at: Optional[UtcDatetime] = None
    expires_at: UtcDatetime
    created_at: Optional[UtcDatetime] = None


class StoreRecord(StoreDocument):
    """Project pointer returned by the cross-database StoreData scan."""
    db_name: str
    store_id: Optional[str] = None
    key: Optional[str] = None


class StoreMetadata(StoreDocument):
    """StoreData.metadata singleton inside a tenant's own database."""
    key: Optional[str] = None
    payment_plan: Optional[str] = None


class WriteResult(StoreDocument):
    """Result of writeDocumentByKey."""
    success: bool
    key: Optional[str] = None
    message: Optional[str] = None
