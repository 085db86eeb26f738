"""
Pydantic models for request validation.

Request bodies are parsed into one fixed shape here. Older storefront
clients post `customer` and `items` as JSON-encoded strings; those are
decoded in the "before" validators below so nothing downstream ever
branches on the runtime shape of a body.
"""
import json
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StoreBase(BaseModel):
    """Shared base — allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


def _decode_embedded_json(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            raise ValueError("must be an object/array or a JSON-encoded string")
    return value


# ── Orders ──────────────────────────────────────────────────────────

class CustomerIn(StoreBase):
    """Customer contact block. Every field is optional free text."""
    name: str = ""
    address: str = ""
    phone: str = ""

    @field_validator("name", "address", "phone", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, (int, float)):
            return str(v)
        return v


class LineItemIn(StoreBase):
    """One cart line. name/unit_price default to the catalog values at order time."""
    product_id: int = Field(..., alias="productId", gt=0)
    quantity: int = Field(1, ge=1, le=10_000)
    name: Optional[str] = Field(default=None, max_length=200)
    unit_price: Optional[Decimal] = Field(default=None, alias="unitPrice", ge=0)

    @field_validator("unit_price", mode="before")
    @classmethod
    def _comma_decimal(cls, v):
        if isinstance(v, str):
            return v.strip().replace(",", ".")
        return v


class OrderCreateRequest(StoreBase):
    """POST /orders body."""
    customer: CustomerIn = Field(default_factory=CustomerIn)
    items: List[LineItemIn] = Field(default_factory=list)
    total: Any = Field(default=None, description="Number or numeric string; computed from items when omitted")

    @field_validator("customer", mode="before")
    @classmethod
    def _customer_shape(cls, v):
        v = _decode_embedded_json(v)
        return {} if v is None else v

    @field_validator("items", mode="before")
    @classmethod
    def _items_shape(cls, v):
        v = _decode_embedded_json(v)
        return [] if v is None else v


class StatusUpdateRequest(StoreBase):
    """PUT /orders/{id}/status body. Any text is accepted verbatim."""
    status: str


# ── Catalog ─────────────────────────────────────────────────────────

class ProductCreateRequest(StoreBase):
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0)
    stock_quantity: int = Field(0, alias="stockQuantity", ge=0)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


# ── Push ────────────────────────────────────────────────────────────

class PushKeys(StoreBase):
    p256dh: Optional[str] = None
    auth: Optional[str] = None


class PushSubscribeRequest(StoreBase):
    """Browser PushSubscription.toJSON() shape: {endpoint, keys: {p256dh, auth}}."""
    endpoint: Optional[str] = None
    keys: Optional[PushKeys] = None


class PushUnsubscribeRequest(StoreBase):
    endpoint: Optional[str] = None
