# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending", "confirmed", "processing", "shipped", "delivered", "cancelled"
]


def _strip_or_none(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    return v or None


class CustomerInfo(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = None

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class ShippingAddress(SQLModel):
    """
    Completeness (line_1, city, state, postal_code) is checked by the
    order service so it can answer with a 400 validation error.
    """

    model_config = ConfigDict(extra="forbid")

    line_1: str | None = None
    line_2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str = "India"

    @field_validator("line_1", "line_2", "city", "state", "postal_code")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class OrderItemIn(SQLModel):
    product_id: uuid.UUID | None = None
    variant_id: uuid.UUID | None = None
    quantity: int | None = None
    product_name: str | None = None


class OrderCreate(SQLModel):
    """
    Checkout payload (guest or signed-in).

    Client sends:
      - customer + shipping address
      - payment_method: online | cod
      - items (variant + quantity); prices are taken from the catalog
      - coupon_code (optional)
      - the amounts it displayed, re-checked against server pricing

    Backend derives:
      - user_id from token
      - order_number, status='pending', payment_status='pending'
    """

    model_config = ConfigDict(extra="forbid")

    customer: CustomerInfo
    shipping_address: ShippingAddress
    payment_method: str
    items: list[OrderItemIn] = []
    coupon_code: str | None = None

    subtotal: float
    discount_amount: float = 0
    delivery_fee: float = 0
    total_amount: float

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, v: str | None) -> str | None:
        v = _strip_or_none(v)
        return v.upper() if v else v


class OrderPlaced(SQLModel):
    order_id: uuid.UUID
    order_number: str
    total_amount: float
    payment_method: str


class OrderSummaryRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    status: str
    payment_method: str
    payment_status: str
    total_amount: float
    created_at: datetime


class OrderItemRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID | None
    variant_id: uuid.UUID | None
    product_name: str
    size: str | None
    color: str | None
    quantity: int
    unit_price: float
    total_price: float


class OrderPublic(SQLModel):
    """
    Order as shown to customers.

    Never carries gateway identifiers or the idempotency key.
    """

    id: uuid.UUID
    order_number: str
    status: str
    payment_method: str
    payment_status: str
    customer_name: str
    customer_email: str
    customer_phone: str | None
    shipping_address_line_1: str
    shipping_address_line_2: str | None
    shipping_city: str
    shipping_state: str
    shipping_postal_code: str
    shipping_country: str
    subtotal: float
    discount_amount: float
    delivery_fee: float
    total_amount: float
    coupon_code: str | None
    created_at: datetime
    updated_at: datetime
    delivered_at: datetime | None
    items: list[OrderItemRead]


class OrderLookupRequest(SQLModel):
    order_number: str = ""
    email: str | None = None
    phone: str | None = None


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
