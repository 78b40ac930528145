# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order (guest or signed-in).

    Created once by checkout with status='pending', payment_status='pending'.
    Online payments move it to payment_status='paid', status='confirmed'.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        max_length=32,
        unique=True,
        index=True,
        description="Human-facing order reference",
    )

    # NULL for guest orders
    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    # pending | confirmed | processing | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # online | cod
    payment_method: str

    # pending | paid | failed | refunded
    payment_status: str = Field(default="pending", index=True)

    # Amounts
    subtotal: float
    discount_amount: float = 0
    delivery_fee: float = 0
    total_amount: float

    # Customer
    customer_name: str
    customer_email: str = Field(index=True)
    customer_phone: str | None = Field(default=None, index=True)

    # Shipping address
    shipping_address_line_1: str
    shipping_address_line_2: str | None = None
    shipping_city: str
    shipping_state: str
    shipping_postal_code: str
    shipping_country: str = "India"

    coupon_code: str | None = None

    # Payment gateway references (never exposed by lookup)
    gateway_order_id: str | None = Field(default=None, unique=True, index=True)
    gateway_payment_id: str | None = None

    # Client retry key for checkout
    idempotency_key: str | None = Field(
        default=None,
        max_length=100,
        unique=True,
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    delivered_at: datetime | None = None


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    Snapshot of catalog data at purchase time, so later catalog edits
    never alter historical orders.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="products.id",
    )
    variant_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="product_variants.id",
    )

    product_name: str
    size: str | None = None
    color: str | None = None

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        description="Unit price at time of order",
    )
    total_price: float
