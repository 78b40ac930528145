# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry.

    Pricing:
      - price: list price
      - discount_price: optional sale price; wins over price when set
    Stock is tracked per variant, not here.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name of the product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    price: float = Field(
        gt=0,
        description="List price",
    )

    discount_price: float | None = Field(
        default=None,
        description="Sale price, used instead of price when set",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product can be bought",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def effective_price(self) -> float:
        if self.discount_price is not None and self.discount_price > 0:
            return self.discount_price
        return self.price


class ProductVariant(SQLModel, table=True):
    """
    A size/color SKU of a product; the unit inventory is tracked against.

    stock_quantity is only ever decremented by checkout, through the
    conditional update in InventoryRepository.
    """

    __tablename__ = "product_variants"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    size: str | None = None
    color: str | None = None

    stock_quantity: int = Field(
        default=0,
        ge=0,
        description="Units currently in stock",
    )
