# app/schemas/cart.py
import uuid

from sqlmodel import SQLModel, Field


class CartLine(SQLModel):
    """
    One cart line: (variant, quantity).

    Guests keep these client-side and send them back with each request;
    signed-in carts build them from cart_items rows.
    """

    id: str
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int = Field(gt=0)


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    Guests send their current lines in `guest_items` and store the
    lines returned in the summary.
    """

    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)
    guest_items: list[CartLine] | None = None


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line; 0 or less removes it.
    """

    quantity: int
    guest_items: list[CartLine] | None = None


class GuestCartRequest(SQLModel):
    items: list[CartLine] = []


class CartMergeRequest(SQLModel):
    """
    Guest cart handed over right after sign-in.

    merge_token identifies the guest session so a repeated trigger
    merges nothing.
    """

    merge_token: str = Field(min_length=1, max_length=100)
    items: list[CartLine] = []


class CartLineRead(SQLModel):
    """
    A cart line priced at the variant's current effective price.
    """

    id: str
    product_id: uuid.UUID
    variant_id: uuid.UUID
    product_name: str | None = None
    size: str | None = None
    color: str | None = None
    quantity: int
    unit_price: float
    line_total: float
    available: int


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartLineRead]
    total_items: int
    total_quantity: int
    subtotal: float


class CartMergeResult(CartSummary):
    merged: bool
