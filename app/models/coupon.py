# app/models/coupon.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Coupon(SQLModel, table=True):
    """
    Promotional discount code.

    Invariant: used_count <= usage_limit when usage_limit is set.
    used_count only moves through CouponRepository.increment_usage.
    """

    __tablename__ = "coupons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    # Stored upper-case
    code: str = Field(
        max_length=50,
        unique=True,
        index=True,
    )

    # percentage | fixed
    discount_type: str = Field(
        description="percentage or fixed",
    )
    discount_value: float = Field(gt=0)

    min_order_amount: float = Field(default=0, ge=0)
    max_discount_amount: float | None = None

    usage_limit: int | None = Field(default=None, ge=1)
    used_count: int = Field(default=0, ge=0)

    is_active: bool = Field(default=True)
    expires_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
