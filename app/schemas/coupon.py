# app/schemas/coupon.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

DiscountType = Literal["percentage", "fixed"]


class CouponCreate(SQLModel):
    """
    Admin payload for a new coupon. Codes are stored upper-case.
    """

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=50)
    discount_type: DiscountType
    discount_value: float = Field(gt=0)
    min_order_amount: float = Field(default=0, ge=0)
    max_discount_amount: float | None = Field(default=None, gt=0)
    usage_limit: int | None = Field(default=None, ge=1)
    is_active: bool = True
    expires_at: datetime | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v


class CouponRead(SQLModel):
    id: uuid.UUID
    code: str
    discount_type: str
    discount_value: float
    min_order_amount: float
    max_discount_amount: float | None
    usage_limit: int | None
    used_count: int
    is_active: bool
    expires_at: datetime | None


class CouponValidateRequest(SQLModel):
    code: str
    order_amount: float = Field(ge=0)


class CouponQuote(SQLModel):
    code: str
    discount_amount: float
