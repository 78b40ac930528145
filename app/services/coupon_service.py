# app/services/coupon_service.py
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.errors import CouponError, ValidationError
from app.models.coupon import Coupon
from app.repositories.coupon_repo import CouponRepository
from app.schemas.coupon import CouponCreate, CouponQuote


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CouponService:
    """
    Coupon validation and usage accounting.

    Responsibilities:
      - quote a discount for an order amount (no writes)
      - count one redemption per placed order, never past usage_limit
      - admin create / list
    """

    def __init__(self, repo: CouponRepository):
        self.repo = repo

    @staticmethod
    def compute_discount(coupon: Coupon, order_amount: float) -> float:
        """
        percentage: order_amount * value / 100, capped by max_discount_amount
        fixed:      value
        Never more than the order amount itself.
        """
        if coupon.discount_type == "percentage":
            discount = order_amount * coupon.discount_value / 100
            if coupon.max_discount_amount and discount > coupon.max_discount_amount:
                discount = coupon.max_discount_amount
        else:
            discount = coupon.discount_value
        return round(min(discount, order_amount), 2)

    def validate(
        self,
        session: Session,
        code: str,
        order_amount: float,
    ) -> CouponQuote:
        coupon = self.repo.get_by_code(session, code)
        if coupon is None:
            raise CouponError(
                CouponError.NOT_FOUND,
                "Invalid coupon code. Please check and try again.",
            )

        now = datetime.now(timezone.utc)
        if not coupon.is_active or (
            coupon.expires_at is not None and _as_utc(coupon.expires_at) < now
        ):
            raise CouponError(
                CouponError.EXPIRED_OR_INACTIVE,
                "This coupon has expired or is no longer active.",
            )

        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise CouponError(
                CouponError.USAGE_LIMIT_REACHED,
                "This coupon has reached its usage limit.",
            )

        if coupon.min_order_amount > order_amount:
            raise CouponError(
                CouponError.BELOW_MINIMUM,
                f"Minimum order amount is {coupon.min_order_amount:.2f} to use this coupon.",
            )

        return CouponQuote(
            code=coupon.code,
            discount_amount=self.compute_discount(coupon, order_amount),
        )

    def record_usage(self, session: Session, code: str) -> None:
        """
        Count one redemption inside the caller's transaction.

        Not idempotent: call exactly once per placed order.
        """
        if not self.repo.increment_usage(session, code):
            raise CouponError(
                CouponError.USAGE_LIMIT_REACHED,
                "This coupon has reached its usage limit.",
            )

    # -------- Admin operations --------

    def create_coupon(self, session: Session, payload: CouponCreate) -> Coupon:
        if self.repo.get_by_code(session, payload.code) is not None:
            raise ValidationError(f"Coupon {payload.code} already exists")
        if payload.discount_type == "percentage" and payload.discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        return self.repo.create(session, Coupon(**payload.model_dump()))

    def list_coupons(self, session: Session, skip: int = 0, limit: int = 50) -> list[Coupon]:
        return self.repo.list_all(session, skip, limit)
