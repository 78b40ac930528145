# app/routers/coupons.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.coupon_repo import CouponRepository
from app.schemas.coupon import (
    CouponCreate,
    CouponQuote,
    CouponRead,
    CouponValidateRequest,
)
from app.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["Coupons"])

repo = CouponRepository()
service = CouponService(repo)


@router.post("/validate", response_model=CouponQuote)
def validate_coupon(
    payload: CouponValidateRequest,
    session: Session = Depends(get_session),
):
    """
    Quote the discount a code gives for an order amount.

    Nothing is redeemed here; usage is counted when the order is placed.
    """
    return service.validate(session, payload.code, payload.order_amount)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=CouponRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_coupon(
    payload: CouponCreate,
    session: Session = Depends(get_session),
):
    return service.create_coupon(session, payload)


@router.get(
    "",
    response_model=list[CouponRead],
    dependencies=[Depends(require_admin)],
)
def list_coupons(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_coupons(session, skip, limit)
