# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Header, status
from sqlmodel import Session

from app.core.auth import (
    get_current_user,
    get_optional_customer,
    require_admin,
    require_user,
)
from app.core.config import get_settings
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.coupon_repo import CouponRepository
from app.repositories.inventory_repo import InventoryRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderLookupRequest,
    OrderPlaced,
    OrderPublic,
    OrderStatusUpdate,
    OrderSummaryRead,
)
from app.services.coupon_service import CouponService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
service = OrderService(
    order_repo,
    ProductRepository(),
    InventoryRepository(),
    CartRepository(),
    CouponService(CouponRepository()),
    get_settings(),
)


# -------- Customer-facing endpoints --------


@router.post(
    "",
    response_model=OrderPlaced,
    status_code=status.HTTP_201_CREATED,
)
def place_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_customer),
    idempotency_key: str | None = Header(default=None, max_length=100),
):
    """
    Checkout (guest or signed-in).

    Send an `Idempotency-Key` header to make retries safe: a repeated key
    returns the order created by the first call.
    """
    return service.place_order(session, current_user, payload, idempotency_key)


@router.get("", response_model=list[OrderSummaryRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the signed-in customer's orders, newest first.
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.post("/lookup", response_model=OrderPublic)
def lookup_order(
    payload: OrderLookupRequest,
    session: Session = Depends(get_session),
):
    """
    Track an order with its number plus the checkout email or phone.
    """
    return service.lookup(session, payload)


# -------- Admin endpoints --------


@router.get(
    "/admin",
    response_model=list[OrderSummaryRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    List all orders (admin only).
    """
    return service.list_all_orders(session, skip, limit)


@router.get(
    "/admin/{order_id}",
    response_model=OrderPublic,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items (admin only).
    """
    return service.get_order_admin(session, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderPublic,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Move an order along the fulfilment state machine (admin only).

      pending    -> confirmed, cancelled

      confirmed  -> processing, cancelled

      processing -> shipped, cancelled

      shipped    -> delivered
    """
    return service.update_status(session, order_id, payload)


# -------- Single order --------


@router.get("/{order_id}", response_model=OrderPublic)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Order detail. Guest orders are readable by anyone holding the link;
    other orders only by their owner.
    """
    return service.get_by_id(session, order_id, current_user)
