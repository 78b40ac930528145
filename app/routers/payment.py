# app/routers/payment.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_current_user
from app.core.config import get_settings
from app.core.gateway import PaymentGateway, get_gateway
from app.database import get_session
from app.models.user import User
from app.routers.orders import order_repo, service as order_service
from app.schemas.payment import (
    GatewayOrderRead,
    PaymentConfirm,
    PaymentConfirmResult,
    PaymentCreate,
    PaymentStatusRead,
)
from app.services.payment_service import PaymentService

router = APIRouter(prefix="/payment", tags=["Payment"])

service = PaymentService(order_repo, order_service, get_settings())


@router.post("", response_model=GatewayOrderRead)
def create_payment(
    payload: PaymentCreate,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
    current_user: User | None = Depends(get_current_user),
):
    """
    Open a gateway order for an unpaid online order.
    """
    return service.create_gateway_order(session, gateway, payload.order_id, current_user)


@router.put("", response_model=PaymentConfirmResult)
def confirm_payment(
    payload: PaymentConfirm,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Gateway callback: verify the signature and mark the order paid.

    Safe to deliver more than once; later deliveries answer with
    `already_confirmed=true`.
    """
    return service.confirm_payment(session, gateway, payload)


@router.get("/{order_id}", response_model=PaymentStatusRead)
def get_payment_status(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Payment and order status, with the same visibility as the order.
    """
    return service.payment_status(session, order_id, current_user)
