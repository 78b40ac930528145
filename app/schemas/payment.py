# app/schemas/payment.py
import uuid

from sqlmodel import SQLModel

from app.schemas.order import OrderPublic


class PaymentCreate(SQLModel):
    order_id: uuid.UUID


class GatewayOrderRead(SQLModel):
    """
    What the storefront needs to open the gateway's checkout widget.
    """

    order_id: uuid.UUID
    order_number: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


class PaymentConfirm(SQLModel):
    """
    Gateway callback forwarded by the storefront.
    """

    gateway_order_id: str
    gateway_payment_id: str
    signature: str
    order_id: uuid.UUID


class PaymentConfirmResult(SQLModel):
    already_confirmed: bool
    order: OrderPublic


class PaymentStatusRead(SQLModel):
    order_id: uuid.UUID
    order_number: str
    payment_method: str
    payment_status: str
    status: str
