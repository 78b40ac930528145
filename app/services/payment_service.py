# app/services/payment_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import (
    AccessDenied,
    InvalidSignature,
    OrderNotFound,
    ValidationError,
)
from app.core.gateway import PaymentGateway
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.schemas.payment import (
    GatewayOrderRead,
    PaymentConfirm,
    PaymentConfirmResult,
    PaymentStatusRead,
)
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Online payment flow around an external gateway.

    Responsibilities:
      - open a gateway order for an unpaid online order
      - verify the gateway's signed callback and mark the order paid once
      - report payment status to whoever may see the order

    The callback may arrive more than once; only the first one writes.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        order_service: OrderService,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.order_service = order_service
        self.settings = settings

    def _visible_order(self, session: Session, order_id: uuid.UUID, caller: User | None):
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()
        if not self.order_service.can_view(order, caller):
            raise AccessDenied()
        return order

    def create_gateway_order(
        self,
        session: Session,
        gateway: PaymentGateway,
        order_id: uuid.UUID,
        caller: User | None,
    ) -> GatewayOrderRead:
        """
        Register the order's amount with the gateway.

        A retried call reuses the gateway order already stored on the order.
        """
        order = self._visible_order(session, order_id, caller)

        if order.payment_method != "online":
            raise ValidationError("Order is not paid online")
        if order.payment_status == "paid":
            raise ValidationError("Order is already paid")
        if order.status != "pending":
            raise ValidationError(f"Order is {order.status}", status=order.status)

        amount = round(order.total_amount * 100)

        if not order.gateway_order_id:
            gateway_order = gateway.create_order(
                amount_minor=amount,
                currency=self.settings.PAYMENT_CURRENCY,
                receipt=order.order_number,
                notes={"order_id": str(order.id)},
            )
            order.gateway_order_id = gateway_order["id"]
            self.order_repo.update_order(session, order)
            session.commit()
            session.refresh(order)
            logger.info("Gateway order %s opened for %s", order.gateway_order_id, order.order_number)

        return GatewayOrderRead(
            order_id=order.id,
            order_number=order.order_number,
            gateway_order_id=order.gateway_order_id,
            amount=amount,
            currency=self.settings.PAYMENT_CURRENCY,
            key_id=gateway.key_id,
        )

    def _check_binding(self, order, payload: PaymentConfirm) -> None:
        # A signature only proves the gateway saw (gateway_order_id,
        # payment_id). The order must be the one that gateway order was
        # opened for, or one payment could settle any number of orders.
        if order.payment_method != "online":
            problem = "Order is not paid online"
        elif order.gateway_order_id is None:
            problem = "No payment was opened for this order"
        elif order.gateway_order_id != payload.gateway_order_id:
            problem = "Payment does not belong to this order"
        else:
            return
        logger.warning(
            "Payment for gateway order %s rejected for order %s: %s",
            payload.gateway_order_id,
            order.order_number,
            problem,
        )
        raise ValidationError(problem)

    def _reject_late_payment(self, order, payload: PaymentConfirm):
        # The money was captured by the gateway but the order left
        # "pending" (cancelled). Nothing is revived; the payment is
        # flagged for refund.
        logger.warning(
            "Payment %s captured for %s order %s; refund required",
            payload.gateway_payment_id,
            order.status,
            order.order_number,
        )
        raise ValidationError(
            f"Order is {order.status}; the payment will be refunded",
            status=order.status,
        )

    def confirm_payment(
        self,
        session: Session,
        gateway: PaymentGateway,
        payload: PaymentConfirm,
    ) -> PaymentConfirmResult:
        """
        Steps:
          1. HMAC(gateway_order_id|gateway_payment_id) must match signature.
          2. Order must exist, be paid online and carry that gateway order.
          3. Already paid => success, nothing written.
          4. Order no longer pending (cancelled) => 400, refund logged.
          5. Conditional pending -> paid / confirmed update; zero rows
             means the order vanished (404), was cancelled in between
             (400) or a parallel callback won.
        """
        if not gateway.verify_signature(
            payload.gateway_order_id,
            payload.gateway_payment_id,
            payload.signature,
        ):
            logger.warning(
                "Invalid payment signature for order %s (gateway order %s)",
                payload.order_id,
                payload.gateway_order_id,
            )
            raise InvalidSignature()

        order = self.order_repo.get_by_id(session, payload.order_id)
        if order is None:
            raise OrderNotFound()

        self._check_binding(order, payload)

        if order.payment_status == "paid":
            logger.info("Duplicate payment confirmation ignored for %s", order.order_number)
            return PaymentConfirmResult(
                already_confirmed=True,
                order=self.order_service.to_public(session, order),
            )

        if order.status != "pending":
            self._reject_late_payment(order, payload)

        if not self.order_repo.mark_paid(
            session,
            order.id,
            payload.gateway_order_id,
            payload.gateway_payment_id,
        ):
            session.rollback()
            order = self.order_repo.get_by_id(session, payload.order_id)
            if order is None:
                raise OrderNotFound()
            if order.payment_status != "paid":
                self._reject_late_payment(order, payload)
            return PaymentConfirmResult(
                already_confirmed=True,
                order=self.order_service.to_public(session, order),
            )

        session.commit()
        order = self.order_repo.get_by_id(session, payload.order_id)
        logger.info("Payment confirmed for order %s", order.order_number)
        return PaymentConfirmResult(
            already_confirmed=False,
            order=self.order_service.to_public(session, order),
        )

    def payment_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        caller: User | None,
    ) -> PaymentStatusRead:
        order = self._visible_order(session, order_id, caller)
        return PaymentStatusRead(
            order_id=order.id,
            order_number=order.order_number,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            status=order.status,
        )
