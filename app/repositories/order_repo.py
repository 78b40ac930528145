# app/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlmodel import Session, col, select

from app.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(col(Order.created_at).desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).order_by(col(Order.created_at).desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id, populate_existing=True)

    def get_by_idempotency_key(self, session: Session, key: str) -> Order | None:
        stmt = select(Order).where(Order.idempotency_key == key)
        return session.exec(stmt).first()

    def find_by_number_and_contact(
        self,
        session: Session,
        order_number: str,
        email: str | None,
        phone: str | None,
    ) -> Order | None:
        """
        Exact order number plus a matching email or phone.
        Callers normalize the inputs (upper-case number, lower-case email).
        """
        contact = []
        if email:
            contact.append(Order.customer_email == email)
        if phone:
            contact.append(Order.customer_phone == phone)

        stmt = select(Order).where(Order.order_number == order_number).where(or_(*contact))
        return session.exec(stmt).first()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        order.updated_at = datetime.now(timezone.utc)
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def mark_paid(
        self,
        session: Session,
        order_id: uuid.UUID,
        gateway_order_id: str,
        gateway_payment_id: str,
    ) -> bool:
        """
        Conditional pending -> paid transition. No commit.

        Only an unpaid, still pending order bound to `gateway_order_id`
        moves. Returns False when no row changed (order gone, already
        paid, cancelled or bound to another gateway order).
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .where(Order.gateway_order_id == gateway_order_id)
            .where(Order.payment_status != "paid")
            .where(Order.status == "pending")
            .values(
                payment_status="paid",
                status="confirmed",
                gateway_payment_id=gateway_payment_id,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        return result.rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        return items
