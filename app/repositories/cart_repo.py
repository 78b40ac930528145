# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone

from sqlmodel import Session, col, select

from app.models.cart import CartItem, CartMerge


class CartRepository:

    # Get items for a user
    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(col(CartItem.created_at))
        )
        return session.exec(stmt).all()

    def get_by_variant(
        self, session: Session, user_id: uuid.UUID, variant_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.user_id == user_id, CartItem.variant_id == variant_id
        )
        return session.exec(stmt).first()

    def get_for_user(
        self, session: Session, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> CartItem | None:
        item = session.get(CartItem, item_id)
        if item is None or item.user_id != user_id:
            return None
        return item

    def add_quantity(
        self,
        session: Session,
        *,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity: int,
    ) -> CartItem:
        """
        Read-before-write upsert keeping one row per (user, variant).

        Does not commit; the service decides the transaction boundary
        (single add vs. a whole merge).
        """
        existing = self.get_by_variant(session, user_id, variant_id)
        if existing:
            existing.quantity += quantity
            existing.updated_at = datetime.now(timezone.utc)
            session.add(existing)
            return existing

        item = CartItem(
            user_id=user_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        )
        session.add(item)
        return item

    def update(self, session: Session, item: CartItem) -> CartItem:
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.commit()

    def clear_user_cart(
        self, session: Session, user_id: uuid.UUID, commit: bool = True
    ) -> None:
        for row in self.list_for_user(session, user_id):
            session.delete(row)
        if commit:
            session.commit()

    # ---- Merge fence ----

    def merge_done(self, session: Session, user_id: uuid.UUID, merge_token: str) -> bool:
        stmt = select(CartMerge).where(
            CartMerge.user_id == user_id, CartMerge.merge_token == merge_token
        )
        return session.exec(stmt).first() is not None

    def record_merge(self, session: Session, user_id: uuid.UUID, merge_token: str) -> None:
        session.add(CartMerge(user_id=user_id, merge_token=merge_token))
