# app/repositories/inventory_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session

from app.models.product import ProductVariant


class InventoryRepository:
    """
    Per-variant stock counters.

    NOTE:
      - Stock is never read-modified-written in Python. A reservation is a
        single conditional UPDATE, so two concurrent checkouts can't both
        take the last unit.
      - No commits here; reservations belong to the checkout transaction.
    """

    def get_stock(self, session: Session, variant_id: uuid.UUID) -> int | None:
        """
        Point read of the latest committed stock; None if the variant is unknown.
        """
        variant = session.get(ProductVariant, variant_id, populate_existing=True)
        if variant is None:
            return None
        return variant.stock_quantity

    def try_reserve(
        self,
        session: Session,
        variant_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Atomically decrement stock by `quantity` if enough is left.

        Returns True iff exactly one row was updated.
        """
        stmt = (
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .where(ProductVariant.stock_quantity >= quantity)
            .values(stock_quantity=ProductVariant.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        return result.rowcount == 1
