# app/repositories/product_repo.py
import uuid

from sqlmodel import Session, col, select

from app.models.product import Product, ProductVariant


class ProductRepository:
    """
    Read access to the catalog (products and their variants).

    - Pure DB queries, no business logic.
    - The catalog is owned by the back office; checkout only reads it
      (stock writes go through InventoryRepository).
    """

    def get_variant_with_product(
        self,
        session: Session,
        variant_id: uuid.UUID,
    ) -> tuple[ProductVariant, Product] | None:
        stmt = (
            select(ProductVariant, Product)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(ProductVariant.id == variant_id)
        )
        row = session.exec(stmt).first()
        if row is None:
            return None
        return row[0], row[1]

    def variants_with_products(
        self,
        session: Session,
        variant_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, tuple[ProductVariant, Product]]:
        """
        Batch lookup used to price a whole cart in one query.
        """
        if not variant_ids:
            return {}
        stmt = (
            select(ProductVariant, Product)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(col(ProductVariant.id).in_(variant_ids))
        )
        return {variant.id: (variant, product) for variant, product in session.exec(stmt)}
