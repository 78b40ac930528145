# app/services/cart_service.py
import logging
import uuid
from abc import ABC, abstractmethod

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.errors import NotFound, StockError, ValidationError
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartItemCreate,
    CartLine,
    CartLineRead,
    CartMergeRequest,
    CartMergeResult,
    CartSummary,
)

logger = logging.getLogger(__name__)


class Cart(ABC):
    """
    One logical cart contract over two storages.

    Every implementation keeps at most one line per variant.
    """

    @abstractmethod
    def lines(self) -> list[CartLine]: ...

    @abstractmethod
    def add(self, product_id: uuid.UUID, variant_id: uuid.UUID, quantity: int) -> None: ...

    @abstractmethod
    def remove(self, item_id: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def _set(self, item_id: str, quantity: int) -> None: ...

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """quantity <= 0 removes the line."""
        if quantity <= 0:
            self.remove(item_id)
        else:
            self._set(item_id, quantity)

    def quantity_of(self, variant_id: uuid.UUID) -> int:
        return sum(l.quantity for l in self.lines() if l.variant_id == variant_id)


class GuestCart(Cart):
    """
    Client-held cart. The request carries the lines in, the response
    carries them back out; nothing is stored server-side.
    """

    def __init__(self, lines: list[CartLine] | None = None):
        self._lines: list[CartLine] = [l.model_copy() for l in lines or []]

    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def _find(self, item_id: str) -> CartLine:
        for line in self._lines:
            if line.id == item_id:
                return line
        raise NotFound("Item not found in cart")

    def add(self, product_id: uuid.UUID, variant_id: uuid.UUID, quantity: int) -> None:
        for line in self._lines:
            if line.variant_id == variant_id:
                line.quantity += quantity
                return
        self._lines.append(
            CartLine(
                id=f"guest_{uuid.uuid4().hex}",
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
            )
        )

    def _set(self, item_id: str, quantity: int) -> None:
        self._find(item_id).quantity = quantity

    def remove(self, item_id: str) -> None:
        line = self._find(item_id)
        self._lines = [l for l in self._lines if l.id != line.id]

    def clear(self) -> None:
        self._lines = []


class UserCart(Cart):
    """
    Persisted cart of a signed-in user; each mutation commits.
    """

    def __init__(self, session: Session, repo: CartRepository, user_id: uuid.UUID):
        self.session = session
        self.repo = repo
        self.user_id = user_id

    def lines(self) -> list[CartLine]:
        return [
            CartLine(
                id=str(it.id),
                product_id=it.product_id,
                variant_id=it.variant_id,
                quantity=it.quantity,
            )
            for it in self.repo.list_for_user(self.session, self.user_id)
        ]

    def _get(self, item_id: str):
        try:
            item_uuid = uuid.UUID(item_id)
        except ValueError:
            raise NotFound("Item not found in cart")
        item = self.repo.get_for_user(self.session, self.user_id, item_uuid)
        if item is None:
            raise NotFound("Item not found in cart")
        return item

    def add(self, product_id: uuid.UUID, variant_id: uuid.UUID, quantity: int) -> None:
        self.repo.add_quantity(
            self.session,
            user_id=self.user_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        )
        self.session.commit()

    def _set(self, item_id: str, quantity: int) -> None:
        item = self._get(item_id)
        item.quantity = quantity
        self.repo.update(self.session, item)

    def remove(self, item_id: str) -> None:
        self.repo.delete(self.session, self._get(item_id))

    def clear(self) -> None:
        self.repo.clear_user_cart(self.session, self.user_id)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - pick the cart implementation from the caller identity
      - validate product / variant before adding
      - keep requested quantity <= variant stock when adding
      - price lines live (discount price if set, else list price)
      - merge a guest cart into the user cart once per guest session
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    def cart_for(
        self,
        session: Session,
        user: User | None,
        guest_items: list[CartLine] | None = None,
    ) -> Cart:
        if user is not None:
            return UserCart(session, self.cart_repo, user.id)
        return GuestCart(guest_items)

    # ---- pricing ----

    def summarize(self, session: Session, cart: Cart) -> CartSummary:
        """
        Price every line at the variant's current effective price.

        Lines whose variant no longer exists are left out.
        """
        lines = cart.lines()
        catalog = self.product_repo.variants_with_products(
            session, [l.variant_id for l in lines]
        )

        reads: list[CartLineRead] = []
        total_qty = 0
        subtotal = 0.0

        for line in lines:
            found = catalog.get(line.variant_id)
            if found is None:
                continue
            variant, product = found
            unit_price = product.effective_price
            line_total = round(unit_price * line.quantity, 2)
            total_qty += line.quantity
            subtotal += line_total

            reads.append(
                CartLineRead(
                    id=line.id,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=product.name,
                    size=variant.size,
                    color=variant.color,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                    available=variant.stock_quantity,
                )
            )

        return CartSummary(
            items=reads,
            total_items=len(reads),
            total_quantity=total_qty,
            subtotal=round(subtotal, 2),
        )

    # ---- public operations ----

    def add_to_cart(
        self,
        session: Session,
        cart: Cart,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a variant to the cart (sums onto an existing line).

        Rules:
          - variant must exist and belong to product_id
          - product must be active
          - quantity already in cart + quantity <= stock_quantity
        """
        found = self.product_repo.get_variant_with_product(session, payload.variant_id)
        if found is None:
            raise NotFound("Product variant not found")
        variant, product = found

        if variant.product_id != payload.product_id:
            raise ValidationError("Variant does not belong to this product")
        if not product.is_active:
            raise ValidationError("Product is inactive")

        requested = cart.quantity_of(variant.id) + payload.quantity
        if requested > variant.stock_quantity:
            raise StockError(product.name, variant.stock_quantity, requested)

        cart.add(product.id, variant.id, payload.quantity)
        return self.summarize(session, cart)

    def update_quantity(
        self,
        session: Session,
        cart: Cart,
        item_id: str,
        quantity: int,
    ) -> CartSummary:
        cart.set_quantity(item_id, quantity)
        return self.summarize(session, cart)

    def remove_item(self, session: Session, cart: Cart, item_id: str) -> CartSummary:
        cart.remove(item_id)
        return self.summarize(session, cart)

    def clear_cart(self, cart: Cart) -> CartSummary:
        cart.clear()
        return CartSummary(items=[], total_items=0, total_quantity=0, subtotal=0.0)

    def merge_guest_into_user(
        self,
        session: Session,
        user: User,
        payload: CartMergeRequest,
    ) -> CartMergeResult:
        """
        Fold a guest cart into the user's persisted cart.

        Quantities for a variant already in the user cart are summed.
        A (user, merge_token) pair merges at most once: the fence row is
        written in the same commit as the lines, and its unique constraint
        turns a concurrent duplicate into a no-op.
        """
        user_cart = UserCart(session, self.cart_repo, user.id)

        if self.cart_repo.merge_done(session, user.id, payload.merge_token):
            logger.info("Cart merge %s already applied for user %s", payload.merge_token, user.id)
            return CartMergeResult(merged=False, **self._summary_fields(session, user_cart))

        catalog = self.product_repo.variants_with_products(
            session, [l.variant_id for l in payload.items]
        )

        try:
            self.cart_repo.record_merge(session, user.id, payload.merge_token)
            session.flush()
            for line in payload.items:
                found = catalog.get(line.variant_id)
                if found is None:
                    # variant removed from the catalog since it was added
                    continue
                variant, product = found
                self.cart_repo.add_quantity(
                    session,
                    user_id=user.id,
                    product_id=product.id,
                    variant_id=variant.id,
                    quantity=line.quantity,
                )
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info("Concurrent cart merge %s lost the fence for user %s", payload.merge_token, user.id)
            return CartMergeResult(merged=False, **self._summary_fields(session, user_cart))

        return CartMergeResult(merged=True, **self._summary_fields(session, user_cart))

    def _summary_fields(self, session: Session, cart: Cart) -> dict:
        return self.summarize(session, cart).model_dump()
