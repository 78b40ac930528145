# app/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import (
    AccessDenied,
    CouponError,
    OrderCreationError,
    OrderNotFound,
    StockError,
    StoreUnavailable,
    ValidationError,
)
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductVariant
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.inventory_repo import InventoryRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderLookupRequest,
    OrderPlaced,
    OrderPublic,
    OrderStatusUpdate,
)
from app.services.coupon_service import CouponService

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"online", "cod"}

# Client-displayed amounts may differ from server pricing by rounding only
AMOUNT_TOLERANCE = 0.01

# Fulfilment state machine (admin)
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Validate a checkout request before touching the store
      - Pre-check stock for every line, price server-side, apply coupon
      - Create order + items, reserve stock, count coupon usage in one
        transaction; roll all of it back on any failure
      - Guard order visibility (owner or guest order)
      - Admin listing and fulfilment status transitions
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        inventory_repo: InventoryRepository,
        cart_repo: CartRepository,
        coupon_service: CouponService,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.inventory_repo = inventory_repo
        self.cart_repo = cart_repo
        self.coupon_service = coupon_service
        self.settings = settings

    # -------- Checkout --------

    def place_order(
        self,
        session: Session,
        user: User | None,
        payload: OrderCreate,
        idempotency_key: str | None = None,
    ) -> OrderPlaced:
        """
        Steps:
          1. Validate input (no store access).
          2. Replay a previous result for a known idempotency key.
          3. Pre-check every line: variant exists, product active, enough stock.
          4. Price from the catalog, quote the coupon, add delivery fee;
             reject if the client's amounts are out of date.
          5. In one transaction: insert order, insert items, reserve each
             line with a conditional decrement, count the coupon once,
             optionally clear the cart, commit.
        """
        # 1) Input sanity check
        self._validate_request(payload)

        # 2) Retried checkout
        if idempotency_key:
            existing = self.order_repo.get_by_idempotency_key(session, idempotency_key)
            if existing is not None:
                return self._replay(existing, user)

        # 3) Pre-check lines
        lines = self._collapse_items(payload)
        catalog = self.product_repo.variants_with_products(session, list(lines))
        names: dict[uuid.UUID, str] = {}

        for variant_id, (quantity, label) in lines.items():
            found = catalog.get(variant_id)
            if found is None:
                raise ValidationError(f"Product variant not found for {label}")
            variant, product = found
            names[variant_id] = product.name

            if not product.is_active:
                raise ValidationError(f"{product.name} is no longer available")

            available = self.inventory_repo.get_stock(session, variant_id) or 0
            if available < quantity:
                raise StockError(product.name, available, quantity)

        # 4) Server-side pricing
        subtotal = round(
            sum(
                catalog[vid][1].effective_price * quantity
                for vid, (quantity, _) in lines.items()
            ),
            2,
        )
        discount = 0.0
        if payload.coupon_code:
            quote = self.coupon_service.validate(session, payload.coupon_code, subtotal)
            discount = quote.discount_amount

        delivery_fee = self._delivery_fee(subtotal, payload.payment_method)
        total = round(subtotal - discount + delivery_fee, 2)

        if (
            abs(payload.subtotal - subtotal) > AMOUNT_TOLERANCE
            or abs(payload.total_amount - total) > AMOUNT_TOLERANCE
        ):
            raise ValidationError(
                "Order amounts are out of date, please review your cart",
                subtotal=subtotal,
                discount_amount=discount,
                delivery_fee=delivery_fee,
                total_amount=total,
            )
        if total <= 0:
            raise ValidationError("Invalid order amounts")

        # 5) Commit as one unit
        order_number = self._new_order_number()
        address = payload.shipping_address
        order = Order(
            order_number=order_number,
            user_id=user.id if user else None,
            status="pending",
            payment_method=payload.payment_method,
            payment_status="pending",
            subtotal=subtotal,
            discount_amount=discount,
            delivery_fee=delivery_fee,
            total_amount=total,
            customer_name=payload.customer.name.strip(),
            customer_email=str(payload.customer.email).lower(),
            customer_phone=payload.customer.phone,
            shipping_address_line_1=address.line_1,
            shipping_address_line_2=address.line_2,
            shipping_city=address.city,
            shipping_state=address.state,
            shipping_postal_code=address.postal_code,
            shipping_country=address.country or "India",
            coupon_code=payload.coupon_code,
            idempotency_key=idempotency_key,
        )

        try:
            order = self.order_repo.create_order(session, order)
            self.order_repo.create_items(
                session,
                [
                    self._snapshot_item(order.id, *catalog[vid], quantity)
                    for vid, (quantity, _) in lines.items()
                ],
            )

            for variant_id, (quantity, _) in lines.items():
                if not self.inventory_repo.try_reserve(session, variant_id, quantity):
                    self._rollback(session, order_number, "stock changed during checkout")
                    available = self.inventory_repo.get_stock(session, variant_id) or 0
                    raise StockError(names[variant_id], available, quantity)

            if payload.coupon_code:
                try:
                    self.coupon_service.record_usage(session, payload.coupon_code)
                except CouponError:
                    self._rollback(session, order_number, "coupon usage limit reached")
                    raise

            if self.settings.CLEAR_CART_ON_ORDER and user is not None:
                self.cart_repo.clear_user_cart(session, user.id, commit=False)

            session.commit()
        except IntegrityError as exc:
            self._rollback(session, order_number, "integrity error")
            if idempotency_key:
                existing = self.order_repo.get_by_idempotency_key(session, idempotency_key)
                if existing is not None:
                    return self._replay(existing, user)
            raise OrderCreationError("Failed to create order") from exc
        except OperationalError as exc:
            self._rollback(session, order_number, "store unavailable")
            raise StoreUnavailable() from exc
        except SQLAlchemyError as exc:
            self._rollback(session, order_number, f"store error: {exc.__class__.__name__}")
            raise OrderCreationError("Failed to create order") from exc

        logger.info(
            "Order %s placed (%s, total %.2f, %d lines)",
            order.order_number,
            order.payment_method,
            order.total_amount,
            len(lines),
        )
        return OrderPlaced(
            order_id=order.id,
            order_number=order.order_number,
            total_amount=order.total_amount,
            payment_method=order.payment_method,
        )

    # -------- Lookup / access guard --------

    def get_by_id(
        self,
        session: Session,
        order_id: uuid.UUID,
        caller: User | None,
    ) -> OrderPublic:
        """
        Visible when the order is a guest order (the link is the
        credential) or the caller owns it.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()
        if not self.can_view(order, caller):
            raise AccessDenied()
        return self.to_public(session, order)

    @staticmethod
    def can_view(order: Order, caller: User | None) -> bool:
        if order.user_id is None:
            return True
        return caller is not None and caller.id == order.user_id

    def lookup(self, session: Session, payload: OrderLookupRequest) -> OrderPublic:
        """
        Find an order by number plus the email or phone used at checkout.
        """
        email = (payload.email or "").strip().lower() or None
        phone = (payload.phone or "").strip() or None
        order_number = payload.order_number.strip().upper()

        if not email and not phone:
            raise ValidationError("Either email or phone number is required")
        if not order_number:
            raise ValidationError("Order number is required")

        order = self.order_repo.find_by_number_and_contact(
            session, order_number, email, phone
        )
        if order is None:
            raise OrderNotFound("No order found with the provided details")
        return self.to_public(session, order)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        return self.order_repo.list_for_user(session, user_id, skip, limit)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        return self.order_repo.list_all(session, skip, limit)

    def get_order_admin(self, session: Session, order_id: uuid.UUID) -> OrderPublic:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()
        return self.to_public(session, order)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderPublic:
        """
        Admin-only status update with the fulfilment state machine:

          pending    -> confirmed, cancelled
          confirmed  -> processing, cancelled
          processing -> shipped, cancelled
          shipped    -> delivered
          delivered, cancelled -> (no change)

        delivered_at is stamped on delivery.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()

        current = order.status
        new = payload.status

        if current == new:
            return self.to_public(session, order)

        if new not in ALLOWED_TRANSITIONS.get(current, set()):
            raise ValidationError(f"Invalid status transition: {current} -> {new}")

        order.status = new
        if new == "delivered":
            order.delivered_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info("Order %s moved %s -> %s", order.order_number, current, new)
        return self.to_public(session, order)

    # -------- Helpers --------

    def to_public(self, session: Session, order: Order) -> OrderPublic:
        """
        Customer-facing projection: only OrderPublic's fields are copied, so
        gateway ids and the idempotency key never leave the service.
        """
        items = self.order_repo.list_items_for_order(session, order.id)
        fields = {
            name: getattr(order, name)
            for name in OrderPublic.model_fields
            if name != "items"
        }
        return OrderPublic(
            **fields,
            items=[OrderItemRead.model_validate(it, from_attributes=True) for it in items],
        )

    def _validate_request(self, payload: OrderCreate) -> None:
        if not payload.items:
            raise ValidationError("Missing required fields: items")

        if payload.payment_method not in PAYMENT_METHODS:
            raise ValidationError("Invalid payment method")

        address = payload.shipping_address
        if not (address.line_1 and address.city and address.state and address.postal_code):
            raise ValidationError("Incomplete shipping address")

        if payload.total_amount <= 0 or payload.subtotal <= 0:
            raise ValidationError("Invalid order amounts")

        for item in payload.items:
            if item.variant_id is None or not item.quantity or item.quantity <= 0:
                raise ValidationError(
                    f"Invalid item data for {item.product_name or item.variant_id or 'item'}"
                )

    @staticmethod
    def _collapse_items(payload: OrderCreate) -> dict[uuid.UUID, tuple[int, str]]:
        """
        variant_id -> (total quantity, label for messages), in request order.
        """
        lines: dict[uuid.UUID, tuple[int, str]] = {}
        for item in payload.items:
            quantity, label = lines.get(
                item.variant_id, (0, item.product_name or str(item.variant_id))
            )
            lines[item.variant_id] = (quantity + item.quantity, label)
        return lines

    def _delivery_fee(self, subtotal: float, payment_method: str) -> float:
        fee = 0.0 if subtotal >= self.settings.FREE_DELIVERY_THRESHOLD else self.settings.DELIVERY_FEE
        if payment_method == "cod":
            fee += self.settings.COD_FEE
        return round(fee, 2)

    def _new_order_number(self) -> str:
        return f"{self.settings.ORDER_NUMBER_PREFIX}{uuid.uuid4().hex[:10].upper()}"

    @staticmethod
    def _snapshot_item(
        order_id: uuid.UUID,
        variant: ProductVariant,
        product: Product,
        quantity: int,
    ) -> OrderItem:
        unit_price = product.effective_price
        return OrderItem(
            order_id=order_id,
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.name,
            size=variant.size,
            color=variant.color,
            quantity=quantity,
            unit_price=unit_price,
            total_price=round(unit_price * quantity, 2),
        )

    def _replay(self, order: Order, user: User | None) -> OrderPlaced:
        if order.user_id != (user.id if user else None):
            raise ValidationError("Idempotency key already used")
        logger.info("Checkout retry resolved to existing order %s", order.order_number)
        return OrderPlaced(
            order_id=order.id,
            order_number=order.order_number,
            total_amount=order.total_amount,
            payment_method=order.payment_method,
        )

    @staticmethod
    def _rollback(session: Session, order_number: str, reason: str) -> None:
        # Drops the order row, its items and every reservation made so far.
        session.rollback()
        logger.warning("Checkout for order %s rolled back: %s", order_number, reason)
