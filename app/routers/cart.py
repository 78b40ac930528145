# app/routers/cart.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_optional_customer, require_user
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartMergeRequest,
    CartMergeResult,
    CartSummary,
    GuestCartRequest,
)
from app.services.cart_service import CartService, GuestCart

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get the signed-in customer's cart, priced live.
    """
    cart = service.cart_for(session, current_user)
    return service.summarize(session, cart)


@router.post("/guest", response_model=CartSummary)
def price_guest_cart(
    payload: GuestCartRequest,
    session: Session = Depends(get_session),
):
    """
    Price a client-held guest cart at current catalog prices.
    """
    return service.summarize(session, GuestCart(payload.items))


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_customer),
):
    """
    Add a variant to the cart.

    Signed-in: persisted cart. Guest: the lines in `guest_items`;
    the returned summary holds the lines to keep client-side.
    """
    cart = service.cart_for(session, current_user, payload.guest_items)
    return service.add_to_cart(session, cart, payload)


@router.put("/{item_id}", response_model=CartSummary)
def update_cart_item(
    item_id: str,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_optional_customer),
):
    """
    Set the quantity of a cart line; 0 or less removes it.
    """
    cart = service.cart_for(session, current_user, payload.guest_items)
    return service.update_quantity(session, cart, item_id, payload.quantity)


@router.delete("/{item_id}", response_model=CartSummary)
def remove_cart_item(
    item_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Remove a line from the signed-in customer's cart.
    """
    cart = service.cart_for(session, current_user)
    return service.remove_item(session, cart, item_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(service.cart_for(session, current_user))


@router.post("/merge", response_model=CartMergeResult)
def merge_guest_cart(
    payload: CartMergeRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Fold the guest cart into the user cart right after sign-in.

    Repeating the call with the same merge_token changes nothing
    (`merged=false`). The client drops its guest cart on success.
    """
    return service.merge_guest_into_user(session, current_user, payload)
