# app/core/errors.py
"""
Error taxonomy for the checkout core.

Every error carries a stable machine-readable `kind` and a human-readable
message. `app.main` maps each class to an HTTP status code; services raise
these instead of building HTTP responses themselves.
"""

from typing import Any


class ShopError(Exception):
    """Base exception for all storefront errors."""

    kind = "error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "kind": self.kind, **self.extra}


class ValidationError(ShopError):
    """Malformed or incomplete input."""

    kind = "validation_error"


class NotFound(ShopError):
    """Referenced resource (cart item, coupon, variant) does not exist."""

    kind = "not_found"


class StockError(ShopError):
    """Not enough inventory for a requested quantity."""

    kind = "stock_error"

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. "
            f"Available: {available}, Requested: {requested}",
            product_name=product_name,
            available=available,
            requested=requested,
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class CouponError(ShopError):
    """Coupon cannot be applied; `reason` says why."""

    kind = "coupon_error"

    NOT_FOUND = "not_found"
    EXPIRED_OR_INACTIVE = "expired_or_inactive"
    BELOW_MINIMUM = "below_minimum"
    USAGE_LIMIT_REACHED = "usage_limit_reached"

    def __init__(self, reason: str, message: str):
        super().__init__(message, reason=reason)
        self.reason = reason


class InvalidSignature(ShopError):
    """Payment callback failed HMAC verification."""

    kind = "invalid_signature"

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message)


class AccessDenied(ShopError):
    kind = "access_denied"

    def __init__(self, message: str = "Unauthorized access to this order"):
        super().__init__(message)


class OrderNotFound(ShopError):
    kind = "order_not_found"

    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class OrderCreationError(ShopError):
    """Multi-step order creation failed and was rolled back."""

    kind = "order_creation_error"


class PaymentGatewayError(ShopError):
    kind = "payment_gateway_error"


class GatewayTimeout(PaymentGatewayError):
    """Gateway did not answer in time; safe to retry."""

    kind = "gateway_timeout"

    def __init__(self, message: str = "Payment gateway timed out, please retry"):
        super().__init__(message, retryable=True)


class StoreUnavailable(ShopError):
    """Database unreachable or a statement hit its timeout; safe to retry."""

    kind = "store_unavailable"

    def __init__(self, message: str = "Store is temporarily unavailable, please retry"):
        super().__init__(message, retryable=True)


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    StockError: 400,
    CouponError: 400,
    InvalidSignature: 400,
    AccessDenied: 403,
    NotFound: 404,
    OrderNotFound: 404,
    OrderCreationError: 500,
    PaymentGatewayError: 502,
    GatewayTimeout: 504,
    StoreUnavailable: 503,
}
