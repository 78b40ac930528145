"""Pytest fixtures for storefront tests."""

import json
import os
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read when app modules are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["PAYMENT_KEY_ID"] = "rzp_test_key"
os.environ["PAYMENT_KEY_SECRET"] = "rzp_test_secret"
os.environ["CLEAR_CART_ON_ORDER"] = "false"

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel

from app.core.gateway import PaymentGateway, get_gateway
from app.database import engine
from app.main import app
from app.models.coupon import Coupon
from app.models.product import Product, ProductVariant
from app.models.user import User


@pytest.fixture(autouse=True)
def db():
    """Fresh schema for every test."""
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def gateway_requests():
    """Bodies of the order requests the fake gateway received."""
    return []


@pytest.fixture
def gateway(gateway_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        gateway_requests.append(body)
        return httpx.Response(
            200,
            json={
                "id": f"order_GW{len(gateway_requests)}",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            },
        )

    return PaymentGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        api_base="https://gateway.test/v1",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def _token(user_id: uuid.UUID, email: str) -> str:
    claims = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(claims, "test-jwt-secret", algorithm="HS256")


@pytest.fixture
def customer_headers():
    """Factory: bearer headers for a customer (row created on first request)."""

    def make(email: str = "asha@example.com", user_id: uuid.UUID | None = None):
        user_id = user_id or uuid.uuid4()
        return {"Authorization": f"Bearer {_token(user_id, email)}"}

    return make


@pytest.fixture
def admin_headers():
    admin_id = uuid.uuid4()
    with Session(engine) as session:
        session.add(User(id=admin_id, email="admin@example.com", name="admin", role="admin"))
        session.commit()
    return {"Authorization": f"Bearer {_token(admin_id, 'admin@example.com')}"}


def _detached(session: Session, *objs):
    session.commit()
    for obj in objs:
        session.refresh(obj)
    return objs


@pytest.fixture
def make_variant():
    """Factory: product with a single variant; returns the variant."""

    def make(
        name: str = "Silk Saree",
        price: float = 500.0,
        stock: int = 5,
        discount_price: float | None = None,
        is_active: bool = True,
        size: str | None = "M",
        color: str | None = "Red",
    ) -> ProductVariant:
        with Session(engine) as session:
            product = Product(
                name=name,
                slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}",
                price=price,
                discount_price=discount_price,
                is_active=is_active,
            )
            session.add(product)
            session.flush()
            variant = ProductVariant(
                product_id=product.id,
                size=size,
                color=color,
                stock_quantity=stock,
            )
            session.add(variant)
            (variant,) = _detached(session, variant)
            return variant

    return make


@pytest.fixture
def make_coupon():
    def make(code: str = "SAVE10", **fields) -> Coupon:
        values = {"discount_type": "percentage", "discount_value": 10.0}
        values.update(fields)
        with Session(engine) as session:
            coupon = Coupon(code=code, **values)
            session.add(coupon)
            (coupon,) = _detached(session, coupon)
            return coupon

    return make


@pytest.fixture
def order_payload():
    """Factory: checkout body whose amounts match server pricing."""

    def make(
        variant: ProductVariant,
        quantity: int = 1,
        subtotal: float = 500.0,
        total: float = 550.0,
        payment_method: str = "cod",
        coupon_code: str | None = None,
        discount: float = 0.0,
        email: str = "asha@example.com",
        phone: str | None = "9876543210",
    ) -> dict:
        return {
            "customer": {"name": "Asha Rao", "email": email, "phone": phone},
            "shipping_address": {
                "line_1": "12 MG Road",
                "city": "Bengaluru",
                "state": "Karnataka",
                "postal_code": "560001",
            },
            "payment_method": payment_method,
            "items": [
                {
                    "product_id": str(variant.product_id),
                    "variant_id": str(variant.id),
                    "quantity": quantity,
                    "product_name": "Silk Saree",
                }
            ],
            "coupon_code": coupon_code,
            "subtotal": subtotal,
            "discount_amount": discount,
            "delivery_fee": round(total - subtotal + discount, 2),
            "total_amount": total,
        }

    return make


@pytest.fixture
def stock_of():
    def read(variant_id: uuid.UUID) -> int:
        with Session(engine) as session:
            return session.get(ProductVariant, variant_id).stock_quantity

    return read
