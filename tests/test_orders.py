"""Tests for checkout, order access and fulfilment status."""

import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.database import engine
from app.models.coupon import Coupon
from app.models.order import Order, OrderItem
from app.routers import orders as orders_router


def _orders() -> list[Order]:
    with Session(engine) as session:
        return session.exec(select(Order)).all()


@pytest.fixture
def place(client, order_payload):
    """Place an order; returns the response."""

    def run(variant, headers=None, **overrides):
        return client.post(
            "/api/v1/orders",
            json=order_payload(variant, **overrides),
            headers=headers or {},
        )

    return run


class TestPlaceOrder:
    def test_guest_cod_order(self, place, make_variant, stock_of):
        variant = make_variant(price=500.0, stock=5)

        response = place(variant)

        assert response.status_code == 201
        data = response.json()
        assert data["order_number"].startswith("RJ")
        assert len(data["order_number"]) == 12
        assert data["total_amount"] == 550.0
        assert data["payment_method"] == "cod"
        assert stock_of(variant.id) == 4

        order = _orders()[0]
        assert order.user_id is None
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.delivery_fee == 50.0

    def test_items_snapshot_catalog(self, place, make_variant):
        variant = make_variant(name="Silk Saree", price=800.0, discount_price=600.0)

        place(variant, subtotal=600.0, total=650.0)

        with Session(engine) as session:
            item = session.exec(select(OrderItem)).one()
        assert item.product_name == "Silk Saree"
        assert item.size == "M"
        assert item.color == "Red"
        assert item.unit_price == 600.0
        assert item.total_price == 600.0

    def test_free_delivery_above_threshold(self, place, make_variant):
        variant = make_variant(price=500.0)

        response = place(variant, quantity=2, subtotal=1000.0, total=1000.0)

        assert response.status_code == 201
        assert response.json()["total_amount"] == 1000.0

    def test_signed_in_order_is_listed(self, client, place, make_variant, customer_headers):
        headers = customer_headers()

        placed = place(make_variant(), headers=headers).json()
        listed = client.get("/api/v1/orders", headers=headers).json()

        assert [o["id"] for o in listed] == [placed["order_id"]]

    def test_stale_amounts_are_rejected(self, place, make_variant, stock_of):
        variant = make_variant(price=500.0)

        response = place(variant, total=500.0)

        assert response.status_code == 400
        data = response.json()
        assert data["kind"] == "validation_error"
        assert data["total_amount"] == 550.0
        assert data["delivery_fee"] == 50.0
        assert stock_of(variant.id) == 5
        assert _orders() == []

    def test_negative_subtotal(self, place, make_variant):
        response = place(make_variant(), subtotal=-5.0)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid order amounts"

    def test_empty_items(self, client, make_variant, order_payload):
        body = order_payload(make_variant())
        body["items"] = []

        response = client.post("/api/v1/orders", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields: items"

    def test_unknown_payment_method(self, place, make_variant):
        response = place(make_variant(), payment_method="barter")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid payment method"

    def test_incomplete_address(self, client, make_variant, order_payload):
        body = order_payload(make_variant())
        body["shipping_address"]["city"] = "   "

        response = client.post("/api/v1/orders", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Incomplete shipping address"

    def test_insufficient_stock(self, place, make_variant, stock_of):
        variant = make_variant(name="Silk Saree", price=500.0, stock=1)

        response = place(variant, quantity=2, subtotal=1000.0, total=1000.0)

        assert response.status_code == 400
        data = response.json()
        assert data["kind"] == "stock_error"
        assert data["product_name"] == "Silk Saree"
        assert data["available"] == 1
        assert data["requested"] == 2
        assert stock_of(variant.id) == 1
        assert _orders() == []

    def test_inactive_product(self, place, make_variant):
        response = place(make_variant(is_active=False))

        assert response.status_code == 400
        assert _orders() == []

    def test_failure_after_insert_rolls_everything_back(
        self, place, make_variant, make_coupon, stock_of, monkeypatch
    ):
        variant = make_variant(price=500.0, stock=5)
        make_coupon("SAVE10", usage_limit=5)

        def boom(session, items):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(orders_router.order_repo, "create_items", boom)
        response = place(variant, coupon_code="SAVE10", discount=50.0, total=500.0)

        assert response.status_code == 500
        assert response.json()["kind"] == "order_creation_error"
        assert _orders() == []
        assert stock_of(variant.id) == 5
        with Session(engine) as session:
            assert session.exec(select(Coupon)).one().used_count == 0


class TestCouponAtCheckout:
    def test_discount_applied_and_counted(self, place, make_variant, make_coupon):
        variant = make_variant(price=500.0)
        make_coupon("SAVE10", discount_type="percentage", discount_value=10.0)

        response = place(variant, coupon_code="save10", discount=50.0, total=500.0)

        assert response.status_code == 201
        order = _orders()[0]
        assert order.coupon_code == "SAVE10"
        assert order.discount_amount == 50.0
        with Session(engine) as session:
            assert session.exec(select(Coupon)).one().used_count == 1

    def test_below_minimum(self, place, make_variant, make_coupon, stock_of):
        variant = make_variant(price=500.0)
        make_coupon("BIG", discount_type="fixed", discount_value=100.0, min_order_amount=2000.0)

        response = place(variant, coupon_code="BIG", discount=100.0, total=450.0)

        assert response.status_code == 400
        data = response.json()
        assert data["kind"] == "coupon_error"
        assert data["reason"] == "below_minimum"
        assert stock_of(variant.id) == 5

    def test_exhausted_coupon(self, place, make_variant, make_coupon):
        variant = make_variant(price=500.0)
        make_coupon("ONCE", usage_limit=1, used_count=1)

        response = place(variant, coupon_code="ONCE", discount=50.0, total=500.0)

        assert response.status_code == 400
        assert response.json()["reason"] == "usage_limit_reached"


class TestCartAfterCheckout:
    def _fill_cart(self, client, variant, headers):
        client.post(
            "/api/v1/cart",
            json={"product_id": str(variant.product_id), "variant_id": str(variant.id)},
            headers=headers,
        )

    def test_cart_kept_by_default(self, client, place, make_variant, customer_headers):
        headers = customer_headers()
        variant = make_variant()
        self._fill_cart(client, variant, headers)

        place(variant, headers=headers)

        assert client.get("/api/v1/cart", headers=headers).json()["total_items"] == 1

    def test_cart_cleared_when_enabled(
        self, client, place, make_variant, customer_headers, monkeypatch
    ):
        monkeypatch.setattr(orders_router.service.settings, "CLEAR_CART_ON_ORDER", True)
        headers = customer_headers()
        variant = make_variant()
        self._fill_cart(client, variant, headers)

        place(variant, headers=headers)

        assert client.get("/api/v1/cart", headers=headers).json()["total_items"] == 0


class TestIdempotency:
    def test_retry_returns_same_order(self, client, make_variant, order_payload, stock_of):
        variant = make_variant(stock=5)
        body = order_payload(variant)
        headers = {"Idempotency-Key": "checkout-7f3a"}

        first = client.post("/api/v1/orders", json=body, headers=headers)
        second = client.post("/api/v1/orders", json=body, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["order_id"] == first.json()["order_id"]
        assert len(_orders()) == 1
        assert stock_of(variant.id) == 4

    def test_key_bound_to_first_caller(
        self, client, make_variant, order_payload, customer_headers
    ):
        variant = make_variant(stock=5)
        body = order_payload(variant)

        client.post(
            "/api/v1/orders",
            json=body,
            headers={**customer_headers("one@example.com"), "Idempotency-Key": "k-1"},
        )
        response = client.post(
            "/api/v1/orders",
            json=body,
            headers={**customer_headers("two@example.com"), "Idempotency-Key": "k-1"},
        )

        assert response.status_code == 400
        assert len(_orders()) == 1


class TestOrderAccess:
    def test_guest_order_readable_by_link(self, client, place, make_variant):
        order_id = place(make_variant()).json()["order_id"]

        response = client.get(f"/api/v1/orders/{order_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == order_id
        assert len(data["items"]) == 1
        assert "gateway_order_id" not in data
        assert "idempotency_key" not in data

    def test_owner_only(self, client, place, make_variant, customer_headers, admin_headers):
        owner = customer_headers("owner@example.com")
        order_id = place(make_variant(), headers=owner).json()["order_id"]

        assert client.get(f"/api/v1/orders/{order_id}", headers=owner).status_code == 200

        other = client.get(
            f"/api/v1/orders/{order_id}", headers=customer_headers("other@example.com")
        )
        assert other.status_code == 403
        assert other.json()["detail"] == "Unauthorized access to this order"

        assert client.get(f"/api/v1/orders/{order_id}").status_code == 403
        assert client.get(f"/api/v1/orders/{order_id}", headers=admin_headers).status_code == 403
        assert (
            client.get(f"/api/v1/orders/admin/{order_id}", headers=admin_headers).status_code
            == 200
        )

    def test_unknown_order(self, client):
        response = client.get(f"/api/v1/orders/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Order not found"


class TestLookup:
    def test_by_number_and_email(self, client, place, make_variant):
        number = place(make_variant(), email="asha@example.com").json()["order_number"]

        response = client.post(
            "/api/v1/orders/lookup",
            json={"order_number": f" {number.lower()} ", "email": "ASHA@example.com"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order_number"] == number
        for hidden in ("gateway_order_id", "gateway_payment_id", "idempotency_key", "user_id"):
            assert hidden not in data

    def test_by_number_and_phone(self, client, place, make_variant):
        number = place(make_variant(), phone="9876543210").json()["order_number"]

        response = client.post(
            "/api/v1/orders/lookup",
            json={"order_number": number, "phone": "9876543210"},
        )

        assert response.status_code == 200

    def test_wrong_contact(self, client, place, make_variant):
        number = place(make_variant()).json()["order_number"]

        response = client.post(
            "/api/v1/orders/lookup",
            json={"order_number": number, "email": "someone@example.com"},
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "No order found with the provided details"

    def test_contact_required(self, client):
        response = client.post("/api/v1/orders/lookup", json={"order_number": "RJ123"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Either email or phone number is required"

    def test_number_required(self, client):
        response = client.post("/api/v1/orders/lookup", json={"email": "a@example.com"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Order number is required"


class TestAdminOrders:
    def test_list_requires_admin(self, client, customer_headers, admin_headers):
        assert client.get("/api/v1/orders/admin", headers=customer_headers()).status_code == 403
        assert client.get("/api/v1/orders/admin", headers=admin_headers).status_code == 200

    def test_status_walks_state_machine(self, client, place, make_variant, admin_headers):
        order_id = place(make_variant()).json()["order_id"]
        url = f"/api/v1/orders/{order_id}/status"

        skipped = client.patch(url, json={"status": "shipped"}, headers=admin_headers)
        assert skipped.status_code == 400
        assert skipped.json()["detail"] == "Invalid status transition: pending -> shipped"

        for status in ("confirmed", "processing", "shipped", "delivered"):
            response = client.patch(url, json={"status": status}, headers=admin_headers)
            assert response.status_code == 200
            assert response.json()["status"] == status

        assert response.json()["delivered_at"] is not None

    def test_cancelled_is_final(self, client, place, make_variant, admin_headers):
        order_id = place(make_variant()).json()["order_id"]
        url = f"/api/v1/orders/{order_id}/status"

        client.patch(url, json={"status": "cancelled"}, headers=admin_headers)
        response = client.patch(url, json={"status": "confirmed"}, headers=admin_headers)

        assert response.status_code == 400

    def test_customer_cannot_change_status(self, client, place, make_variant, customer_headers):
        order_id = place(make_variant()).json()["order_id"]

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "confirmed"},
            headers=customer_headers(),
        )

        assert response.status_code == 403
