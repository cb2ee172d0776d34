"""
Order tests.

Verifies:
- Checkout reserves stock atomically; a short line rolls back the whole order
- Prices come from the catalog, totals are computed server-side
- Guest checkout and signed-in checkout paths
- Cancel restores stock exactly once; reviving a cancelled order reduces it
- Status transitions follow the configured transition tables
- Orders are visible only to their owner (account or guest email) and admins
"""

import re

import pytest

from storefront.extensions import db
from storefront.models import CartItem, GuestShippingAddress, Order
from storefront.services import order_service

from conftest import auth_headers, make_address, make_user, stock_of


GUEST_ADDRESS = {
    "first_name": "Gus",
    "last_name": "Guest",
    "street": "7 River Lane",
    "city": "Sylhet",
    "state": "Sylhet",
    "postal_code": "3100",
    "phone": "01800000000",
}


def _checkout(client, headers, address_id, lines, **extra):
    body = {"items": lines, "payment_method": "CASH_ON_DELIVERY", "shipping_address_id": address_id}
    body.update(extra)
    return client.post("/api/orders", json=body, headers=headers)


def _order_count():
    db.session.expire_all()
    return db.session.query(Order).count()


class TestCheckout:

    def test_creates_order_and_reserves_stock(self, client, customer_headers, address, product, second_product):
        resp = _checkout(
            client, customer_headers, address.id,
            [{"product_id": product.id, "quantity": 2}, {"product_id": second_product.id, "quantity": 3}],
            tax_cents=100, shipping_cents=600, discount_cents=200,
        )
        assert resp.status_code == 201
        order = resp.json["order"]

        assert re.fullmatch(r"ORD-\d+-[0-9a-z]{9}", order["order_number"])
        assert order["subtotal_cents"] == 2 * 2500 + 3 * 1000
        assert order["total_cents"] == 8000 + 100 + 600 - 200
        assert order["status"] == "PENDING"
        assert order["payment_status"] == "PENDING"
        assert [i["price_cents"] for i in order["items"]] == [2500, 1000]

        assert stock_of(product.id) == 3
        assert stock_of(second_product.id) == 7

    def test_client_prices_are_ignored(self, client, customer_headers, address, product):
        resp = _checkout(
            client, customer_headers, address.id,
            [{"product_id": product.id, "quantity": 1, "price_cents": 1}],
        )
        assert resp.json["order"]["subtotal_cents"] == 2500

    @pytest.mark.parametrize("method,status,payment_status", [
        ("CASH_ON_DELIVERY", "PENDING", "PENDING"),
        ("CARD", "CONFIRMED", "PROCESSING"),
    ])
    def test_initial_state_by_payment_method(
        self, client, customer_headers, address, product, method, status, payment_status
    ):
        resp = _checkout(
            client, customer_headers, address.id, [{"product_id": product.id}], payment_method=method
        )
        assert resp.json["order"]["status"] == status
        assert resp.json["order"]["payment_status"] == payment_status

    def test_bkash_requires_number_and_reference(self, client, customer_headers, address, product):
        resp = _checkout(
            client, customer_headers, address.id, [{"product_id": product.id}], payment_method="BKASH"
        )
        assert resp.status_code == 400

        resp = _checkout(
            client, customer_headers, address.id, [{"product_id": product.id}],
            payment_method="BKASH", bkash_number="01711111111", bkash_reference="REF42",
        )
        assert resp.status_code == 201
        assert resp.json["order"]["bkash_reference"] == "REF42"
        assert resp.json["order"]["status"] == "CONFIRMED"

    def test_insufficient_stock_rolls_back_everything(
        self, client, customer_headers, address, product, second_product
    ):
        resp = _checkout(
            client, customer_headers, address.id,
            [{"product_id": second_product.id, "quantity": 2}, {"product_id": product.id, "quantity": 6}],
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient stock for Wooden Train. Available: 5, Requested: 6"

        assert stock_of(second_product.id) == 10
        assert stock_of(product.id) == 5
        assert _order_count() == 0

    def test_clears_cart(self, client, customer, customer_headers, address, product):
        customer_id = customer.id
        client.post("/api/cart", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)

        _checkout(client, customer_headers, address.id, [{"product_id": product.id, "quantity": 2}])

        db.session.expire_all()
        assert db.session.query(CartItem).filter_by(user_id=customer_id).count() == 0

    def test_failed_checkout_keeps_cart(self, client, customer, customer_headers, address, product):
        customer_id = customer.id
        client.post("/api/cart", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)

        resp = _checkout(client, customer_headers, address.id, [{"product_id": product.id, "quantity": 9}])
        assert resp.status_code == 400

        db.session.expire_all()
        assert db.session.query(CartItem).filter_by(user_id=customer_id).count() == 1

    def test_shipping_address_must_belong_to_user(
        self, client, db_session, other_customer, customer_headers, product
    ):
        foreign = make_address(db_session, other_customer)
        resp = _checkout(client, customer_headers, foreign.id, [{"product_id": product.id}])
        assert resp.status_code == 404

    def test_signed_in_checkout_requires_address(self, client, customer_headers, product):
        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product.id}], "payment_method": "CARD"},
            headers=customer_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"items": [], "payment_method": "CARD"},
        {"items": [{"product_id": 1}], "payment_method": "CHEQUE"},
        {"items": [{"product_id": 1, "quantity": 0}], "payment_method": "CARD"},
    ])
    def test_invalid_payloads(self, client, customer_headers, address, body):
        body = {**body, "shipping_address_id": address.id}
        assert client.post("/api/orders", json=body, headers=customer_headers).status_code == 400

    def test_discount_larger_than_order(self, client, customer_headers, address, product):
        resp = _checkout(
            client, customer_headers, address.id, [{"product_id": product.id}], discount_cents=999999
        )
        assert resp.status_code == 400
        assert stock_of(product.id) == 5


class TestGuestCheckout:

    def test_guest_order(self, client, product):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "payment_method": "CASH_ON_DELIVERY",
            "guest_email": "Gus@Example.com",
            "guest_shipping_address": GUEST_ADDRESS,
        })
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["user_id"] is None
        assert order["guest_email"] == "gus@example.com"
        assert order["guest_shipping_address"]["country"] == "Bangladesh"
        assert stock_of(product.id) == 4

    def test_guest_requires_email_and_address(self, client, product):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product.id}],
            "payment_method": "CARD",
            "guest_email": "gus@example.com",
        })
        assert resp.status_code == 400

    def test_guest_address_fields_required(self, client, product):
        resp = client.post("/api/orders", json={
            "items": [{"product_id": product.id}],
            "payment_method": "CARD",
            "guest_email": "gus@example.com",
            "guest_shipping_address": {"first_name": "Gus"},
        })
        assert resp.status_code == 400
        assert "Missing required fields" in resp.json["error"]

    def test_invalid_token_is_rejected_not_treated_as_guest(self, client, product):
        resp = client.post(
            "/api/orders",
            json={"items": [{"product_id": product.id}], "payment_method": "CARD"},
            headers={"Authorization": "Bearer not-a-real-token"},
        )
        assert resp.status_code == 401

    def test_account_with_guest_email_sees_guest_orders(self, client, db_session, product, password_hash):
        client.post("/api/orders", json={
            "items": [{"product_id": product.id}],
            "payment_method": "CARD",
            "guest_email": "gus@example.com",
            "guest_shipping_address": GUEST_ADDRESS,
        })
        gus = make_user(db_session, password_hash, email="gus@example.com", name="Gus")
        headers = auth_headers(gus)

        orders = client.get("/api/orders", headers=headers).json["orders"]
        assert len(orders) == 1
        order_id = orders[0]["id"]
        assert client.get(f"/api/orders/{order_id}", headers=headers).status_code == 200


def _place(client, headers, address_id, product_id, quantity=2, method="CASH_ON_DELIVERY"):
    resp = _checkout(
        client, headers, address_id, [{"product_id": product_id, "quantity": quantity}], payment_method=method
    )
    assert resp.status_code == 201
    return resp.json["order"]["id"]


class TestCancel:

    def test_cancel_restores_stock_once(self, client, customer_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 2)
        assert stock_of(product.id) == 3

        resp = client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "CANCELLED"
        assert resp.json["order"]["payment_status"] == "FAILED"
        assert stock_of(product.id) == 5

        again = client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)
        assert again.status_code == 400
        assert stock_of(product.id) == 5

    def test_cancel_completed_payment_refunds(self, client, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1, method="CARD")
        client.patch(
            f"/api/orders/{order_id}/payment-status", json={"payment_status": "COMPLETED"}, headers=admin_headers
        )

        resp = client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)
        assert resp.json["order"]["payment_status"] == "REFUNDED"

    def test_cannot_cancel_shipped(self, client, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        client.patch(f"/api/orders/{order_id}/status", json={"status": "SHIPPED"}, headers=admin_headers)

        resp = client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)
        assert resp.status_code == 400
        assert stock_of(product.id) == 4

    def test_other_customer_cannot_cancel(self, client, customer_headers, other_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=other_headers)
        assert resp.status_code == 404
        assert stock_of(product.id) == 4

    def test_customer_cannot_edit_status(self, client, customer_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(f"/api/orders/{order_id}", json={"status": "DELIVERED"}, headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid action or insufficient permissions"


class TestAdminUpdates:

    def test_admin_cancel_then_revive(self, client, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 2)

        resp = client.patch(f"/api/orders/{order_id}", json={"status": "CANCELLED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert "Stock has been restored." in resp.json["message"]
        assert stock_of(product.id) == 5

        # Setting the same status again is a no-op
        resp = client.patch(f"/api/orders/{order_id}", json={"status": "CANCELLED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert stock_of(product.id) == 5

        resp = client.patch(f"/api/orders/{order_id}", json={"status": "PROCESSING"}, headers=admin_headers)
        assert "Stock has been reduced." in resp.json["message"]
        assert stock_of(product.id) == 3

    def test_revive_fails_without_stock(self, client, db_session, customer_headers, admin_headers, address, product):
        product_id = product.id
        order_id = _place(client, customer_headers, address.id, product_id, 2)
        client.patch(f"/api/orders/{order_id}", json={"status": "CANCELLED"}, headers=admin_headers)

        product.stock = 1
        db_session.commit()

        resp = client.patch(f"/api/orders/{order_id}", json={"status": "CONFIRMED"}, headers=admin_headers)
        assert resp.status_code == 400
        assert stock_of(product_id) == 1

        db.session.expire_all()
        assert db.session.get(Order, order_id).status == "CANCELLED"

    def test_status_route_moves_stock_across_cancelled(
        self, client, customer_headers, admin_headers, address, product
    ):
        order_id = _place(client, customer_headers, address.id, product.id, 2)
        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "CANCELLED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert stock_of(product.id) == 5

    def test_notes_and_payment_status(self, client, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(
            f"/api/orders/{order_id}",
            json={"payment_status": "COMPLETED", "admin_notes": "  paid at door  "},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["order"]["payment_status"] == "COMPLETED"
        assert resp.json["order"]["admin_notes"] == "paid at door"

    def test_nothing_to_update(self, client, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(f"/api/orders/{order_id}", json={}, headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("path,body", [
        ("status", {"status": "LOST"}),
        ("payment-status", {"payment_status": "MAYBE"}),
    ])
    def test_invalid_values(self, client, customer_headers, admin_headers, address, product, path, body):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(f"/api/orders/{order_id}/{path}", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_status_routes_are_admin_only(self, client, customer_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1)
        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "SHIPPED"}, headers=customer_headers)
        assert resp.status_code == 401

    def test_unknown_order(self, client, admin_headers):
        resp = client.patch("/api/orders/4040/status", json={"status": "SHIPPED"}, headers=admin_headers)
        assert resp.status_code == 404


class TestTransitionTable:
    """A tightened transition table rejects moves it does not list."""

    @pytest.fixture
    def strict_transitions(self, app):
        original = app.config["ORDER_STATUS_TRANSITIONS"]
        app.config["ORDER_STATUS_TRANSITIONS"] = {
            "PENDING": {"CONFIRMED", "CANCELLED"},
            "CONFIRMED": {"PROCESSING", "CANCELLED"},
            "PROCESSING": {"SHIPPED"},
            "SHIPPED": {"DELIVERED"},
            "DELIVERED": set(),
            "CANCELLED": set(),
        }
        yield
        app.config["ORDER_STATUS_TRANSITIONS"] = original

    def test_disallowed_move_is_conflict(
        self, client, strict_transitions, customer_headers, admin_headers, address, product
    ):
        order_id = _place(client, customer_headers, address.id, product.id, 1)

        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "DELIVERED"}, headers=admin_headers)
        assert resp.status_code == 409

        resp = client.patch(f"/api/orders/{order_id}/status", json={"status": "CONFIRMED"}, headers=admin_headers)
        assert resp.status_code == 200

    def test_cancelled_is_terminal(self, client, strict_transitions, customer_headers, admin_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 2)
        client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)

        resp = client.patch(f"/api/orders/{order_id}", json={"status": "PENDING"}, headers=admin_headers)
        assert resp.status_code == 409
        assert stock_of(product.id) == 5


class TestVisibility:

    def test_customer_sees_only_own_orders(
        self, client, db_session, customer_headers, other_customer, other_headers, address, product
    ):
        other_address = make_address(db_session, other_customer)
        mine = _place(client, customer_headers, address.id, product.id, 1)
        theirs = _place(client, other_headers, other_address.id, product.id, 1)

        listed = client.get("/api/orders", headers=customer_headers).json
        assert [o["id"] for o in listed["orders"]] == [mine]
        assert listed["meta"]["is_admin"] is False

        assert client.get(f"/api/orders/{theirs}", headers=customer_headers).status_code == 404

    def test_search_does_not_leak_other_orders(
        self, client, db_session, customer_headers, other_customer, other_headers, address, product
    ):
        other_address = make_address(db_session, other_customer)
        _place(client, other_headers, other_address.id, product.id, 1)

        listed = client.get("/api/orders?search=Wooden", headers=customer_headers).json
        assert listed["orders"] == []

    def test_admin_sees_everything_with_user(self, client, customer_headers, admin_headers, address, product):
        _place(client, customer_headers, address.id, product.id, 1)
        listed = client.get("/api/orders", headers=admin_headers).json
        assert listed["meta"]["total"] == 1
        assert listed["meta"]["is_admin"] is True
        assert listed["orders"][0]["user"]["email"] == "casey@example.com"

    def test_filters_and_search(self, client, customer_headers, admin_headers, address, product, second_product):
        _place(client, customer_headers, address.id, product.id, 1, method="CARD")
        _place(client, customer_headers, address.id, second_product.id, 1)

        by_method = client.get("/api/orders?payment_method=CARD", headers=admin_headers).json
        assert by_method["meta"]["total"] == 1

        by_status = client.get("/api/orders?status=PENDING", headers=admin_headers).json
        assert by_status["meta"]["total"] == 1

        by_product = client.get("/api/orders?search=puzzle", headers=customer_headers).json
        assert len(by_product["orders"]) == 1
        assert by_product["orders"][0]["items"][0]["product_id"] == second_product.id

        by_city = client.get("/api/orders?search=dhaka", headers=customer_headers).json
        assert len(by_city["orders"]) == 2

    def test_pagination_meta(self, client, customer_headers, address, second_product):
        for _ in range(3):
            _place(client, customer_headers, address.id, second_product.id, 1)

        page = client.get("/api/orders?page=2&limit=2", headers=customer_headers).json
        assert page["meta"]["total"] == 3
        assert page["meta"]["pages"] == 2
        assert len(page["orders"]) == 1


class TestDeleteOrder:

    def test_owner_deletes_pending_and_stock_returns(self, client, customer_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 2)
        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)
        assert resp.status_code == 200
        assert stock_of(product.id) == 5
        assert _order_count() == 0

    def test_owner_cannot_delete_confirmed(self, client, customer_headers, address, product):
        order_id = _place(client, customer_headers, address.id, product.id, 1, method="CARD")
        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)
        assert resp.status_code == 400

    def test_delete_cancelled_does_not_double_restore(
        self, client, customer_headers, admin_headers, address, product
    ):
        order_id = _place(client, customer_headers, address.id, product.id, 2)
        client.patch(f"/api/orders/{order_id}", json={"action": "cancel"}, headers=customer_headers)
        assert stock_of(product.id) == 5

        resp = client.delete(f"/api/orders/{order_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert stock_of(product.id) == 5

    def test_admin_delete_removes_guest_address(self, client, admin_headers, product):
        order_id = client.post("/api/orders", json={
            "items": [{"product_id": product.id}],
            "payment_method": "CARD",
            "guest_email": "gus@example.com",
            "guest_shipping_address": GUEST_ADDRESS,
        }).json["order"]["id"]

        resp = client.delete(f"/api/orders/{order_id}", headers=admin_headers)
        assert resp.status_code == 200
        db.session.expire_all()
        assert db.session.query(GuestShippingAddress).count() == 0
        assert stock_of(product.id) == 5


class TestOrderNumber:

    def test_format_and_uniqueness(self):
        numbers = {order_service.generate_order_number() for _ in range(50)}
        assert len(numbers) == 50
        assert all(re.fullmatch(r"ORD-\d{13}-[0-9a-z]{9}", n) for n in numbers)
