"""
Review tests.

Verifies:
- New reviews start PENDING and are hidden from the public list
- Approval recomputes product rating/review_count over APPROVED reviews
- APPROVED and REJECTED are terminal
- One review per user and product
"""

import pytest

from storefront.extensions import db
from storefront.models import Product, Review


def _post_review(client, headers, product_id, rating, comment="Lovely toy"):
    return client.post(
        "/api/reviews",
        json={"product_id": product_id, "rating": rating, "comment": comment},
        headers=headers,
    )


def _product(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id)


class TestCreateReview:

    def test_created_pending_and_hidden(self, client, customer_headers, product):
        resp = _post_review(client, customer_headers, product.id, 5)
        assert resp.status_code == 201
        assert resp.json["review"]["status"] == "PENDING"
        assert resp.json["review"]["is_verified"] is False

        public = client.get(f"/api/reviews?product_id={product.id}")
        assert public.status_code == 200
        assert public.json["reviews"] == []

    def test_duplicate_review_conflict(self, client, customer_headers, product):
        _post_review(client, customer_headers, product.id, 5)
        resp = _post_review(client, customer_headers, product.id, 3)
        assert resp.status_code == 409

    @pytest.mark.parametrize("rating", [0, 6, "5", 4.5, None])
    def test_invalid_rating(self, client, customer_headers, product, rating):
        resp = _post_review(client, customer_headers, product.id, rating)
        assert resp.status_code == 400

    def test_unknown_product(self, client, customer_headers, db_session):
        resp = _post_review(client, customer_headers, 9999, 4)
        assert resp.status_code == 404

    def test_requires_auth(self, client, product):
        resp = client.post("/api/reviews", json={"product_id": product.id, "rating": 5, "comment": "x"})
        assert resp.status_code == 401

    def test_non_object_body(self, client, customer_headers, db_session):
        resp = client.post("/api/reviews", json=["rating", 5], headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"

    def test_public_list_requires_product_id(self, client, db_session):
        assert client.get("/api/reviews").status_code == 400


class TestModeration:

    def test_rating_aggregate_over_approved(
        self, client, product, customer_headers, other_headers, admin_headers
    ):
        product_id = product.id
        first = _post_review(client, customer_headers, product_id, 4).json["review"]["id"]
        second = _post_review(client, other_headers, product_id, 2).json["review"]["id"]

        resp = client.patch(f"/api/reviews/admin/{first}", json={"status": "APPROVED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["review"]["is_verified"] is True
        assert _product(product_id).rating == 4.0
        assert _product(product_id).review_count == 1

        client.patch(f"/api/reviews/admin/{second}", json={"status": "APPROVED"}, headers=admin_headers)
        refreshed = _product(product_id)
        assert refreshed.rating == 3.0
        assert refreshed.review_count == 2

        public = client.get(f"/api/reviews?product_id={product_id}").json["reviews"]
        assert len(public) == 2

    def test_rejected_review_not_counted(self, client, product, customer_headers, admin_headers):
        product_id = product.id
        review_id = _post_review(client, customer_headers, product_id, 1).json["review"]["id"]

        resp = client.patch(f"/api/reviews/admin/{review_id}", json={"status": "REJECTED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert _product(product_id).review_count == 0
        assert _product(product_id).rating == 0.0

    @pytest.mark.parametrize("first,second", [
        ("APPROVED", "REJECTED"),
        ("REJECTED", "APPROVED"),
        ("APPROVED", "PENDING"),
    ])
    def test_terminal_states(self, client, product, customer_headers, admin_headers, first, second):
        review_id = _post_review(client, customer_headers, product.id, 5).json["review"]["id"]
        client.patch(f"/api/reviews/admin/{review_id}", json={"status": first}, headers=admin_headers)

        resp = client.patch(f"/api/reviews/admin/{review_id}", json={"status": second}, headers=admin_headers)
        assert resp.status_code == 409

    def test_invalid_status(self, client, product, customer_headers, admin_headers):
        review_id = _post_review(client, customer_headers, product.id, 5).json["review"]["id"]
        resp = client.patch(f"/api/reviews/admin/{review_id}", json={"status": "MAYBE"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_review(self, client, admin_headers):
        resp = client.patch("/api/reviews/admin/777", json={"status": "APPROVED"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_customer_cannot_moderate(self, client, product, customer_headers):
        review_id = _post_review(client, customer_headers, product.id, 5).json["review"]["id"]
        resp = client.patch(f"/api/reviews/admin/{review_id}", json={"status": "APPROVED"}, headers=customer_headers)
        assert resp.status_code == 401


class TestAdminListAndDelete:

    def test_filter_by_status(self, client, product, second_product, customer_headers, admin_headers):
        approved = _post_review(client, customer_headers, product.id, 5).json["review"]["id"]
        _post_review(client, customer_headers, second_product.id, 3)
        client.patch(f"/api/reviews/admin/{approved}", json={"status": "APPROVED"}, headers=admin_headers)

        pending = client.get("/api/reviews/admin?status=PENDING", headers=admin_headers).json
        assert [r["product_id"] for r in pending["reviews"]] == [second_product.id]
        assert pending["pagination"]["total"] == 1

        everything = client.get("/api/reviews/admin?status=all", headers=admin_headers).json
        assert everything["pagination"]["total"] == 2
        assert "product" in everything["reviews"][0]

    def test_delete_recomputes_rating(self, client, product, customer_headers, other_headers, admin_headers):
        product_id = product.id
        keep = _post_review(client, customer_headers, product_id, 5).json["review"]["id"]
        drop = _post_review(client, other_headers, product_id, 1).json["review"]["id"]
        for review_id in (keep, drop):
            client.patch(f"/api/reviews/admin/{review_id}", json={"status": "APPROVED"}, headers=admin_headers)
        assert _product(product_id).rating == 3.0

        resp = client.delete(f"/api/reviews/admin/{drop}", headers=admin_headers)
        assert resp.status_code == 200
        refreshed = _product(product_id)
        assert refreshed.rating == 5.0
        assert refreshed.review_count == 1
        assert db.session.get(Review, drop) is None
