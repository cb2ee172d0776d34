"""
Pre-order request tests: public multipart submission with capped image
uploads, and the admin review workflow.
"""

import io

import pytest

from storefront.extensions import db
from storefront.models import Preorder


FORM = {
    "product_name": "Lego Castle 1980",
    "product_description": "Out of print castle set",
    "category": "Toys",
    "customer_name": "Casey Customer",
    "email": "casey@example.com",
    "phone": "01700000000",
}


def _image(name):
    return (io.BytesIO(b"\xff\xd8\xff fake jpeg"), name)


def _submit(client, images=(), **fields):
    data = {**FORM, **fields}
    if images:
        data["images"] = list(images)
    return client.post("/api/preorders", data=data, content_type="multipart/form-data")


class TestSubmitPreorder:

    def test_submit_without_images(self, client, db_session):
        resp = _submit(client, quantity="2", urgency="high")
        assert resp.status_code == 201
        preorder = resp.json["preorder"]
        assert preorder["status"] == "PENDING"
        assert preorder["quantity"] == 2
        assert preorder["urgency"] == "high"
        assert preorder["images"] == []

    @pytest.mark.parametrize("raw", ["", "zero", "0", "-4"])
    def test_bad_quantity_defaults_to_one(self, client, db_session, raw):
        resp = _submit(client, quantity=raw)
        assert resp.json["preorder"]["quantity"] == 1

    def test_images_capped_at_three(self, client, db_session, image_storage):
        resp = _submit(client, images=[_image(f"{n}.jpg") for n in range(5)])
        assert resp.status_code == 201
        assert len(resp.json["preorder"]["images"]) == 3
        assert len(image_storage.files) == 3
        assert all("/preorders/" in url for url in resp.json["preorder"]["images"])

    def test_upload_failures_are_skipped(self, client, db_session, image_storage):
        image_storage.fail_uploads = True
        resp = _submit(client, images=[_image("a.jpg"), _image("b.jpg")])
        assert resp.status_code == 201
        assert resp.json["preorder"]["images"] == []

    @pytest.mark.parametrize("field", ["product_name", "category", "email", "phone"])
    def test_required_fields(self, client, db_session, field):
        resp = _submit(client, **{field: "  "})
        assert resp.status_code == 400
        assert db.session.query(Preorder).count() == 0


class TestAdminPreorders:

    @pytest.fixture
    def preorder_id(self, client, db_session):
        return _submit(client, images=[_image("a.jpg")]).json["preorder"]["id"]

    def test_admin_only(self, client, customer_headers, preorder_id):
        assert client.get("/api/preorders", headers=customer_headers).status_code == 401
        assert client.get(f"/api/preorders/{preorder_id}").status_code == 401

    def test_list_and_filter(self, client, admin_headers, preorder_id):
        listed = client.get("/api/preorders", headers=admin_headers).json
        assert [p["id"] for p in listed["preorders"]] == [preorder_id]
        assert listed["pagination"]["total"] == 1

        quoted = client.get("/api/preorders?status=QUOTED", headers=admin_headers).json
        assert quoted["preorders"] == []

        assert client.get("/api/preorders?status=LOST", headers=admin_headers).status_code == 400

    def test_update(self, client, admin_headers, preorder_id):
        resp = client.put(
            f"/api/preorders/{preorder_id}",
            json={"status": "QUOTED", "estimated_price": "12.50", "estimated_time": "2 weeks"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        preorder = resp.json["preorder"]
        assert preorder["status"] == "QUOTED"
        assert preorder["estimated_price_cents"] == 1250
        assert preorder["estimated_time"] == "2 weeks"

        # Empty values leave fields untouched
        resp = client.put(
            f"/api/preorders/{preorder_id}",
            json={"status": "", "estimated_time": ""},
            headers=admin_headers,
        )
        assert resp.json["preorder"]["status"] == "QUOTED"
        assert resp.json["preorder"]["estimated_time"] == "2 weeks"

    @pytest.mark.parametrize("body", [{"status": "MAYBE"}, {"estimated_price": "lots"}])
    def test_update_invalid(self, client, admin_headers, preorder_id, body):
        resp = client.put(f"/api/preorders/{preorder_id}", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_removes_images(self, client, admin_headers, image_storage, preorder_id):
        resp = client.delete(f"/api/preorders/{preorder_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert image_storage.deleted == ["storefront/preorders/1"]
        assert client.get(f"/api/preorders/{preorder_id}", headers=admin_headers).status_code == 404
