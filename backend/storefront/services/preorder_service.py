"""
Pre-order requests: customers ask for products the store does not stock.

Submission is public (multipart). Up to PREORDER_MAX_IMAGES attachments are
uploaded; an upload that fails is logged and skipped.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Preorder
from ..models.preorders import PREORDER_STATUSES
from ..validation import NotFoundError, ValidationError, parse_amount_cents
from .image_storage import delete_images_quietly, get_image_storage
from .pagination import paginate


PREORDER_IMAGE_FOLDER = "preorders"
REQUIRED_FIELDS = ("product_name", "product_description", "category", "customer_name", "email", "phone")


def _text(form, key: str) -> str | None:
    value = form.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _quantity(raw) -> int:
    try:
        quantity = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    return quantity if quantity >= 1 else 1


def upload_images(files) -> list[str]:
    storage = get_image_storage()
    urls = []
    for upload in list(files)[: current_app.config["PREORDER_MAX_IMAGES"]]:
        try:
            url = storage.upload(upload.read(), folder=PREORDER_IMAGE_FOLDER, filename=upload.filename)
        except Exception:
            current_app.logger.exception("Failed to upload pre-order image %s", upload.filename)
            continue
        urls.append(url)
    return urls


def create_preorder(form, files=()) -> Preorder:
    missing = [f for f in REQUIRED_FIELDS if not _text(form, f)]
    if missing:
        raise ValidationError(
            "Product name, description, category, customer name, email, and phone are required"
        )

    preorder = Preorder(
        product_name=_text(form, "product_name"),
        product_description=_text(form, "product_description"),
        category=_text(form, "category"),
        urgency=_text(form, "urgency"),
        budget=_text(form, "budget"),
        quantity=_quantity(form.get("quantity")),
        customer_name=_text(form, "customer_name"),
        email=_text(form, "email"),
        phone=_text(form, "phone"),
        additional_notes=_text(form, "additional_notes"),
        images=upload_images(files),
    )
    db.session.add(preorder)
    db.session.commit()
    return preorder


def list_preorders(status: str | None = None, page: int | None = None, limit: int | None = None) -> dict:
    query = db.session.query(Preorder)
    if status:
        if status not in PREORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PREORDER_STATUSES)}")
        query = query.filter(Preorder.status == status)
    query = query.order_by(Preorder.created_at.desc(), Preorder.id.desc())
    return paginate(query, page=page, limit=limit, serialize=lambda p: p.to_dict())


def get_preorder(preorder_id: int) -> Preorder:
    preorder = db.session.get(Preorder, preorder_id)
    if not preorder:
        raise NotFoundError("Preorder not found")
    return preorder


def update_preorder(preorder_id: int, payload: dict) -> Preorder:
    """Only fields present and non-empty are changed."""
    preorder = get_preorder(preorder_id)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    status = payload.get("status")
    if status:
        if status not in PREORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PREORDER_STATUSES)}")
        preorder.status = status

    if payload.get("admin_notes"):
        preorder.admin_notes = str(payload["admin_notes"]).strip()
    if payload.get("estimated_price") not in (None, ""):
        preorder.estimated_price_cents = parse_amount_cents(payload["estimated_price"], "estimated_price")
    if payload.get("estimated_time"):
        preorder.estimated_time = str(payload["estimated_time"]).strip()

    db.session.commit()
    return preorder


def delete_preorder(preorder_id: int) -> None:
    preorder = get_preorder(preorder_id)
    delete_images_quietly(list(preorder.images or []))
    db.session.delete(preorder)
    db.session.commit()
