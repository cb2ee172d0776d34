"""
Review moderation.

LIFECYCLE: PENDING -> APPROVED | REJECTED. Both outcomes are terminal.

DENORMALIZED AGGREGATE:
Product.rating / Product.review_count are recomputed from scratch over the
APPROVED reviews whenever a review is moderated or deleted. The status change
and the recompute are committed together.
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Review
from ..models.reviews import (
    REVIEW_STATUS_APPROVED,
    REVIEW_STATUS_PENDING,
    REVIEW_STATUS_REJECTED,
    REVIEW_STATUSES,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_review,
    parse_positive_int,
    require_fields,
)
from .concurrency import lock_for_update
from .pagination import paginate


ALLOWED_TRANSITIONS = {
    REVIEW_STATUS_PENDING: {REVIEW_STATUS_APPROVED, REVIEW_STATUS_REJECTED},
    REVIEW_STATUS_APPROVED: set(),
    REVIEW_STATUS_REJECTED: set(),
}


def recompute_product_rating(product_id: int) -> Product | None:
    """
    Rewrite rating/review_count from the APPROVED reviews. Does not commit.
    """
    product = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
    if product is None:
        return None

    db.session.flush()
    avg_rating, approved_count = (
        db.session.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.product_id == product_id, Review.status == REVIEW_STATUS_APPROVED)
        .one()
    )

    product.rating = float(avg_rating) if approved_count else 0.0
    product.review_count = int(approved_count or 0)
    return product


def list_product_reviews(product_id) -> list[dict]:
    """Public: APPROVED reviews only, newest first."""
    if product_id in (None, ""):
        raise ValidationError("Product ID is required")
    product_id = parse_positive_int(product_id, "product_id")

    reviews = (
        db.session.query(Review)
        .filter(Review.product_id == product_id, Review.status == REVIEW_STATUS_APPROVED)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    return [r.to_dict() for r in reviews]


def create_review(user_id: int, payload: dict) -> Review:
    require_fields(payload, "product_id", "rating", "comment")
    product_id = parse_positive_int(payload["product_id"], "product_id")
    rating = enforce_rules_review(payload["rating"])
    comment = str(payload["comment"]).strip()
    if not comment:
        raise ValidationError("comment cannot be blank")
    title = (str(payload.get("title") or "").strip()) or None

    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")

    existing = db.session.query(Review).filter_by(user_id=user_id, product_id=product_id).first()
    if existing:
        raise ConflictError("You have already reviewed this product")

    review = Review(
        user_id=user_id,
        product_id=product_id,
        rating=rating,
        title=title,
        comment=comment,
        status=REVIEW_STATUS_PENDING,
        is_verified=False,
    )
    db.session.add(review)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("You have already reviewed this product")
    return review


def list_reviews_admin(status: str | None = None, page: int | None = None, limit: int | None = None) -> dict:
    query = db.session.query(Review)
    if status and status != "all":
        if status not in REVIEW_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(REVIEW_STATUSES)}")
        query = query.filter(Review.status == status)

    query = query.order_by(Review.created_at.desc(), Review.id.desc())
    return paginate(
        query,
        page=page,
        limit=limit,
        serialize=lambda r: r.to_dict(include_product=True),
    )


def moderate_review(review_id: int, status) -> Review:
    """
    Move a PENDING review to APPROVED or REJECTED and refresh the product aggregate.

    Raises:
        ValidationError: status is not a review status
        NotFoundError: no such review
        ConflictError: transition not allowed (including out of a terminal state)
    """
    if status not in REVIEW_STATUSES:
        raise ValidationError("Invalid status")

    review = lock_for_update(db.session.query(Review).filter(Review.id == review_id)).first()
    if not review:
        raise NotFoundError("Review not found")

    if status not in ALLOWED_TRANSITIONS[review.status]:
        raise ConflictError(f"Cannot change review status from {review.status} to {status}")

    review.status = status
    review.is_verified = status == REVIEW_STATUS_APPROVED

    recompute_product_rating(review.product_id)
    db.session.commit()
    return review


def delete_review(review_id: int) -> None:
    review = db.session.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found")

    product_id = review.product_id
    db.session.delete(review)
    recompute_product_rating(product_id)
    db.session.commit()
