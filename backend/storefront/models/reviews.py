from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


REVIEW_STATUS_PENDING = "PENDING"
REVIEW_STATUS_APPROVED = "APPROVED"
REVIEW_STATUS_REJECTED = "REJECTED"
REVIEW_STATUSES = (REVIEW_STATUS_PENDING, REVIEW_STATUS_APPROVED, REVIEW_STATUS_REJECTED)


class Review(db.Model):
    """
    Product review with moderation lifecycle.

    LIFECYCLE: PENDING -> APPROVED | REJECTED (both terminal).
    is_verified is derived from status and kept as a column so public
    product queries can filter on it directly.
    """
    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_reviews_user_product"),
        db.Index("ix_reviews_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=True)
    comment = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=REVIEW_STATUS_PENDING, index=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("reviews", lazy=True, cascade="all, delete-orphan"))
    product = db.relationship("Product", backref=db.backref("reviews", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "status": self.status,
            "is_verified": self.is_verified,
            "user": self.user.to_public_dict() if self.user else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_product and self.product is not None:
            data["product"] = {
                "id": self.product.id,
                "name": self.product.name,
                "slug": self.product.slug,
                "images": [i.url for i in self.product.images],
            }
        return data
