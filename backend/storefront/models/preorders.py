from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PREORDER_STATUSES = ("PENDING", "REVIEWING", "QUOTED", "ACCEPTED", "REJECTED", "COMPLETED")


class Preorder(db.Model):
    """Customer request for a product we do not stock yet (public submission)."""
    __tablename__ = "preorders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(120), nullable=False)
    urgency = db.Column(db.String(32), nullable=True)
    budget = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    customer_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    additional_notes = db.Column(db.Text, nullable=True)

    # Public URLs returned by the image storage
    images = db.Column(db.JSON, nullable=False, default=list)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    estimated_price_cents = db.Column(db.Integer, nullable=True)
    estimated_time = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "product_description": self.product_description,
            "category": self.category,
            "urgency": self.urgency,
            "budget": self.budget,
            "quantity": self.quantity,
            "customer_name": self.customer_name,
            "email": self.email,
            "phone": self.phone,
            "additional_notes": self.additional_notes,
            "images": list(self.images or []),
            "status": self.status,
            "admin_notes": self.admin_notes,
            "estimated_price_cents": self.estimated_price_cents,
            "estimated_time": self.estimated_time,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
