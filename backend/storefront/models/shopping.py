from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CartItem(db.Model):
    """
    One cart line per (user, product, color, size).

    INVARIANT: 1 <= quantity <= product.stock after every cart mutation
    (enforced by cart_service, which clamps instead of rejecting).
    color/size are "" (not NULL) when absent so the unique key is usable.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", "color", "size", name="uq_cart_items_variant"),
        db.CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    color = db.Column(db.String(64), nullable=False, default="")
    size = db.Column(db.String(64), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("cart_items", lazy=True, cascade="all, delete-orphan"))
    product = db.relationship("Product", backref=db.backref("cart_items", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": product.name,
            "price_cents": product.price_cents,
            "quantity": self.quantity,
            "color": self.color,
            "size": self.size,
            "image": product.primary_image_url,
            "slug": product.slug,
            "stock": product.stock,
            "max_quantity": product.stock,
        }


class WishlistItem(db.Model):
    __tablename__ = "wishlist_items"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_wishlist_items_user_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("wishlist_items", lazy=True, cascade="all, delete-orphan"))
    product = db.relationship("Product", backref=db.backref("wishlist_items", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": product.name,
            "price_cents": product.price_cents,
            "original_price_cents": product.original_price_cents,
            "image": product.primary_image_url,
            "slug": product.slug,
            "rating": product.rating,
            "review_count": product.review_count,
            "stock": product.stock,
            "is_in_stock": product.stock > 0,
            "added_at": to_utc_z(self.created_at),
        }
