from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "street",
    "city",
    "state",
    "postal_code",
    "country",
    "phone",
)


class Address(db.Model):
    """
    Saved shipping address.

    INVARIANT: at most one is_default=True per user. address_service clears
    the previous default and sets the new one inside a single transaction.
    Addresses referenced by orders cannot be deleted.
    """
    __tablename__ = "addresses"
    __table_args__ = (
        db.Index("ix_addresses_user_default", "user_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    street = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(120), nullable=False)
    state = db.Column(db.String(120), nullable=False)
    postal_code = db.Column(db.String(32), nullable=False)
    country = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("addresses", lazy=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self, include_user: bool = False) -> dict:
        data = {field: getattr(self, field) for field in ADDRESS_FIELDS}
        data.update({
            "id": self.id,
            "user_id": self.user_id,
            "is_default": self.is_default,
        })
        if include_user and self.user is not None:
            data["user"] = {"email": self.user.email, "name": self.user.name}
        return data


class GuestShippingAddress(db.Model):
    """Shipping address captured at guest checkout (no user account)."""
    __tablename__ = "guest_shipping_addresses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    street = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(120), nullable=False)
    state = db.Column(db.String(120), nullable=False)
    postal_code = db.Column(db.String(32), nullable=False)
    country = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        data = {field: getattr(self, field) for field in ADDRESS_FIELDS}
        data.update({"id": self.id, "email": self.email})
        return data


class Order(db.Model):
    """
    Customer order.

    status and payment_status are independent state fields; allowed moves
    come from Config.ORDER_STATUS_TRANSITIONS / PAYMENT_STATUS_TRANSITIONS.
    order_number is assigned once at checkout and never changes.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_payment_created", "payment_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)

    # Null for guest checkout
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    guest_email = db.Column(db.String(255), nullable=True, index=True)

    shipping_address_id = db.Column(db.Integer, db.ForeignKey("addresses.id"), nullable=True, index=True)
    guest_shipping_address_id = db.Column(
        db.Integer, db.ForeignKey("guest_shipping_addresses.id"), nullable=True
    )

    payment_method = db.Column(db.String(32), nullable=False)
    bkash_number = db.Column(db.String(32), nullable=True)
    bkash_reference = db.Column(db.String(64), nullable=True)
    bkash_transaction = db.Column(db.String(64), nullable=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    admin_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("orders", lazy="dynamic"))
    shipping_address = db.relationship("Address", backref=db.backref("orders", lazy="dynamic"))
    guest_shipping_address = db.relationship("GuestShippingAddress")
    items = db.relationship(
        "OrderItem",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    @property
    def customer_name(self) -> str:
        if self.shipping_address is not None:
            return self.shipping_address.full_name
        if self.guest_shipping_address is not None:
            return self.guest_shipping_address.full_name
        if self.user is not None and self.user.name:
            return self.user.name
        return "Unknown Customer"

    def to_dict(self, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "guest_email": self.guest_email,
            "payment_method": self.payment_method,
            "bkash_number": self.bkash_number,
            "bkash_reference": self.bkash_reference,
            "bkash_transaction": self.bkash_transaction,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "shipping_cents": self.shipping_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "admin_notes": self.admin_notes,
            "items": [item.to_dict() for item in self.items],
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "guest_shipping_address": (
                self.guest_shipping_address.to_dict() if self.guest_shipping_address else None
            ),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_user:
            data["user"] = (
                {"id": self.user.id, "name": self.user.name, "email": self.user.email}
                if self.user else None
            )
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    # Unit price snapshot at checkout
    price_cents = db.Column(db.Integer, nullable=False)
    color = db.Column(db.String(64), nullable=False, default="")
    size = db.Column(db.String(64), nullable=False, default="")

    product = db.relationship("Product", backref=db.backref("order_items", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "color": self.color,
            "size": self.size,
            "product": {
                "id": self.product.id,
                "name": self.product.name,
                "slug": self.product.slug,
                "image": self.product.primary_image_url,
            } if self.product else None,
        }
