from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PLACEHOLDER_IMAGE = "/placeholder-product.jpg"


class Brand(db.Model):
    __tablename__ = "brands"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_brands_name"),
        db.UniqueConstraint("slug", name="uq_brands_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    logo = db.Column(db.String(512), nullable=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self, product_count: int | None = None) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "logo": self.logo,
            "is_featured": self.is_featured,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if product_count is not None:
            data["product_count"] = product_count
        return data


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        db.UniqueConstraint("slug", name="uq_categories_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(512), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self, product_count: int | None = None) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image": self.image,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if product_count is not None:
            data["product_count"] = product_count
        return data


class Product(db.Model):
    """
    Catalog product.

    DENORMALIZED AGGREGATE:
    rating/review_count mirror the APPROVED reviews for this product and are
    rewritten by review_service.recompute_product_rating on every moderation
    event. Never write them anywhere else.

    STOCK:
    stock is decremented only through conditional UPDATEs
    (see order_service._reserve_stock) so it never goes negative.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_products_name"),
        db.UniqueConstraint("slug", name="uq_products_slug"),
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_category", "category_id"),
        db.Index("ix_products_brand", "brand_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True)

    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    is_best_seller = db.Column(db.Boolean, nullable=False, default=False)
    is_new = db.Column(db.Boolean, nullable=False, default=False)
    age_range = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy="dynamic"))
    brand = db.relationship("Brand", backref=db.backref("products", lazy="dynamic"))
    images = db.relationship(
        "ProductImage",
        order_by="ProductImage.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    colors = db.relationship(
        "ProductColor",
        order_by="ProductColor.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    specifications = db.relationship(
        "ProductSpecification",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} stock={self.stock}>"

    @property
    def primary_image_url(self) -> str:
        return self.images[0].url if self.images else PLACEHOLDER_IMAGE

    def to_summary_dict(self) -> dict:
        """Listing card: first image only, category/brand as name+slug."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "original_price_cents": self.original_price_cents,
            "stock": self.stock,
            "rating": self.rating,
            "review_count": self.review_count,
            "is_featured": self.is_featured,
            "is_best_seller": self.is_best_seller,
            "is_new": self.is_new,
            "age_range": self.age_range,
            "image": self.primary_image_url,
            "category": {"name": self.category.name, "slug": self.category.slug} if self.category else None,
            "brand": {"name": self.brand.name, "slug": self.brand.slug} if self.brand else None,
            "colors": [c.to_dict() for c in self.colors],
            "created_at": to_utc_z(self.created_at),
        }

    def to_dict(self) -> dict:
        data = self.to_summary_dict()
        data.update({
            "description": self.description,
            "category_id": self.category_id,
            "brand_id": self.brand_id,
            "images": [i.to_dict() for i in self.images],
            "specifications": self.specifications.to_dict() if self.specifications else None,
            "updated_at": to_utc_z(self.updated_at),
        })
        return data


class ProductImage(db.Model):
    __tablename__ = "product_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    url = db.Column(db.String(512), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url}


class ProductColor(db.Model):
    __tablename__ = "product_colors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    hex_code = db.Column(db.String(16), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "hex_code": self.hex_code}


SPECIFICATION_FIELDS = (
    "brand",
    "country_of_origin",
    "product_type",
    "materials",
    "pack_contains",
    "weight",
    "dimensions",
    "care_instructions",
    "safety_features",
)


class ProductSpecification(db.Model):
    __tablename__ = "product_specifications"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_product_specifications_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    brand = db.Column(db.String(255), nullable=True)
    country_of_origin = db.Column(db.String(255), nullable=True)
    product_type = db.Column(db.String(255), nullable=True)
    materials = db.Column(db.Text, nullable=True)
    pack_contains = db.Column(db.Text, nullable=True)
    weight = db.Column(db.String(64), nullable=True)
    dimensions = db.Column(db.String(128), nullable=True)
    care_instructions = db.Column(db.Text, nullable=True)
    safety_features = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {field: getattr(self, field) for field in SPECIFICATION_FIELDS}
