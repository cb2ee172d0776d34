"""
Catalog: products, brands, categories, and the hot-deals discount query.

Product CRUD is keyed by slug; brands and categories by id. Uniqueness of
name/slug (and product sku) is pre-checked here and backed by DB constraints.
Stored images are removed with delete_images_quietly, which never blocks the
row delete.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Brand,
    Category,
    Product,
    ProductColor,
    ProductImage,
    ProductSpecification,
    Review,
)
from ..models.catalog import SPECIFICATION_FIELDS
from ..models.reviews import REVIEW_STATUS_APPROVED
from ..validation import (
    ConflictError,
    DependencyConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    parse_amount_cents,
    validate_payload,
)
from .image_storage import delete_images_quietly
from .pagination import paginate


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "slug", "sku", "description",
        "price_cents", "original_price_cents", "stock",
        "category_id", "brand_id",
        "is_featured", "is_best_seller", "is_new", "age_range",
    },
    required_on_create={"name", "slug", "price_cents", "stock", "category_id"},
)

BRAND_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "logo", "is_featured"},
    required_on_create={"name", "slug"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "image"},
    required_on_create={"name", "slug", "image"},
)

PRODUCT_SORTS = {
    "featured": (Product.is_featured.desc(), Product.created_at.desc()),
    "bestseller": (Product.is_best_seller.desc(), Product.created_at.desc()),
    "newest": (Product.is_new.desc(), Product.created_at.desc()),
    "price-low-high": (Product.price_cents.asc(),),
    "price-high-low": (Product.price_cents.desc(),),
    "name-asc": (Product.name.asc(),),
    "name-desc": (Product.name.desc(),),
    "rating": (Product.rating.desc(),),
}
DEFAULT_SORT = "newest"


# --- discount ------------------------------------------------------------------

def discount_percentage(price_cents: int, original_price_cents: int | None) -> int:
    """
    Whole-percent discount of price against original price, rounded half-up.
    0 when there is no original price or it is not above the price.
    """
    if original_price_cents is None or original_price_cents <= price_cents:
        return 0
    ratio = Decimal(original_price_cents - price_cents) / Decimal(original_price_cents) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def hot_deals() -> list[dict]:
    """
    In-stock products with an original price whose discount reaches
    HOT_DEAL_MIN_DISCOUNT, best discount first. At most HOT_DEAL_LIMIT
    candidates are considered.
    """
    min_discount = current_app.config["HOT_DEAL_MIN_DISCOUNT"]
    candidates = (
        db.session.query(Product)
        .filter(Product.original_price_cents.isnot(None), Product.stock > 0)
        .order_by(Product.id.asc())
        .limit(current_app.config["HOT_DEAL_LIMIT"])
        .all()
    )

    deals = []
    for product in candidates:
        pct = discount_percentage(product.price_cents, product.original_price_cents)
        if pct >= min_discount:
            data = product.to_summary_dict()
            data["discount_percentage"] = pct
            deals.append(data)

    deals.sort(key=lambda d: d["discount_percentage"], reverse=True)
    return deals


# --- helpers -------------------------------------------------------------------

def _ensure_unique(model, values: dict, *, exclude_id: int | None, message: str) -> None:
    clauses = [getattr(model, k) == v for k, v in values.items() if v not in (None, "")]
    if not clauses:
        return
    query = db.session.query(model.id).filter(db.or_(*clauses))
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first():
        raise ConflictError(message)


def _commit_unique(message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


def _resolve_ref(model, value) -> int | None:
    """Accept a numeric id or a slug. Returns None when nothing matches."""
    value = str(value).strip()
    if value.isdigit():
        row = db.session.get(model, int(value))
    else:
        row = db.session.query(model).filter_by(slug=value).first()
    return row.id if row else None


def _empty_page(page, limit) -> dict:
    limit = min(limit or 10, 100)
    return {
        "items": [],
        "count": 0,
        "pagination": {
            "page": max(page or 1, 1),
            "limit": limit,
            "total": 0,
            "total_pages": 1,
            "has_next": False,
            "has_prev": False,
        },
    }


# --- products ------------------------------------------------------------------

def list_products(
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    category: str | None = None,
    brand: str | None = None,
    sort: str | None = None,
    featured: bool = False,
    best_seller: bool = False,
    new: bool = False,
    min_price=None,
    max_price=None,
) -> dict:
    """
    Public product listing. category/brand take an id or a slug; an unknown
    one yields an empty page. min_price/max_price are currency amounts.
    """
    query = db.session.query(Product)

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(
            Product.name.ilike(pattern),
            Product.description.ilike(pattern),
            Product.sku.ilike(pattern),
        ))

    if category and category != "all":
        category_id = _resolve_ref(Category, category)
        if category_id is None:
            return _empty_page(page, limit)
        query = query.filter(Product.category_id == category_id)

    if brand and brand != "all":
        brand_id = _resolve_ref(Brand, brand)
        if brand_id is None:
            return _empty_page(page, limit)
        query = query.filter(Product.brand_id == brand_id)

    if featured:
        query = query.filter(Product.is_featured.is_(True))
    if best_seller:
        query = query.filter(Product.is_best_seller.is_(True))
    if new:
        query = query.filter(Product.is_new.is_(True))

    if min_price not in (None, ""):
        query = query.filter(Product.price_cents >= parse_amount_cents(min_price, "min_price"))
    if max_price not in (None, ""):
        query = query.filter(Product.price_cents <= parse_amount_cents(max_price, "max_price"))

    ordering = PRODUCT_SORTS.get(sort or DEFAULT_SORT, PRODUCT_SORTS[DEFAULT_SORT])
    query = query.order_by(*ordering, Product.id.desc())

    return paginate(query, page=page, limit=limit, serialize=lambda p: p.to_summary_dict())


def _product_by_slug(slug: str) -> Product:
    product = db.session.query(Product).filter_by(slug=slug).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_product(slug: str) -> dict:
    product = _product_by_slug(slug)
    reviews = (
        db.session.query(Review)
        .filter(Review.product_id == product.id, Review.status == REVIEW_STATUS_APPROVED)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    data = product.to_dict()
    data["discount_percentage"] = discount_percentage(product.price_cents, product.original_price_cents)
    data["reviews"] = [r.to_dict() for r in reviews]
    return data


def _split_product_payload(payload: dict) -> tuple[dict, list, list, dict | None]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    scalars = dict(payload)
    images = scalars.pop("images", None) or []
    colors = scalars.pop("colors", None) or []
    specifications = scalars.pop("specifications", None)

    if not isinstance(images, list) or not all(isinstance(u, str) and u.strip() for u in images):
        raise ValidationError("images must be a list of URLs")
    if not isinstance(colors, list) or not all(isinstance(c, dict) and c.get("name") for c in colors):
        raise ValidationError("colors must be a list of objects with a name")
    if specifications is not None and not isinstance(specifications, dict):
        raise ValidationError("specifications must be an object")

    return scalars, [u.strip() for u in images], colors, specifications


def _check_references(patch: dict) -> None:
    if "category_id" in patch and not db.session.get(Category, patch["category_id"]):
        raise ValidationError("Category not found")
    if patch.get("brand_id") is not None and not db.session.get(Brand, patch["brand_id"]):
        raise ValidationError("Brand not found")


def _apply_children(product: Product, images: list, colors: list, specifications: dict | None) -> None:
    product.images = [ProductImage(url=url) for url in images]
    product.colors = [
        ProductColor(name=str(c["name"]).strip(), hex_code=(c.get("hex_code") or None))
        for c in colors
    ]
    if specifications:
        spec = product.specifications or ProductSpecification()
        for field in SPECIFICATION_FIELDS:
            value = specifications.get(field)
            setattr(spec, field, str(value).strip() if value not in (None, "") else None)
        product.specifications = spec
    else:
        product.specifications = None


def create_product(payload: dict) -> Product:
    scalars, images, colors, specifications = _split_product_payload(payload)
    patch = validate_payload(model=Product, payload=scalars, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_references(patch)

    message = "Product with this name, slug, or SKU already exists"
    _ensure_unique(
        Product,
        {"name": patch["name"], "slug": patch["slug"], "sku": patch.get("sku")},
        exclude_id=None,
        message=message,
    )
    if patch.get("sku") == "":
        patch["sku"] = None

    product = Product(**patch)
    _apply_children(product, images, colors, specifications)
    db.session.add(product)
    _commit_unique(message)
    return product


def update_product(slug: str, payload: dict) -> Product:
    """Full replace: images and colors are replaced, specifications upserted or removed."""
    product = _product_by_slug(slug)
    scalars, images, colors, specifications = _split_product_payload(payload)
    patch = validate_payload(model=Product, payload=scalars, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_references(patch)

    message = "Another product with this name, slug, or SKU already exists"
    _ensure_unique(
        Product,
        {"name": patch["name"], "slug": patch["slug"], "sku": patch.get("sku")},
        exclude_id=product.id,
        message=message,
    )

    # Optional fields omitted from a full replace are cleared
    for key in ("sku", "description", "original_price_cents", "brand_id", "age_range"):
        patch.setdefault(key, None)
        if patch[key] == "":
            patch[key] = None
    for key in ("is_featured", "is_best_seller", "is_new"):
        patch.setdefault(key, False)

    for key, value in patch.items():
        setattr(product, key, value)
    _apply_children(product, images, colors, specifications)

    _commit_unique(message)
    return product


def delete_product(slug: str) -> None:
    product = _product_by_slug(slug)

    order_count = product.order_items.count()
    if order_count:
        raise DependencyConflictError(
            "Cannot delete product that appears in orders",
            count=order_count,
            count_key="order_count",
        )

    delete_images_quietly([image.url for image in product.images])
    db.session.delete(product)
    db.session.commit()


# --- brands --------------------------------------------------------------------

def list_brands(*, limit: int | None = None, featured: bool = False) -> list[dict]:
    query = db.session.query(Brand)
    if featured:
        query = query.filter(Brand.is_featured.is_(True))
    query = query.order_by(Brand.name.asc())
    if limit:
        query = query.limit(limit)
    return [b.to_dict(product_count=b.products.count()) for b in query.all()]


def _brand(brand_id: int) -> Brand:
    brand = db.session.get(Brand, brand_id)
    if not brand:
        raise NotFoundError("Brand not found")
    return brand


def get_brand(brand_id: int) -> dict:
    brand = _brand(brand_id)
    return brand.to_dict(product_count=brand.products.count())


def create_brand(payload: dict) -> Brand:
    patch = validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=False)
    message = "Brand with this name or slug already exists"
    _ensure_unique(Brand, {"name": patch["name"], "slug": patch["slug"]}, exclude_id=None, message=message)

    brand = Brand(**patch)
    db.session.add(brand)
    _commit_unique(message)
    return brand


def update_brand(brand_id: int, payload: dict) -> Brand:
    brand = _brand(brand_id)
    patch = validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=False)
    message = "Another brand with this name or slug already exists"
    _ensure_unique(Brand, {"name": patch["name"], "slug": patch["slug"]}, exclude_id=brand.id, message=message)

    for key, value in patch.items():
        setattr(brand, key, value)
    _commit_unique(message)
    return brand


def delete_brand(brand_id: int) -> None:
    brand = _brand(brand_id)
    product_count = brand.products.count()
    if product_count:
        raise DependencyConflictError(
            "Cannot delete brand with associated products",
            count=product_count,
            count_key="product_count",
        )

    delete_images_quietly([brand.logo])
    db.session.delete(brand)
    db.session.commit()


# --- categories ----------------------------------------------------------------

def list_categories() -> list[dict]:
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [c.to_dict(product_count=c.products.count()) for c in categories]


def _category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def get_category(category_id: int) -> dict:
    category = _category(category_id)
    return category.to_dict(product_count=category.products.count())


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    message = "Category with this name or slug already exists"
    _ensure_unique(Category, {"name": patch["name"], "slug": patch["slug"]}, exclude_id=None, message=message)

    category = Category(**patch)
    db.session.add(category)
    _commit_unique(message)
    return category


def update_category(category_id: int, payload: dict) -> Category:
    """name and slug are required; image is kept when omitted."""
    category = _category(category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if not patch.get("name") or not patch.get("slug"):
        raise ValidationError("Name and slug are required")
    message = "Another category with this name or slug already exists"
    _ensure_unique(
        Category, {"name": patch["name"], "slug": patch["slug"]}, exclude_id=category.id, message=message
    )

    for key, value in patch.items():
        setattr(category, key, value)
    _commit_unique(message)
    return category


def delete_category(category_id: int) -> None:
    category = _category(category_id)
    product_count = category.products.count()
    if product_count:
        raise DependencyConflictError(
            "Cannot delete category with associated products",
            count=product_count,
            count_key="product_count",
        )

    delete_images_quietly([category.image])
    db.session.delete(category)
    db.session.commit()
